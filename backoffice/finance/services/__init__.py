from .salary_service import SalaryService
from .payment_service import PartnerPaymentService
from .investment_service import InvestmentService
from .expense_service import ExpenseService

__all__ = ['SalaryService', 'PartnerPaymentService', 'InvestmentService', 'ExpenseService']
