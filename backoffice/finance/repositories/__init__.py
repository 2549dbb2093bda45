from .salary_repo import SalaryRepository, SalaryTemplateRepository
from .partner_payment_repo import PartnerPaymentRepository
from .investment_repo import InvestmentRepository
from .expense_repo import ExpenseRepository, ExpenseTypeRepository

__all__ = [
    'SalaryRepository', 'SalaryTemplateRepository', 'PartnerPaymentRepository',
    'InvestmentRepository', 'ExpenseRepository', 'ExpenseTypeRepository',
]
