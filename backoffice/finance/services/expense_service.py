"""Expense types per department and the expenses booked against them."""

import logging

from backoffice.core.auth.models import FINANCE_ROLES
from backoffice.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ServiceError
from backoffice.core.organization.repositories import DepartmentRepository
from backoffice.core.utils.validation import FieldValidator
from backoffice.finance.repositories import ExpenseRepository, ExpenseTypeRepository
from backoffice.flows.services import UserContext

logger = logging.getLogger('backoffice.finance.services.expense')

EXPENSE_STATUSES = ('pending', 'approved', 'paid', 'rejected')
EXPENSE_CURRENCIES = ('USD', 'EUR', 'USDT', 'UAH')


class ExpenseService:

    def __init__(self):
        self.type_repo = ExpenseTypeRepository()
        self.expense_repo = ExpenseRepository()
        self.department_repo = DepartmentRepository()

    # ============== Expense types ==============

    def get_type(self, type_id):
        expense_type = self.type_repo.get_by_id(type_id)
        if not expense_type:
            raise NotFoundError('Expense type not found')
        return expense_type

    def save_type(self, data, type_id=None):
        """Create (type_id=None) or update an expense type."""
        existing = self.get_type(type_id) if type_id else None
        v = FieldValidator(data, partial=existing is not None)
        v.string('name', required=True, min_len=2, max_len=255)
        v.integer('department_id', required=True, min_value=1)
        v.string('description', max_len=2000)
        v.boolean('is_active')
        v.raise_if_errors()
        fields = v.cleaned

        department_id = fields.get('department_id') or (existing or {}).get('department_id')
        if 'department_id' in fields and not self.department_repo.get(department_id):
            raise NotFoundError('Department not found')
        name = fields.get('name') or (existing or {}).get('name')
        if self.type_repo.name_exists(name, department_id, exclude_id=type_id):
            raise ConflictError('Expense type with this name already exists in the department')

        if existing:
            return self.type_repo.update(type_id, **fields)
        return self.type_repo.create(**fields)

    def set_type_status(self, type_id, is_active):
        self.get_type(type_id)
        return self.type_repo.update(type_id, is_active=is_active)

    def delete_type(self, type_id):
        self.get_type(type_id)
        used = self.type_repo.count_expenses(type_id)
        if used:
            raise ServiceError(f'Expense type is used by {used} expenses and cannot be deleted')
        self.type_repo.delete(type_id)

    # ============== Expenses ==============

    def get(self, expense_id):
        expense = self.expense_repo.get_by_id(expense_id)
        if not expense:
            raise NotFoundError('Expense not found')
        return expense

    def _validate(self, data, partial=False):
        v = FieldValidator(data, partial=partial)
        type_id = v.integer('expense_type_id', required=True, min_value=1)
        amount = v.number('amount', required=True)
        v.check(amount is None or amount > 0, 'amount', 'amount must be greater than 0')
        v.choice('currency', EXPENSE_CURRENCIES)
        v.string('network', max_len=50)
        v.string('wallet_address', max_len=255)
        v.string('transaction_hash', max_len=255)
        v.date('expense_date')
        v.string('description', max_len=2000)
        v.choice('status', EXPENSE_STATUSES)
        v.raise_if_errors()
        fields = v.cleaned

        if type_id:
            expense_type = self.type_repo.get_by_id(type_id)
            if not expense_type:
                raise NotFoundError('Expense type not found')
            if not expense_type['is_active']:
                raise ServiceError('Expense type is inactive')
            fields['department_id'] = expense_type['department_id']
        return fields

    def create(self, data, user: UserContext):
        fields = self._validate(data)
        expense = self.expense_repo.create(fields, user.user_id)
        logger.info(f"Expense {expense['id']} ({expense['amount']}) booked by {user.user_id}")
        return expense

    def update(self, expense_id, data, user: UserContext):
        expense = self.get(expense_id)
        if expense['user_id'] != user.user_id and user.role not in FINANCE_ROLES:
            raise ForbiddenError('You can only edit your own expenses')
        fields = self._validate(data, partial=True)
        if 'status' in fields and user.role not in FINANCE_ROLES:
            raise ForbiddenError('Only finance can change expense status')
        return self.expense_repo.update(expense_id, **fields)

    def delete(self, expense_id):
        self.get(expense_id)
        self.expense_repo.delete(expense_id)
        logger.info(f'Expense {expense_id} deleted')
