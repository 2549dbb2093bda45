"""Salary Service - monthly salaries, their approval/payment lifecycle and templates.

Status lifecycle:
    pending  -> approved | rejected
    approved -> paid | rejected
    paid, rejected: final
"""

import logging

from backoffice.core.auth.models import FINANCE_ROLES
from backoffice.core.auth.repositories import UserRepository
from backoffice.core.exceptions import (
    ConflictError, ForbiddenError, NotFoundError, ServiceError, TransitionError, ValidationError,
)
from backoffice.core.utils.logging_config import log_with_context
from backoffice.core.utils.validation import FieldValidator
from backoffice.finance.repositories import SalaryRepository, SalaryTemplateRepository
from backoffice.flows.services import UserContext

logger = logging.getLogger('backoffice.finance.services.salary')

SALARY_STATUSES = ('pending', 'approved', 'paid', 'rejected')
SALARY_CURRENCIES = ('USD', 'EUR', 'USDT', 'UAH')
WALLET_NETWORKS = ('TRC-20', 'ERC-20', 'BEP-20', 'Bitcoin', 'Polygon', 'Arbitrum')

VALID_STATUS_TRANSITIONS = {
    'pending': ('approved', 'rejected'),
    'approved': ('paid', 'rejected'),
    'paid': (),
    'rejected': (),
}


def check_transition(current, requested):
    allowed = VALID_STATUS_TRANSITIONS.get(current, ())
    if requested not in allowed:
        raise TransitionError(current, requested, allowed)


class SalaryService:

    def __init__(self):
        self.salary_repo = SalaryRepository()
        self.template_repo = SalaryTemplateRepository()
        self.user_repo = UserRepository()

    # ============== Visibility ==============

    def scope_filters(self, filters, viewer: UserContext):
        """Narrow list/stats filters to what the viewer may see."""
        scoped = dict(filters)
        if viewer.role in FINANCE_ROLES:
            return scoped
        if viewer.role == 'teamlead':
            scoped['team_id'] = viewer.team_id or -1
            return scoped
        scoped['user_id'] = viewer.user_id
        return scoped

    def can_view(self, salary, viewer: UserContext):
        if viewer.role in FINANCE_ROLES or salary['user_id'] == viewer.user_id:
            return True
        return viewer.role == 'teamlead' and viewer.team_id is not None \
            and salary.get('team_id') == viewer.team_id

    def get(self, salary_id, viewer: UserContext):
        salary = self.salary_repo.get_by_id(salary_id)
        if not salary:
            raise NotFoundError('Salary not found')
        if not self.can_view(salary, viewer):
            raise ForbiddenError('Access denied to this salary')
        return salary

    # ============== CRUD ==============

    def create(self, data, viewer: UserContext):
        v = FieldValidator(data)
        user_id = v.integer('user_id', required=True, min_value=1)
        month = v.integer('month', required=True, min_value=1, max_value=12)
        year = v.integer('year', required=True, min_value=2020, max_value=2100)
        amount = v.number('amount', required=True)
        v.check(amount is None or amount > 0, 'amount', 'amount must be greater than 0')
        currency = v.choice('currency', SALARY_CURRENCIES)
        description = v.string('description', max_len=1000)
        v.raise_if_errors()

        if not self.user_repo.get_by_id(user_id):
            raise NotFoundError('User not found')
        if self.salary_repo.exists_for_period(user_id, month, year):
            raise ConflictError(f'Salary for {month:02d}/{year} already exists for this user')

        salary = self.salary_repo.create(user_id, month, year, amount, currency or 'USD',
                                         description, created_by=viewer.user_id)
        log_with_context(logger, logging.INFO, 'Salary created', salary_id=salary['id'],
                         user_id=user_id, month=month, year=year, created_by=viewer.user_id)
        return salary

    def update(self, salary_id, data, viewer: UserContext):
        salary = self.get(salary_id, viewer)
        if salary['status'] == 'paid':
            raise ServiceError('Paid salaries cannot be modified')

        v = FieldValidator(data, partial=True)
        amount = v.number('amount')
        v.check(amount is None or amount > 0, 'amount', 'amount must be greater than 0')
        v.choice('currency', SALARY_CURRENCIES)
        v.string('description', max_len=1000)
        v.raise_if_errors()
        return self.salary_repo.update(salary_id, **v.cleaned)

    def delete(self, salary_id):
        if not self.salary_repo.get_by_id(salary_id):
            raise NotFoundError('Salary not found')
        self.salary_repo.delete(salary_id)
        logger.info(f'Salary {salary_id} deleted')

    # ============== Status ==============

    def change_status(self, salary_id, data, viewer: UserContext):
        """Move a salary along its lifecycle. Only finance roles get here."""
        salary = self.salary_repo.get_by_id(salary_id)
        if not salary:
            raise NotFoundError('Salary not found')

        status = data.get('status')
        if status not in SALARY_STATUSES:
            raise ValidationError([{'field': 'status',
                                    'message': f"status must be one of: {', '.join(SALARY_STATUSES)}"}])
        check_transition(salary['status'], status)

        if status == 'approved':
            updated = self.salary_repo.approve(salary_id, viewer.user_id)
        elif status == 'paid':
            updated = self._pay(salary, data, viewer)
        else:
            updated = self.salary_repo.reject(salary_id, data.get('rejection_reason') or data.get('reason'))

        log_with_context(logger, logging.INFO, 'Salary status changed', salary_id=salary_id,
                         old_status=salary['status'], new_status=status, user_id=viewer.user_id)
        return updated

    def _pay(self, salary, data, viewer: UserContext):
        v = FieldValidator(data)
        tx_hash = v.string('transaction_hash', required=True, min_len=10, max_len=255)
        address = v.string('payment_address', min_len=10, max_len=255)
        network = v.choice('payment_network', WALLET_NETWORKS)
        v.raise_if_errors()

        if not address or not network:
            owner = self.user_repo.get_by_id(salary['user_id']) or {}
            address = address or owner.get('salary_wallet_address')
            network = network or owner.get('salary_network')
        if not address:
            raise ValidationError([{'field': 'payment_address',
                                    'message': 'payment_address is required: the user has no salary wallet'}])
        return self.salary_repo.mark_paid(salary['id'], viewer.user_id, network, address, tx_hash)

    # ============== Generation & Templates ==============

    def generate(self, data, viewer: UserContext):
        v = FieldValidator(data)
        month = v.integer('month', required=True, min_value=1, max_value=12)
        year = v.integer('year', required=True, min_value=2020, max_value=2100)
        v.raise_if_errors()

        result = self.salary_repo.generate_for_period(month, year, viewer.user_id)
        log_with_context(logger, logging.INFO, 'Salaries generated', month=month, year=year,
                         created=len(result['created']), skipped=result['skipped'],
                         user_id=viewer.user_id)
        return {'month': month, 'year': year, 'created': len(result['created']),
                'skipped': result['skipped'], 'salary_ids': result['created']}

    def save_template(self, user_id, data):
        if not self.user_repo.get_by_id(user_id):
            raise NotFoundError('User not found')
        v = FieldValidator(data)
        base_amount = v.number('base_amount', required=True, min_value=0)
        currency = v.choice('currency', SALARY_CURRENCIES)
        notes = v.string('notes', max_len=1000)
        is_active = v.boolean('is_active')
        v.raise_if_errors()
        return self.template_repo.upsert(user_id, base_amount, currency or 'USD', notes,
                                         True if is_active is None else is_active)

    def update_wallet(self, user_id, data, viewer: UserContext):
        """Users set their own wallet; finance roles may set anyone's."""
        if viewer.user_id != user_id and viewer.role not in FINANCE_ROLES:
            raise ForbiddenError('You can only change your own wallet')
        v = FieldValidator(data)
        address = v.string('salary_wallet_address', required=True, min_len=10, max_len=255)
        network = v.choice('salary_network', WALLET_NETWORKS)
        v.raise_if_errors()

        user = self.user_repo.update_wallet(user_id, address, network)
        if not user:
            raise NotFoundError('User not found')
        return user
