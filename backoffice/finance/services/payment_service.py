"""Partner Payment Service - payment records and their settlement lifecycle."""

import logging

from backoffice.core.exceptions import (
    ConflictError, NotFoundError, ServiceError, TransitionError, ValidationError,
)
from backoffice.core.utils.logging_config import log_with_context
from backoffice.core.utils.validation import FieldValidator
from backoffice.finance.repositories import PartnerPaymentRepository
from .investment_service import NETWORKS

logger = logging.getLogger('backoffice.finance.services.payment')

PAYMENT_STATUSES = ('pending', 'processing', 'completed', 'failed', 'cancelled', 'hold')
PAYMENT_CURRENCIES = ('USD', 'EUR', 'USDT', 'USDC', 'BTC', 'ETH')
PAYMENT_METHODS = ('crypto', 'bank_transfer', 'card', 'other')

VALID_STATUS_TRANSITIONS = {
    'pending': ('processing', 'hold', 'cancelled'),
    'processing': ('completed', 'failed', 'hold'),
    'hold': ('pending', 'processing', 'cancelled'),
    'failed': ('pending',),
    'cancelled': ('pending',),
    'completed': (),
}

NOT_EDITABLE = ('completed', 'cancelled')
NOT_DELETABLE = ('completed', 'processing')


def check_transition(current, requested):
    allowed = VALID_STATUS_TRANSITIONS.get(current, ())
    if requested not in allowed:
        raise TransitionError(current, requested, allowed)


class PartnerPaymentService:

    def __init__(self):
        self.payment_repo = PartnerPaymentRepository()

    def get(self, payment_id):
        payment = self.payment_repo.get_by_id(payment_id)
        if not payment:
            raise NotFoundError('Payment not found')
        return payment

    def _validate(self, data, partial=False):
        v = FieldValidator(data, partial=partial)
        partner_id = v.integer('partner_id', required=True, min_value=1)
        amount = v.number('amount', required=True)
        v.check(amount is None or amount > 0, 'amount', 'amount must be greater than 0')
        v.choice('currency', PAYMENT_CURRENCIES)
        v.choice('payment_method', PAYMENT_METHODS)
        v.choice('network', NETWORKS)
        v.string('wallet_address', min_len=10, max_len=255)
        v.string('transaction_hash', min_len=10, max_len=255)
        v.string('description', max_len=2000)
        v.string('notes', max_len=2000)
        v.raise_if_errors()

        if partner_id and not self.payment_repo.partner_exists(partner_id):
            raise NotFoundError('Partner not found')
        return v.cleaned

    def create(self, data, user_id):
        fields = self._validate(data)
        if fields.get('transaction_hash') and self.payment_repo.hash_exists(fields['transaction_hash']):
            raise ConflictError('Payment with this transaction hash already exists')

        payment = self.payment_repo.create(fields, user_id)
        log_with_context(logger, logging.INFO, 'Partner payment created', payment_id=payment['id'],
                         partner_id=payment['partner_id'], amount=payment['amount'], user_id=user_id)
        return payment

    def update(self, payment_id, data):
        payment = self.get(payment_id)
        if payment['status'] in NOT_EDITABLE:
            raise ServiceError(f"Cannot modify a {payment['status']} payment")

        fields = self._validate(data, partial=True)
        tx_hash = fields.get('transaction_hash')
        if tx_hash and self.payment_repo.hash_exists(tx_hash, exclude_id=payment_id):
            raise ConflictError('Payment with this transaction hash already exists')
        return self.payment_repo.update(payment_id, **fields)

    def change_status(self, payment_id, data, user_id):
        payment = self.get(payment_id)
        status = data.get('status')
        if status not in PAYMENT_STATUSES:
            raise ValidationError([{'field': 'status',
                                    'message': f"status must be one of: {', '.join(PAYMENT_STATUSES)}"}])
        check_transition(payment['status'], status)

        side_effects = {}
        if status == 'processing':
            side_effects['payment_date'] = 'NOW'
        elif status == 'completed':
            tx_hash = data.get('transaction_hash')
            if tx_hash:
                if self.payment_repo.hash_exists(tx_hash, exclude_id=payment_id):
                    raise ConflictError('Payment with this transaction hash already exists')
                side_effects['transaction_hash'] = tx_hash
            elif not payment.get('transaction_hash'):
                raise ValidationError([{'field': 'transaction_hash',
                                        'message': 'transaction_hash is required to complete a payment'}])
            if data.get('block_number') is not None:
                v = FieldValidator(data)
                side_effects['block_number'] = v.integer('block_number', min_value=0)
                v.raise_if_errors()
            side_effects['confirmation_date'] = 'NOW'
        elif status == 'failed':
            side_effects['failure_reason'] = data.get('failure_reason') or data.get('reason')
        elif status == 'hold' and data.get('notes'):
            side_effects['notes'] = data['notes']

        updated = self.payment_repo.set_status(payment_id, status, **side_effects)
        log_with_context(logger, logging.INFO, 'Partner payment status changed',
                         payment_id=payment_id, old_status=payment['status'],
                         new_status=status, user_id=user_id)
        return updated

    def delete(self, payment_id):
        payment = self.get(payment_id)
        if payment['status'] in NOT_DELETABLE:
            raise ServiceError(f"Cannot delete a {payment['status']} payment")
        self.payment_repo.delete(payment_id)
        logger.info(f'Partner payment {payment_id} deleted')
