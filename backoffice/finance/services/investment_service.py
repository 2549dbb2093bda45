"""Investment operations: validation and uniqueness of on-chain transfers."""

import logging

from backoffice.core.exceptions import ConflictError, NotFoundError
from backoffice.core.utils.logging_config import log_with_context
from backoffice.core.utils.validation import FieldValidator
from backoffice.finance.repositories import InvestmentRepository

logger = logging.getLogger('backoffice.finance.services.investment')

OPERATION_TYPES = ('incoming', 'outgoing')
OPERATORS = ('maks_founder', 'ivan_partner')
NETWORKS = ('TRC-20', 'ERC-20', 'BEP-20', 'Bitcoin', 'Polygon', 'Arbitrum')
TOKENS = ('USDT', 'USDC', 'ETH', 'BTC', 'BNB', 'MATIC', 'TRX')


def validate_operation(data, partial=False):
    v = FieldValidator(data, partial=partial)
    v.date('operation_date', required=True)
    v.number('amount', required=True, min_value=0.01)
    v.choice('operation_type', OPERATION_TYPES, required=True)
    v.choice('operator', OPERATORS, required=True)
    v.choice('network', NETWORKS, required=True)
    v.choice('token', TOKENS, required=True)
    v.string('transaction_hash', required=True, min_len=10, max_len=255)
    v.string('wallet_address', required=True, min_len=10, max_len=255)
    v.number('additional_fees', min_value=0)
    v.string('notes', max_len=1000)
    v.raise_if_errors()
    return v.cleaned


class InvestmentService:

    def __init__(self):
        self.investment_repo = InvestmentRepository()

    def get(self, operation_id):
        operation = self.investment_repo.get_by_id(operation_id)
        if not operation:
            raise NotFoundError('Investment operation not found')
        return operation

    def create(self, data, user_id):
        fields = validate_operation(data)
        if self.investment_repo.hash_exists(fields['transaction_hash']):
            raise ConflictError('Operation with this transaction hash already exists')
        fields.setdefault('additional_fees', 0)

        operation = self.investment_repo.create(fields, user_id)
        log_with_context(logger, logging.INFO, 'Investment operation created',
                         operation_id=operation['id'], operation_type=operation['operation_type'],
                         amount=operation['amount'], user_id=user_id)
        return operation

    def update(self, operation_id, data):
        self.get(operation_id)
        fields = validate_operation(data, partial=True)
        tx_hash = fields.get('transaction_hash')
        if tx_hash and self.investment_repo.hash_exists(tx_hash, exclude_id=operation_id):
            raise ConflictError('Operation with this transaction hash already exists')
        return self.investment_repo.update(operation_id, **fields)

    def delete(self, operation_id):
        self.get(operation_id)
        self.investment_repo.delete(operation_id)
        logger.info(f'Investment operation {operation_id} deleted')
