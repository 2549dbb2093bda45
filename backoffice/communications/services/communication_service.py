"""Communication Service - threaded messages on flows and bizdev requests.

Access to a thread follows access to the object it is attached to:
flows use the flow visibility rule, bizdev requests are open to admin/bizdev
and the request creator.
"""

import logging

from backoffice.communications.repositories import CommunicationRepository
from backoffice.communications.repositories.communication_repo import CONTEXT_TABLES
from backoffice.core.auth.models import FLOW_MANAGERS
from backoffice.core.exceptions import ForbiddenError, NotFoundError, ServiceError, ValidationError
from backoffice.core.utils.logging_config import log_with_context
from backoffice.core.utils.validation import FieldValidator
from backoffice.flows.services import FlowService, UserContext

logger = logging.getLogger('backoffice.communications.services.communication')

CONTEXT_TYPES = tuple(CONTEXT_TABLES)
MESSAGE_TYPES = ('comment', 'system', 'status_change', 'file')
REQUEST_READERS = ('admin', 'bizdev')
MAX_MESSAGE_LENGTH = 5000


class CommunicationService:

    def __init__(self):
        self.comm_repo = CommunicationRepository()
        self.flow_service = FlowService()

    # ============== Access ==============

    def check_context(self, context_type, context_id, user: UserContext):
        """Raise unless the context exists and the user may read its thread."""
        if context_type not in CONTEXT_TYPES:
            raise ValidationError([{'field': 'context_type',
                                    'message': f"context_type must be one of: {', '.join(CONTEXT_TYPES)}"}])
        if context_type == 'flow':
            return self.flow_service.get_accessible(context_id, user)

        target = self.comm_repo.get_context_object(context_type, context_id)
        if not target:
            raise NotFoundError('Bizdev request not found')
        if user.role not in REQUEST_READERS and target.get('created_by') != user.user_id:
            raise ForbiddenError('Access denied to this bizdev request')
        return target

    def get_message(self, message_id, user: UserContext):
        message = self.comm_repo.get_by_id(message_id)
        if not message:
            raise NotFoundError('Message not found')
        self.check_context(message['context_type'], message['object_id'], user)
        return message

    # ============== Thread ==============

    def list_messages(self, context_type, context_id, filters, user: UserContext,
                      page=1, limit=50, sort_by='created_at', order='asc'):
        self.check_context(context_type, context_id, user)
        return self.comm_repo.list_messages(context_type, context_id, filters, page, limit,
                                            sort_by, order)

    def stats(self, context_type, context_id, user: UserContext):
        self.check_context(context_type, context_id, user)
        return self.comm_repo.get_stats(context_type, context_id)

    def post(self, context_type, context_id, data, user: UserContext):
        self.check_context(context_type, context_id, user)

        v = FieldValidator(data)
        v.string('message', required=True, min_len=1, max_len=MAX_MESSAGE_LENGTH)
        v.choice('message_type', MESSAGE_TYPES)
        v.boolean('is_internal')
        v.boolean('is_urgent')
        parent_id = v.integer('parent_id', min_value=1)
        v.integer('recipient_id', min_value=1)
        v.mapping('metadata')
        v.raise_if_errors()
        fields = v.cleaned

        if parent_id:
            parent = self.comm_repo.get_by_id(parent_id)
            if not parent:
                raise NotFoundError('Parent message not found')
            if parent['context_type'] != context_type or parent['object_id'] != context_id:
                raise ServiceError('Parent message belongs to a different thread')

        message = self.comm_repo.create(context_type, context_id, fields, user.user_id)
        log_with_context(logger, logging.INFO, 'Message posted', message_id=message['id'],
                         context_type=context_type, context_id=context_id, user_id=user.user_id)
        return message

    # ============== Single message ==============

    def edit(self, message_id, data, user: UserContext):
        message = self.get_message(message_id, user)
        if message['sender_id'] != user.user_id:
            raise ForbiddenError('Only the sender can edit this message')
        if (message.get('metadata') or {}).get('deleted'):
            raise ServiceError('Deleted messages cannot be edited')

        v = FieldValidator(data)
        text = v.string('message', required=True, min_len=1, max_len=MAX_MESSAGE_LENGTH)
        v.raise_if_errors()
        return self.comm_repo.update_message(message_id, text, user.user_id)

    def delete(self, message_id, user: UserContext):
        message = self.get_message(message_id, user)
        if message['sender_id'] != user.user_id and user.role != 'admin':
            raise ForbiddenError('Only the sender or an admin can delete this message')
        self.comm_repo.soft_delete(message_id, user.user_id)
        logger.info(f'Message {message_id} deleted by {user.user_id}')

    def mark_read(self, message_ids, user: UserContext):
        """Bulk mark-read; ids outside the user's threads or addressed to others are skipped."""
        return self.comm_repo.mark_read(
            message_ids, user.user_id,
            all_flows=user.role in FLOW_MANAGERS,
            all_requests=user.role in REQUEST_READERS,
        )

    def mark_one_read(self, message_id, user: UserContext):
        self.get_message(message_id, user)
        return self.mark_read([message_id], user)

    def search(self, query, user: UserContext, context_type=None, limit=50):
        if not query or len(query.strip()) < 2:
            raise ValidationError([{'field': 'q', 'message': 'q must be at least 2 characters'}])
        if context_type and context_type not in CONTEXT_TYPES:
            raise ValidationError([{'field': 'context_type',
                                    'message': f"context_type must be one of: {', '.join(CONTEXT_TYPES)}"}])
        return self.comm_repo.search(
            query.strip(), user.user_id, context_type,
            all_flows=user.role in FLOW_MANAGERS,
            all_requests=user.role in REQUEST_READERS,
            limit=limit,
        )
