"""Communication thread routes."""

from flask import request
from flask_login import login_required, current_user

from backoffice.communications import comms_bp
from backoffice.communications.services import CommunicationService
from backoffice.flows.services import UserContext
from backoffice.core.utils.api_helpers import (
    get_bool_arg, get_json_or_error, get_pagination_args, handle_api_errors, success_response,
)
from backoffice.core.utils.validation import FieldValidator

_comm_service = CommunicationService()


def _ctx():
    return UserContext.from_user(current_user)


@comms_bp.route('/api/communications/search', methods=['GET'])
@login_required
@handle_api_errors
def api_search_communications():
    """Search messages across every thread the user can read."""
    limit = min(max(request.args.get('limit', 50, type=int) or 50, 1), 100)
    results = _comm_service.search(request.args.get('q', ''), _ctx(),
                                   context_type=request.args.get('context_type'), limit=limit)
    return success_response(results, count=len(results))


@comms_bp.route('/api/communications/mark-read', methods=['POST'])
@login_required
@handle_api_errors
def api_mark_communications_read():
    data, error = get_json_or_error()
    if error:
        return error
    v = FieldValidator(data)
    ids = v.list_of_ints('ids', required=True)
    v.raise_if_errors()

    updated = _comm_service.mark_read(ids, _ctx())
    return success_response({'updated': updated}, message=f'{updated} messages marked as read')


@comms_bp.route('/api/communications/<context_type>/<int:context_id>', methods=['GET'])
@login_required
@handle_api_errors
def api_list_communications(context_type, context_id):
    filters = {
        'is_internal': get_bool_arg('is_internal'),
        'message_type': request.args.get('message_type'),
        'sender_id': request.args.get('sender_id', type=int),
        'search': request.args.get('search'),
    }
    page, limit = get_pagination_args(default_limit=50)
    messages, pagination = _comm_service.list_messages(
        context_type, context_id, filters, _ctx(), page, limit,
        sort_by=request.args.get('sort_by', 'created_at'),
        order=request.args.get('order', 'asc'),
    )
    return success_response(messages, pagination=pagination)


@comms_bp.route('/api/communications/<context_type>/<int:context_id>', methods=['POST'])
@login_required
@handle_api_errors
def api_post_communication(context_type, context_id):
    data, error = get_json_or_error()
    if error:
        return error
    message = _comm_service.post(context_type, context_id, data, _ctx())
    return success_response(message, 201, message='Message posted')


@comms_bp.route('/api/communications/<context_type>/<int:context_id>/stats', methods=['GET'])
@login_required
@handle_api_errors
def api_communication_stats(context_type, context_id):
    return success_response(_comm_service.stats(context_type, context_id, _ctx()))


@comms_bp.route('/api/communications/<int:message_id>/read', methods=['PATCH'])
@login_required
@handle_api_errors
def api_mark_communication_read(message_id):
    updated = _comm_service.mark_one_read(message_id, _ctx())
    return success_response({'updated': updated}, message='Message marked as read')


@comms_bp.route('/api/communications/<int:message_id>', methods=['PUT'])
@login_required
@handle_api_errors
def api_edit_communication(message_id):
    data, error = get_json_or_error()
    if error:
        return error
    return success_response(_comm_service.edit(message_id, data, _ctx()), message='Message updated')


@comms_bp.route('/api/communications/<int:message_id>', methods=['DELETE'])
@login_required
@handle_api_errors
def api_delete_communication(message_id):
    _comm_service.delete(message_id, _ctx())
    return success_response(message='Message deleted')
