"""Flow CRUD, status toggles and flow user assignment."""

import logging
from flask import request
from flask_login import login_required, current_user

from backoffice.flows import flows_bp
from backoffice.flows.services import FlowService, UserContext
from backoffice.core.auth.models import FLOW_MANAGERS
from backoffice.core.utils.api_helpers import (
    get_bool_arg, get_json_or_error, get_pagination_args, handle_api_errors, role_required,
    success_response,
)
from backoffice.core.utils.validation import FieldValidator

logger = logging.getLogger('backoffice.flows.routes.flows')

_flow_service = FlowService()


def _ctx():
    return UserContext.from_user(current_user)


# ---- Flows CRUD ----

@flows_bp.route('/api/flows', methods=['GET'])
@login_required
@handle_api_errors
def api_list_flows():
    """List flows with optional filters. Buyers only see their own flows."""
    filters = {
        'status': request.args.get('status'),
        'flow_type': request.args.get('flow_type'),
        'kpi_metric': request.args.get('kpi_metric'),
        'brand_id': request.args.get('brand_id', type=int),
        'geo_id': request.args.get('geo_id', type=int),
        'team_id': request.args.get('team_id', type=int),
        'is_active': get_bool_arg('is_active'),
        'search': request.args.get('search'),
        'date_from': request.args.get('date_from'),
        'date_to': request.args.get('date_to'),
        'visible_to_user_id': _flow_service.visibility_filter(_ctx()),
    }
    page, limit = get_pagination_args()
    flows, pagination = _flow_service.flow_repo.list_flows(
        filters, page, limit,
        sort_by=request.args.get('sort_by', 'created_at'),
        order=request.args.get('order', 'desc'),
    )
    return success_response(flows, pagination=pagination)


@flows_bp.route('/api/flows/stats/overview', methods=['GET'])
@login_required
@handle_api_errors
def api_flows_overview():
    overview = _flow_service.flow_repo.get_overview(_flow_service.visibility_filter(_ctx()))
    return success_response(overview)


@flows_bp.route('/api/flows/<int:flow_id>', methods=['GET'])
@login_required
@handle_api_errors
def api_get_flow(flow_id):
    flow = _flow_service.get_accessible(flow_id, _ctx())
    flow['users'] = _flow_service.flow_user_repo.get_by_flow(flow_id, only_active=True)
    return success_response(flow)


@flows_bp.route('/api/flows', methods=['POST'])
@login_required
@role_required(*FLOW_MANAGERS)
@handle_api_errors
def api_create_flow():
    data, error = get_json_or_error()
    if error:
        return error

    flow = _flow_service.create(data, _ctx())
    return success_response(flow, 201, message='Flow created')


@flows_bp.route('/api/flows/<int:flow_id>', methods=['PUT'])
@login_required
@role_required(*FLOW_MANAGERS)
@handle_api_errors
def api_update_flow(flow_id):
    data, error = get_json_or_error()
    if error:
        return error

    flow = _flow_service.update(flow_id, data, _ctx())
    return success_response(flow, message='Flow updated')


@flows_bp.route('/api/flows/<int:flow_id>', methods=['DELETE'])
@login_required
@role_required(*FLOW_MANAGERS)
@handle_api_errors
def api_delete_flow(flow_id):
    _flow_service.delete(flow_id, _ctx())
    return success_response(message='Flow deleted')


@flows_bp.route('/api/flows/<int:flow_id>/status', methods=['PATCH'])
@login_required
@role_required(*FLOW_MANAGERS)
@handle_api_errors
def api_flow_status(flow_id):
    data, error = get_json_or_error()
    if error:
        return error

    flow = _flow_service.set_status(flow_id, data.get('status'), _ctx())
    return success_response(flow, message='Flow status updated')


@flows_bp.route('/api/flows/<int:flow_id>/active', methods=['PATCH'])
@login_required
@role_required(*FLOW_MANAGERS)
@handle_api_errors
def api_flow_active(flow_id):
    data, error = get_json_or_error()
    if error:
        return error

    v = FieldValidator(data)
    is_active = v.boolean('is_active', required=True)
    v.raise_if_errors()

    flow = _flow_service.set_active(flow_id, is_active, _ctx())
    return success_response(flow, message='Flow activated' if is_active else 'Flow deactivated')


# ---- Flow users ----

@flows_bp.route('/api/flows/<int:flow_id>/users', methods=['GET'])
@login_required
@handle_api_errors
def api_flow_users(flow_id):
    _flow_service.get_accessible(flow_id, _ctx())
    only_active = get_bool_arg('only_active')
    return success_response(_flow_service.flow_user_repo.get_by_flow(flow_id, bool(only_active)))


@flows_bp.route('/api/flows/<int:flow_id>/users', methods=['POST'])
@login_required
@role_required(*FLOW_MANAGERS)
@handle_api_errors
def api_add_flow_user(flow_id):
    data, error = get_json_or_error()
    if error:
        return error

    v = FieldValidator(data)
    user_id = v.integer('user_id', required=True, min_value=1)
    notes = v.string('notes', max_len=1000)
    v.raise_if_errors()

    member = _flow_service.add_user(flow_id, user_id, _ctx(), notes)
    return success_response(member, 201, message='User added to flow')


@flows_bp.route('/api/flows/<int:flow_id>/users/<int:user_id>', methods=['DELETE'])
@login_required
@role_required(*FLOW_MANAGERS)
@handle_api_errors
def api_remove_flow_user(flow_id, user_id):
    _flow_service.remove_user(flow_id, user_id, _ctx())
    return success_response(message='User removed from flow')
