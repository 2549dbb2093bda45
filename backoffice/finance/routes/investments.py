"""Investment operation routes (admin and finance only)."""

import datetime as dt
from flask import request
from flask_login import login_required, current_user

from backoffice.finance import finance_bp
from backoffice.finance.services import InvestmentService
from backoffice.core.auth.models import FINANCE_ROLES
from backoffice.core.utils.api_helpers import (
    admin_required, error_response, get_json_or_error, get_pagination_args, handle_api_errors,
    role_required, success_response,
)

_investment_service = InvestmentService()


@finance_bp.route('/api/investment-operations', methods=['GET'])
@login_required
@role_required(*FINANCE_ROLES)
@handle_api_errors
def api_list_investment_operations():
    filters = {
        'operation_type': request.args.get('operation_type'),
        'operator': request.args.get('operator'),
        'network': request.args.get('network'),
        'token': request.args.get('token'),
        'date_from': request.args.get('date_from'),
        'date_to': request.args.get('date_to'),
    }
    page, limit = get_pagination_args()
    operations, pagination = _investment_service.investment_repo.list_operations(
        filters, page, limit,
        sort_by=request.args.get('sort_by', 'operation_date'),
        order=request.args.get('order', 'desc'),
    )
    return success_response(operations, pagination=pagination)


@finance_bp.route('/api/investment-operations/stats', methods=['GET'])
@login_required
@role_required(*FINANCE_ROLES)
@handle_api_errors
def api_investment_stats():
    """Totals with incoming, outgoing, fees and balance, overall and per operator/network/token."""
    return success_response(_investment_service.investment_repo.get_stats(
        request.args.get('date_from'), request.args.get('date_to')))


@finance_bp.route('/api/investment-operations/stats/monthly', methods=['GET'])
@login_required
@role_required(*FINANCE_ROLES)
@handle_api_errors
def api_investment_monthly():
    year = request.args.get('year', dt.date.today().year, type=int)
    if not 2000 <= year <= 2100:
        return error_response('year must be between 2000 and 2100', 400)
    return success_response(_investment_service.investment_repo.get_monthly(year))


@finance_bp.route('/api/investment-operations/<int:operation_id>', methods=['GET'])
@login_required
@role_required(*FINANCE_ROLES)
@handle_api_errors
def api_get_investment_operation(operation_id):
    return success_response(_investment_service.get(operation_id))


@finance_bp.route('/api/investment-operations', methods=['POST'])
@login_required
@role_required(*FINANCE_ROLES)
@handle_api_errors
def api_create_investment_operation():
    data, error = get_json_or_error()
    if error:
        return error
    operation = _investment_service.create(data, current_user.id)
    return success_response(operation, 201, message='Operation created')


@finance_bp.route('/api/investment-operations/<int:operation_id>', methods=['PUT'])
@login_required
@role_required(*FINANCE_ROLES)
@handle_api_errors
def api_update_investment_operation(operation_id):
    data, error = get_json_or_error()
    if error:
        return error
    return success_response(_investment_service.update(operation_id, data),
                            message='Operation updated')


@finance_bp.route('/api/investment-operations/<int:operation_id>', methods=['DELETE'])
@login_required
@admin_required
@handle_api_errors
def api_delete_investment_operation(operation_id):
    _investment_service.delete(operation_id)
    return success_response(message='Operation deleted')
