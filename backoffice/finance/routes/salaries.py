"""Salary routes: listing, lifecycle, monthly generation, templates and wallets."""

import logging
from flask import request
from flask_login import login_required, current_user

from backoffice.finance import finance_bp
from backoffice.finance.services import SalaryService
from backoffice.flows.services import UserContext
from backoffice.core.auth.models import FINANCE_ROLES
from backoffice.core.utils.api_helpers import (
    admin_required, get_bool_arg, get_json_or_error, get_pagination_args, handle_api_errors,
    role_required, success_response,
)

logger = logging.getLogger('backoffice.finance.routes.salaries')

_salary_service = SalaryService()


def _ctx():
    return UserContext.from_user(current_user)


def _list_filters():
    return {
        'user_id': request.args.get('user_id', type=int),
        'team_id': request.args.get('team_id', type=int),
        'status': request.args.get('status'),
        'month': request.args.get('month', type=int),
        'year': request.args.get('year', type=int),
    }


@finance_bp.route('/api/salaries', methods=['GET'])
@login_required
@handle_api_errors
def api_list_salaries():
    filters = _salary_service.scope_filters(_list_filters(), _ctx())
    page, limit = get_pagination_args()
    salaries, pagination = _salary_service.salary_repo.list_salaries(
        filters, page, limit,
        sort_by=request.args.get('sort_by', 'period'),
        order=request.args.get('order', 'desc'),
    )
    return success_response(salaries, pagination=pagination)


@finance_bp.route('/api/salaries/stats', methods=['GET'])
@login_required
@handle_api_errors
def api_salary_stats():
    filters = _salary_service.scope_filters(_list_filters(), _ctx())
    return success_response(_salary_service.salary_repo.get_stats(filters))


@finance_bp.route('/api/salaries/templates', methods=['GET'])
@login_required
@role_required(*FINANCE_ROLES)
@handle_api_errors
def api_salary_templates():
    only_active = bool(get_bool_arg('only_active'))
    return success_response(_salary_service.template_repo.get_all(only_active=only_active))


@finance_bp.route('/api/salaries/templates/<int:user_id>', methods=['PUT'])
@login_required
@role_required(*FINANCE_ROLES)
@handle_api_errors
def api_save_salary_template(user_id):
    data, error = get_json_or_error()
    if error:
        return error
    return success_response(_salary_service.save_template(user_id, data),
                            message='Salary template saved')


@finance_bp.route('/api/salaries/wallet/<int:user_id>', methods=['PUT'])
@login_required
@handle_api_errors
def api_update_salary_wallet(user_id):
    data, error = get_json_or_error()
    if error:
        return error
    return success_response(_salary_service.update_wallet(user_id, data, _ctx()),
                            message='Wallet updated')


@finance_bp.route('/api/salaries/generate', methods=['POST'])
@login_required
@role_required(*FINANCE_ROLES)
@handle_api_errors
def api_generate_salaries():
    """Create pending salaries for {month, year} from active templates."""
    data, error = get_json_or_error()
    if error:
        return error
    result = _salary_service.generate(data, _ctx())
    return success_response(
        result, 201 if result['created'] else 200,
        message=f"{result['created']} salaries created, {result['skipped']} skipped")


@finance_bp.route('/api/salaries/<int:salary_id>', methods=['GET'])
@login_required
@handle_api_errors
def api_get_salary(salary_id):
    return success_response(_salary_service.get(salary_id, _ctx()))


@finance_bp.route('/api/salaries', methods=['POST'])
@login_required
@role_required(*FINANCE_ROLES)
@handle_api_errors
def api_create_salary():
    data, error = get_json_or_error()
    if error:
        return error
    salary = _salary_service.create(data, _ctx())
    return success_response(salary, 201, message='Salary created')


@finance_bp.route('/api/salaries/<int:salary_id>', methods=['PUT'])
@login_required
@role_required(*FINANCE_ROLES)
@handle_api_errors
def api_update_salary(salary_id):
    data, error = get_json_or_error()
    if error:
        return error
    return success_response(_salary_service.update(salary_id, data, _ctx()),
                            message='Salary updated')


@finance_bp.route('/api/salaries/<int:salary_id>/status', methods=['PATCH'])
@login_required
@role_required(*FINANCE_ROLES)
@handle_api_errors
def api_salary_status(salary_id):
    data, error = get_json_or_error()
    if error:
        return error
    salary = _salary_service.change_status(salary_id, data, _ctx())
    return success_response(salary, message=f"Salary {salary['status']}")


@finance_bp.route('/api/salaries/<int:salary_id>', methods=['DELETE'])
@login_required
@admin_required
@handle_api_errors
def api_delete_salary(salary_id):
    _salary_service.delete(salary_id)
    return success_response(message='Salary deleted')
