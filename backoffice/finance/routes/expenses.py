"""Expense type and expense routes."""

from flask import request
from flask_login import login_required, current_user

from backoffice.finance import finance_bp
from backoffice.finance.services import ExpenseService
from backoffice.flows.services import UserContext
from backoffice.core.auth.models import FINANCE_ROLES
from backoffice.core.utils.api_helpers import (
    admin_required, error_response, get_bool_arg, get_json_or_error, get_pagination_args, handle_api_errors,
    role_required, success_response,
)
from backoffice.core.utils.validation import FieldValidator

_expense_service = ExpenseService()


def _expense_filters():
    return {
        'department_id': request.args.get('department_id', type=int),
        'expense_type_id': request.args.get('expense_type_id', type=int),
        'user_id': request.args.get('user_id', type=int),
        'status': request.args.get('status'),
        'date_from': request.args.get('date_from'),
        'date_to': request.args.get('date_to'),
    }


# ---- Expense types ----

@finance_bp.route('/api/expense-types', methods=['GET'])
@login_required
@handle_api_errors
def api_list_expense_types():
    return success_response(_expense_service.type_repo.get_all(
        department_id=request.args.get('department_id', type=int),
        is_active=get_bool_arg('is_active'),
    ))


@finance_bp.route('/api/expense-types/stats', methods=['GET'])
@login_required
@role_required(*FINANCE_ROLES)
@handle_api_errors
def api_expense_type_stats():
    return success_response(_expense_service.type_repo.get_stats())


@finance_bp.route('/api/expense-types/<int:type_id>', methods=['GET'])
@login_required
@handle_api_errors
def api_get_expense_type(type_id):
    return success_response(_expense_service.get_type(type_id))


@finance_bp.route('/api/expense-types', methods=['POST'])
@login_required
@admin_required
@handle_api_errors
def api_create_expense_type():
    data, error = get_json_or_error()
    if error:
        return error
    return success_response(_expense_service.save_type(data), 201, message='Expense type created')


@finance_bp.route('/api/expense-types/<int:type_id>', methods=['PUT'])
@login_required
@admin_required
@handle_api_errors
def api_update_expense_type(type_id):
    data, error = get_json_or_error()
    if error:
        return error
    return success_response(_expense_service.save_type(data, type_id),
                            message='Expense type updated')


@finance_bp.route('/api/expense-types/<int:type_id>/status', methods=['PATCH'])
@login_required
@admin_required
@handle_api_errors
def api_expense_type_status(type_id):
    data, error = get_json_or_error()
    if error:
        return error
    v = FieldValidator(data)
    is_active = v.boolean('is_active', required=True)
    v.raise_if_errors()
    return success_response(_expense_service.set_type_status(type_id, is_active),
                            message='Expense type status updated')


@finance_bp.route('/api/expense-types/<int:type_id>', methods=['DELETE'])
@login_required
@admin_required
@handle_api_errors
def api_delete_expense_type(type_id):
    _expense_service.delete_type(type_id)
    return success_response(message='Expense type deleted')


# ---- Expenses ----

@finance_bp.route('/api/expenses', methods=['GET'])
@login_required
@handle_api_errors
def api_list_expenses():
    """Finance roles see every expense; everyone else sees their own."""
    filters = _expense_filters()
    if current_user.role not in FINANCE_ROLES:
        filters['user_id'] = current_user.id
    page, limit = get_pagination_args()
    expenses, pagination = _expense_service.expense_repo.list_expenses(
        filters, page, limit,
        sort_by=request.args.get('sort_by', 'expense_date'),
        order=request.args.get('order', 'desc'),
    )
    return success_response(expenses, pagination=pagination)


@finance_bp.route('/api/expenses/summary', methods=['GET'])
@login_required
@role_required(*FINANCE_ROLES)
@handle_api_errors
def api_expenses_summary():
    return success_response(_expense_service.expense_repo.get_summary(_expense_filters()))


@finance_bp.route('/api/expenses/<int:expense_id>', methods=['GET'])
@login_required
@handle_api_errors
def api_get_expense(expense_id):
    expense = _expense_service.get(expense_id)
    if expense['user_id'] != current_user.id and current_user.role not in FINANCE_ROLES:
        return error_response('Access denied to this expense', 403)
    return success_response(expense)


@finance_bp.route('/api/expenses', methods=['POST'])
@login_required
@handle_api_errors
def api_create_expense():
    data, error = get_json_or_error()
    if error:
        return error
    expense = _expense_service.create(data, UserContext.from_user(current_user))
    return success_response(expense, 201, message='Expense created')


@finance_bp.route('/api/expenses/<int:expense_id>', methods=['PUT'])
@login_required
@handle_api_errors
def api_update_expense(expense_id):
    data, error = get_json_or_error()
    if error:
        return error
    expense = _expense_service.update(expense_id, data, UserContext.from_user(current_user))
    return success_response(expense, message='Expense updated')


@finance_bp.route('/api/expenses/<int:expense_id>', methods=['DELETE'])
@login_required
@role_required(*FINANCE_ROLES)
@handle_api_errors
def api_delete_expense(expense_id):
    _expense_service.delete(expense_id)
    return success_response(message='Expense deleted')
