"""User management routes.

Listing is open to managers; everything that changes a user is admin only.
A non-admin may read their own record, and a teamlead also the records of
their team.
"""
import logging

from flask import request
from flask_login import login_required, current_user

from . import users_bp
from backoffice.core.auth.models import ROLES
from backoffice.core.auth.repositories import UserRepository
from backoffice.core.auth.routes import USERNAME_PATTERN
from backoffice.core.organization.repositories import TeamRepository, DepartmentRepository
from backoffice.core.utils.api_helpers import (
    admin_required, error_response, get_bool_arg, get_json_or_error, get_pagination_args,
    handle_api_errors, role_required, success_response,
)
from backoffice.core.utils.validation import FieldValidator

logger = logging.getLogger('backoffice.users.routes')

_user_repo = UserRepository()
_team_repo = TeamRepository()
_department_repo = DepartmentRepository()


def _can_view_user(user):
    if current_user.role in ('admin', 'finance_manager', 'bizdev'):
        return True
    if user['id'] == current_user.id:
        return True
    return current_user.role == 'teamlead' and user.get('team_id') == current_user.team_id


def _validate_user(data, partial=False):
    v = FieldValidator(data, partial=partial)
    v.string('username', required=True, min_len=3, max_len=50, pattern=USERNAME_PATTERN,
             pattern_message='username may contain only letters, digits and underscores')
    v.email('email', required=True)
    if not partial:
        v.string('password', required=True, min_len=6, max_len=128)
    v.string('first_name', max_len=100)
    v.string('last_name', max_len=100)
    v.choice('role', ROLES)
    team_id = v.integer('team_id', min_value=1)
    department_id = v.integer('department_id', min_value=1)
    v.string('position', max_len=100)
    v.string('phone', max_len=50)
    v.string('telegram_id', max_len=100)
    if team_id and not _team_repo.get(team_id):
        v.add_error('team_id', 'Team does not exist')
    if department_id and not _department_repo.get(department_id):
        v.add_error('department_id', 'Department does not exist')
    v.raise_if_errors()
    return v.cleaned


@users_bp.route('/api/users', methods=['GET'])
@login_required
@role_required('admin', 'teamlead', 'finance_manager', 'bizdev')
@handle_api_errors
def api_list_users():
    """List users. Teamleads only ever see their own team."""
    filters = {
        'role': request.args.get('role'),
        'team_id': request.args.get('team_id', type=int),
        'department_id': request.args.get('department_id', type=int),
        'is_active': get_bool_arg('is_active'),
        'search': request.args.get('search'),
    }
    if current_user.role == 'teamlead':
        filters['team_id'] = current_user.team_id or -1

    page, limit = get_pagination_args()
    users, pagination = _user_repo.list_users(
        filters, page, limit,
        sort_by=request.args.get('sort_by', 'created_at'),
        order=request.args.get('order', 'desc'),
    )
    return success_response(users, pagination=pagination)


@users_bp.route('/api/users/<int:user_id>', methods=['GET'])
@login_required
@handle_api_errors
def api_get_user(user_id):
    user = _user_repo.get_by_id(user_id)
    if not user:
        return error_response('User not found', 404)
    if not _can_view_user(user):
        return error_response('Access denied to this user', 403)
    return success_response(user)


@users_bp.route('/api/users', methods=['POST'])
@login_required
@admin_required
@handle_api_errors
def api_create_user():
    data, error = get_json_or_error()
    if error:
        return error

    fields = _validate_user(data)
    if _user_repo.username_exists(fields['username']):
        return error_response('Username is already taken', 409)
    if _user_repo.email_exists(fields['email']):
        return error_response('Email is already registered', 409)

    user = _user_repo.create(**fields)
    logger.info(f'User {user["username"]} created by {current_user.id}')
    return success_response(user, 201, message='User created')


@users_bp.route('/api/users/<int:user_id>', methods=['PUT'])
@login_required
@admin_required
@handle_api_errors
def api_update_user(user_id):
    data, error = get_json_or_error()
    if error:
        return error

    if not _user_repo.get_by_id(user_id):
        return error_response('User not found', 404)

    fields = _validate_user(data, partial=True)
    if fields.get('username') and _user_repo.username_exists(fields['username'], exclude_id=user_id):
        return error_response('Username is already taken', 409)
    if fields.get('email') and _user_repo.email_exists(fields['email'], exclude_id=user_id):
        return error_response('Email is already registered', 409)

    return success_response(_user_repo.update(user_id, **fields), message='User updated')


@users_bp.route('/api/users/<int:user_id>', methods=['DELETE'])
@login_required
@admin_required
@handle_api_errors
def api_deactivate_user(user_id):
    """Users are never hard-deleted: flow stats and salaries reference them."""
    if user_id == current_user.id:
        return error_response('You cannot deactivate your own account', 400)
    if not _user_repo.set_active(user_id, False):
        return error_response('User not found', 404)
    logger.info(f'User {user_id} deactivated by {current_user.id}')
    return success_response(message='User deactivated')


@users_bp.route('/api/users/<int:user_id>/activate', methods=['PATCH'])
@login_required
@admin_required
@handle_api_errors
def api_activate_user(user_id):
    if not _user_repo.set_active(user_id, True):
        return error_response('User not found', 404)
    return success_response(_user_repo.get_by_id(user_id), message='User activated')


@users_bp.route('/api/users/<int:user_id>/role', methods=['PATCH'])
@login_required
@admin_required
@handle_api_errors
def api_update_user_role(user_id):
    data, error = get_json_or_error()
    if error:
        return error

    v = FieldValidator(data)
    role = v.choice('role', ROLES, required=True)
    v.raise_if_errors()

    if user_id == current_user.id and role != 'admin':
        return error_response('You cannot remove your own admin role', 400)
    if not _user_repo.update_role(user_id, role):
        return error_response('User not found', 404)
    logger.info(f'User {user_id} role changed to {role} by {current_user.id}')
    return success_response(_user_repo.get_by_id(user_id), message='Role updated')
