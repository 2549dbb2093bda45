"""Organization module API routes.

Teams (with members and monthly stats) and departments.
"""
import datetime as dt

from flask import request
from flask_login import login_required, current_user

from . import org_bp
from .repositories import TeamRepository, DepartmentRepository
from .repositories.department_repository import DEPARTMENT_TYPES
from backoffice.core.auth.repositories import UserRepository
from backoffice.core.utils.api_helpers import (
    admin_required, error_response, get_bool_arg, get_json_or_error, handle_api_errors,
    success_response,
)
from backoffice.core.utils.validation import FieldValidator

_team_repo = TeamRepository()
_department_repo = DepartmentRepository()
_user_repo = UserRepository()


# ============== TEAMS ==============

@org_bp.route('/api/teams', methods=['GET'])
@login_required
@handle_api_errors
def api_list_teams():
    """All teams with member counts and team lead."""
    return success_response(_team_repo.get_all())


@org_bp.route('/api/teams/<int:team_id>', methods=['GET'])
@login_required
@handle_api_errors
def api_get_team(team_id):
    team = _team_repo.get(team_id)
    if not team:
        return error_response('Team not found', 404)
    team['members'] = _team_repo.get_members(team_id)
    return success_response(team)


def _validate_team(data, partial=False):
    v = FieldValidator(data, partial=partial)
    v.string('name', required=True, min_len=2, max_len=100)
    v.string('description', max_len=1000)
    lead_id = v.integer('team_lead_id', min_value=1)
    if lead_id and not _user_repo.get_by_id(lead_id):
        v.add_error('team_lead_id', 'Team lead user does not exist')
    v.raise_if_errors()
    return v.cleaned


@org_bp.route('/api/teams', methods=['POST'])
@login_required
@admin_required
@handle_api_errors
def api_create_team():
    data, error = get_json_or_error()
    if error:
        return error

    fields = _validate_team(data)
    if _team_repo.name_exists(fields['name']):
        return error_response('Team with this name already exists', 409)

    team = _team_repo.create(fields['name'], fields.get('description'), fields.get('team_lead_id'))
    return success_response(team, 201, message='Team created')


@org_bp.route('/api/teams/<int:team_id>', methods=['PUT'])
@login_required
@admin_required
@handle_api_errors
def api_update_team(team_id):
    data, error = get_json_or_error()
    if error:
        return error

    if not _team_repo.get(team_id):
        return error_response('Team not found', 404)

    fields = _validate_team(data, partial=True)
    if fields.get('name') and _team_repo.name_exists(fields['name'], exclude_id=team_id):
        return error_response('Team with this name already exists', 409)

    return success_response(_team_repo.update(team_id, **fields), message='Team updated')


@org_bp.route('/api/teams/<int:team_id>', methods=['DELETE'])
@login_required
@admin_required
@handle_api_errors
def api_delete_team(team_id):
    if not _team_repo.get(team_id):
        return error_response('Team not found', 404)
    if _team_repo.count_users(team_id) > 0:
        return error_response('Cannot delete a team that still has users', 400)
    _team_repo.delete(team_id)
    return success_response(message='Team deleted')


@org_bp.route('/api/teams/<int:team_id>/stats', methods=['GET'])
@login_required
@handle_api_errors
def api_team_stats(team_id):
    """Team counters and spend for ?month=&year= (defaults to the current month)."""
    if current_user.role != 'admin':
        if current_user.role != 'teamlead' or current_user.team_id != team_id:
            return error_response('Access denied to this team', 403)

    if not _team_repo.get(team_id):
        return error_response('Team not found', 404)

    today = dt.date.today()
    month = request.args.get('month', today.month, type=int)
    year = request.args.get('year', today.year, type=int)
    if not 1 <= month <= 12:
        return error_response('month must be between 1 and 12', 400)
    return success_response(_team_repo.get_stats(team_id, month, year))


# ============== DEPARTMENTS ==============

@org_bp.route('/api/departments', methods=['GET'])
@login_required
@handle_api_errors
def api_list_departments():
    return success_response(_department_repo.get_all(
        is_active=get_bool_arg('is_active'), dept_type=request.args.get('type')))


@org_bp.route('/api/departments/<int:department_id>', methods=['GET'])
@login_required
@handle_api_errors
def api_get_department(department_id):
    department = _department_repo.get(department_id)
    if not department:
        return error_response('Department not found', 404)
    return success_response(department)


def _validate_department(data, partial=False):
    v = FieldValidator(data, partial=partial)
    v.string('name', required=True, min_len=2, max_len=100)
    v.string('description', max_len=1000)
    v.choice('type', DEPARTMENT_TYPES)
    v.boolean('is_active')
    v.raise_if_errors()
    return v.cleaned


@org_bp.route('/api/departments', methods=['POST'])
@login_required
@admin_required
@handle_api_errors
def api_create_department():
    data, error = get_json_or_error()
    if error:
        return error

    fields = _validate_department(data)
    if _department_repo.name_exists(fields['name']):
        return error_response('Department with this name already exists', 409)

    department = _department_repo.create(
        fields['name'], fields.get('description'), fields.get('type') or 'other')
    return success_response(department, 201, message='Department created')


@org_bp.route('/api/departments/<int:department_id>', methods=['PUT'])
@login_required
@admin_required
@handle_api_errors
def api_update_department(department_id):
    data, error = get_json_or_error()
    if error:
        return error

    if not _department_repo.get(department_id):
        return error_response('Department not found', 404)

    fields = _validate_department(data, partial=True)
    if fields.get('name') and _department_repo.name_exists(fields['name'], exclude_id=department_id):
        return error_response('Department with this name already exists', 409)

    return success_response(_department_repo.update(department_id, **fields),
                            message='Department updated')


@org_bp.route('/api/departments/<int:department_id>/status', methods=['PATCH'])
@login_required
@admin_required
@handle_api_errors
def api_department_status(department_id):
    data, error = get_json_or_error()
    if error:
        return error

    v = FieldValidator(data)
    is_active = v.boolean('is_active', required=True)
    v.raise_if_errors()

    department = _department_repo.set_active(department_id, is_active)
    if not department:
        return error_response('Department not found', 404)
    return success_response(department,
                            message='Department activated' if is_active else 'Department deactivated')


@org_bp.route('/api/departments/<int:department_id>', methods=['DELETE'])
@login_required
@admin_required
@handle_api_errors
def api_delete_department(department_id):
    if not _department_repo.get(department_id):
        return error_response('Department not found', 404)

    usage = _department_repo.usage(department_id)
    if usage['users_count'] or usage['expense_types_count']:
        return error_response(
            f"Department is in use by {usage['users_count']} users and "
            f"{usage['expense_types_count']} expense types", 400)

    _department_repo.delete(department_id)
    return success_response(message='Department deleted')


@org_bp.route('/api/departments/<int:department_id>/stats', methods=['GET'])
@login_required
@handle_api_errors
def api_department_stats(department_id):
    if not _department_repo.get(department_id):
        return error_response('Department not found', 404)
    return success_response(_department_repo.get_stats(department_id))
