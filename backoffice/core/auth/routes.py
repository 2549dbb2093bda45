"""Auth module routes.

Registration, login, current-user profile and password management.
"""
import logging

from flask import jsonify, request
from flask_login import login_required, current_user

from . import auth_bp
from .models import ROLES
from .services import AuthService
from backoffice.core.utils.api_helpers import (
    RateLimiter, error_response, get_json_or_error, handle_api_errors, success_response,
)
from backoffice.core.utils.validation import FieldValidator

_auth_service = AuthService()
_auth_limiter = RateLimiter()
logger = logging.getLogger('backoffice.core.auth.routes')

USERNAME_PATTERN = r'[A-Za-z0-9_]+'


def _result_response(result):
    if not result.success:
        return error_response(result.error, result.status_code)
    data = {'user': result.user_data}
    if result.token:
        data['token'] = result.token
    return success_response(data, result.status_code)


def _caller_is_admin():
    return current_user.is_authenticated and current_user.role == 'admin'


# ============== AUTHENTICATION ROUTES ==============

@auth_bp.route('/api/auth/register', methods=['POST'])
@handle_api_errors
def api_register():
    """Create an account and return it with a token."""
    data, error = get_json_or_error()
    if error:
        return error

    v = FieldValidator(data)
    username = v.string('username', required=True, min_len=3, max_len=50, pattern=USERNAME_PATTERN,
                        pattern_message='username may contain only letters, digits and underscores')
    email = v.email('email', required=True)
    password = v.string('password', required=True, min_len=6, max_len=128)
    v.string('first_name', max_len=100)
    v.string('last_name', max_len=100)
    v.choice('role', ROLES)
    v.raise_if_errors()

    profile = {k: v.cleaned[k] for k in ('first_name', 'last_name', 'role') if v.cleaned.get(k)}
    # Self-registration always yields a plain user; only an admin may hand out roles
    if profile.get('role', 'user') != 'user' and not _caller_is_admin():
        logger.warning(f"Ignored role '{profile['role']}' requested by self-registration of {username} "
                       f"from {request.remote_addr}")
        profile.pop('role')
    return _result_response(_auth_service.register(username, email, password, **profile))


@auth_bp.route('/api/auth/login', methods=['POST'])
@handle_api_errors
def api_login():
    """Log in with username or email. Rate limited per IP."""
    allowed, retry_after = _auth_limiter.is_allowed(
        f'login:{request.remote_addr}', max_requests=10, window_seconds=300)
    if not allowed:
        response = jsonify({'success': False,
                            'message': f'Too many login attempts. Try again in {retry_after} seconds.'})
        response.headers['Retry-After'] = str(retry_after)
        return response, 429

    data, error = get_json_or_error()
    if error:
        return error

    login = (data.get('username') or data.get('email') or '').strip()
    return _result_response(_auth_service.login(login, data.get('password') or ''))


@auth_bp.route('/api/auth/me', methods=['GET'])
@login_required
@handle_api_errors
def api_me():
    """Current user profile with team and department names."""
    user = _auth_service.user_repo.get_by_id(current_user.id)
    if not user:
        return error_response('User not found', 404)
    return success_response(user)


@auth_bp.route('/api/auth/password', methods=['PUT'])
@login_required
@handle_api_errors
def api_change_password():
    data, error = get_json_or_error()
    if error:
        return error

    result = _auth_service.change_password(
        current_user.id, data.get('current_password', ''), data.get('new_password', ''))
    if not result.success:
        return error_response(result.error, result.status_code)
    return success_response(message='Password changed successfully')


@auth_bp.route('/api/auth/profile', methods=['PUT'])
@login_required
@handle_api_errors
def api_update_profile():
    """Update own name, email, phone and position."""
    data, error = get_json_or_error()
    if error:
        return error

    v = FieldValidator(data, partial=True)
    v.string('first_name', max_len=100)
    v.string('last_name', max_len=100)
    v.email('email')
    v.string('phone', max_len=50)
    v.string('position', max_len=100)
    v.raise_if_errors()

    user = _auth_service.update_profile(current_user.id, v.cleaned)
    return success_response(user, message='Profile updated')
