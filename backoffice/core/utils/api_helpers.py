"""Shared API utilities: decorators, response envelope, error helpers, rate limiter.

Every endpoint answers with the same envelope:
    {'success': True, 'data': ...}
    {'success': False, 'message': ...}
    {'success': False, 'message': 'Validation failed', 'errors': [{'field': ..., 'message': ...}]}
"""
import time
import logging
import traceback
from collections import defaultdict
from functools import wraps

from flask import current_app, jsonify, request
from flask_login import current_user
from werkzeug.exceptions import HTTPException

from backoffice.core.exceptions import ServiceError, ValidationError

logger = logging.getLogger('backoffice.api')


# ============== Responses ==============

def success_response(data=None, status_code=200, message=None, **extra):
    body = {'success': True}
    if data is not None:
        body['data'] = data
    if message:
        body['message'] = message
    body.update(extra)
    return jsonify(body), status_code


def error_response(message, status_code=400):
    return jsonify({'success': False, 'message': message}), status_code


def validation_error(errors, message='Validation failed'):
    """400 with field-level errors: [{'field': 'name', 'message': '...'}]."""
    return jsonify({'success': False, 'message': message, 'errors': errors}), 400


# ============== Decorators ==============

def role_required(*roles):
    """Allow the request only when current_user.role is one of `roles`.

    Usage:
        @bp.route('/api/brands', methods=['POST'])
        @login_required
        @role_required('admin', 'bizdev')
        def api_create_brand(): ...
    """
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            if not current_user.is_authenticated:
                return error_response('Authentication required', 401)
            role = getattr(current_user, 'role', None)
            if not role:
                return error_response('User role is not defined', 401)
            if role not in roles:
                logger.warning(f'Role {role} denied for {request.method} {request.path}')
                return error_response(f"Access denied. Required roles: {', '.join(roles)}", 403)
            return f(*args, **kwargs)
        return decorated
    return decorator


admin_required = role_required('admin')


def handle_api_errors(f):
    """Turn exceptions escaping a route into the JSON error envelope."""
    @wraps(f)
    def decorated(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except HTTPException:
            raise
        except Exception as e:
            return safe_error_response(e)
    return decorated


# ============== Request Parsing ==============

def get_json_or_error():
    """Get JSON object from request body.

    Returns (data, error_response) tuple. Caller pattern:
        data, error = get_json_or_error()
        if error:
            return error
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None, error_response('Invalid or missing JSON body', 400)
    return data, None


def get_pagination_args(default_limit=20, max_limit=100):
    """Read ?page=&limit= with sane bounds. Returns (page, limit)."""
    page = request.args.get('page', 1, type=int) or 1
    limit = request.args.get('limit', default_limit, type=int) or default_limit
    return max(page, 1), min(max(limit, 1), max_limit)


def get_bool_arg(name):
    """Parse ?name=true/false. Returns None when absent."""
    value = request.args.get(name)
    if value is None or value == '':
        return None
    return value.lower() in ('1', 'true', 'yes')


# ============== Error Handling ==============

def safe_error_response(e, status_code=500):
    """Return an error response without leaking DB internals.

    - ValidationError: 400 with field errors
    - ServiceError and subclasses: their own status code and message
    - ValueError/KeyError: str(e) as 400 (business validation, safe to expose)
    - Everything else: logs full exception, returns generic message
      (with the stack trace when the app runs in debug mode)
    """
    if isinstance(e, ValidationError):
        return validation_error(e.errors, e.message)
    if isinstance(e, ServiceError):
        return error_response(e.message, e.status_code)
    if isinstance(e, (ValueError, KeyError)):
        return error_response(str(e), 400)

    logger.exception('Unhandled error in API route')
    body = {'success': False, 'message': 'An internal error occurred'}
    if current_app.debug:
        body['stack'] = traceback.format_exc()
    return jsonify(body), status_code


# ============== Rate Limiter ==============

class RateLimiter:
    """Simple in-memory rate limiter.

    State is per worker process. Good enough for an internal API.
    """

    def __init__(self):
        self._requests = defaultdict(list)

    def is_allowed(self, key, max_requests=10, window_seconds=60):
        """Check if request is allowed.

        Args:
            key: String identifier (user_id, IP address, etc.)
            max_requests: Max requests per window
            window_seconds: Window duration in seconds

        Returns:
            (is_allowed: bool, retry_after: int) tuple
        """
        now = time.time()
        window_start = now - window_seconds

        self._requests[key] = [ts for ts in self._requests[key] if ts > window_start]

        if len(self._requests[key]) >= max_requests:
            oldest = min(self._requests[key])
            retry_after = int(oldest + window_seconds - now) + 1
            return False, max(1, retry_after)

        self._requests[key].append(now)
        return True, 0

    def reset(self, key=None):
        if key is None:
            self._requests.clear()
        else:
            self._requests.pop(key, None)
