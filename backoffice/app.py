"""Back-office API application factory."""
import os
import traceback

from flask import Flask, g, jsonify, request

from backoffice.core.utils.logging_config import setup_logging, get_logger

app_logger = get_logger('backoffice.app')

from flask_compress import Compress  # noqa: E402
from flask_login import LoginManager  # noqa: E402

from backoffice.core.auth.models import User  # noqa: E402
from backoffice.core.auth.repositories import UserRepository  # noqa: E402
from backoffice.core.auth.services.token_service import (  # noqa: E402
    TokenError, decode_token, parse_bearer,
)
from backoffice.core.utils.api_helpers import error_response  # noqa: E402
from backoffice.database import init_db, ping_db  # noqa: E402

_user_repo = UserRepository()

login_manager = LoginManager()
compress = Compress()


def _secret_key():
    """FLASK_SECRET_KEY is required, except for local debug runs."""
    secret = os.environ.get('FLASK_SECRET_KEY', os.environ.get('SECRET_KEY'))
    if secret:
        return secret
    if os.environ.get('FLASK_DEBUG', 'false').lower() == 'true':
        app_logger.warning('Using development secret key, set FLASK_SECRET_KEY for production')
        return 'dev-secret-key-for-local-only'
    raise RuntimeError('FLASK_SECRET_KEY environment variable is required')


# ============== Flask-Login (Bearer tokens) ==============

@login_manager.request_loader
def load_user_from_request(req):
    """Resolve `Authorization: Bearer <jwt>` to a User.

    The reason for a failure is kept on `g` so the unauthorized handler
    can answer 401 or 403 with the right message.
    """
    token = parse_bearer(req.headers.get('Authorization'))
    if not token:
        g.auth_error = ('Authentication required', 401)
        return None
    try:
        payload = decode_token(token)
    except TokenError as e:
        g.auth_error = (e.message, 401)
        return None

    user_data = _user_repo.get_by_id(int(payload['user_id']))
    if not user_data:
        g.auth_error = ('User not found', 401)
        return None
    if not user_data.get('is_active', True):
        g.auth_error = ('Account is deactivated', 403)
        return None
    return User(user_data)


@login_manager.unauthorized_handler
def unauthorized():
    message, status_code = getattr(g, 'auth_error', ('Authentication required', 401))
    return error_response(message, status_code)


# ============== Factory ==============

def create_app(config=None):
    """Build the Flask app. `config` overrides values read from the environment."""
    setup_logging(level=os.environ.get('LOG_LEVEL', 'INFO'))
    app_logger.info('Back-office API loading...')

    app = Flask(__name__)
    app.config['TESTING'] = os.environ.get('TESTING', '').lower() == 'true'
    app.config.update(config or {})

    if not app.config.get('SECRET_KEY'):
        app.config['SECRET_KEY'] = _secret_key()
    app.config.setdefault('JWT_SECRET', os.environ.get('JWT_SECRET') or app.config['SECRET_KEY'])
    app.config.setdefault('JWT_EXPIRES_HOURS', int(os.environ.get('JWT_EXPIRES_HOURS', '24')))
    app.config['JSON_SORT_KEYS'] = False

    compress.init_app(app)

    login_manager.init_app(app)
    # Stateless API: no session cookie identity
    login_manager.session_protection = None

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_health(app)

    if not app.config['TESTING']:
        init_db()

    app_logger.info(f'Back-office startup complete, {len(app.url_map._rules)} routes registered')
    return app


def _register_blueprints(app):
    from backoffice.core.auth import auth_bp
    app.register_blueprint(auth_bp)

    from backoffice.core.users import users_bp
    app.register_blueprint(users_bp)

    from backoffice.core.organization import org_bp
    app.register_blueprint(org_bp)

    from backoffice.catalog import catalog_bp
    app.register_blueprint(catalog_bp)

    from backoffice.flows import flows_bp
    app.register_blueprint(flows_bp)

    from backoffice.finance import finance_bp
    app.register_blueprint(finance_bp)

    from backoffice.communications import comms_bp
    app.register_blueprint(comms_bp)


# ============== Global Error Handlers ==============

def _register_error_handlers(app):

    @app.errorhandler(404)
    def handle_404(e):
        if request.path.startswith('/api/'):
            return error_response('Route not found', 404)
        return error_response('Not found', 404)

    @app.errorhandler(405)
    def handle_405(e):
        return error_response('Method not allowed', 405)

    @app.errorhandler(500)
    def handle_500(e):
        app_logger.exception('Unhandled 500 error')
        body = {'success': False, 'message': 'An internal error occurred'}
        if app.debug:
            body['stack'] = traceback.format_exc()
        return jsonify(body), 500


# ============== Health Check ==============

def _register_health(app):

    @app.route('/health')
    def health_check():
        """Liveness/readiness probe. Only checks DB connectivity."""
        checks = {}
        try:
            checks['database'] = ping_db()
        except Exception as e:
            checks['database'] = False
            app_logger.error(f'Health check - database failed: {e}')

        status = 'healthy' if checks.get('database') else 'unhealthy'
        http_code = 200 if status == 'healthy' else 503
        return jsonify({
            'status': status,
            'checks': checks,
            'service': 'backoffice',
        }), http_code


if __name__ == '__main__':
    debug = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'
    port = int(os.environ.get('PORT', 5000))
    create_app().run(debug=debug, host='0.0.0.0', port=port)
