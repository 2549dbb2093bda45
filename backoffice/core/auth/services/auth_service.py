"""Auth Service - Business logic for authentication operations.

Routes call these methods instead of touching the repository directly.
"""
from dataclasses import dataclass
from typing import Optional, Dict, Any

from backoffice.core.exceptions import ConflictError, NotFoundError
from backoffice.core.utils.logging_config import get_logger
from ..repositories.user_repository import UserRepository
from .token_service import issue_token

logger = get_logger('backoffice.auth')

MIN_PASSWORD_LENGTH = 6


@dataclass
class AuthResult:
    """Result of an authentication attempt."""
    success: bool
    user_data: Optional[Dict[str, Any]] = None
    token: Optional[str] = None
    error: Optional[str] = None
    status_code: int = 200


class AuthService:
    """Service for authentication-related business logic."""

    def __init__(self):
        self.user_repo = UserRepository()

    def login(self, login: str, password: str) -> AuthResult:
        """Authenticate by username or email and issue a token."""
        if not login or not password:
            return AuthResult(success=False, error='Login and password are required', status_code=400)

        user = self.user_repo.get_by_login(login)
        if not user or not self.user_repo.verify_password(user, password):
            logger.warning(f'Failed login attempt for {login}')
            return AuthResult(success=False, error='Invalid credentials', status_code=401)

        if not user.get('is_active', False):
            logger.warning(f'Login refused for inactive user {user["id"]}')
            return AuthResult(success=False, error='Account is deactivated', status_code=403)

        self.user_repo.update_last_login(user['id'])
        logger.info(f'User {user["username"]} logged in')
        public = self.user_repo.get_by_id(user['id'])
        return AuthResult(success=True, user_data=public,
                          token=issue_token(user['id'], user['role']))

    def register(self, username: str, email: str, password: str, **profile) -> AuthResult:
        """Create an account and return it with a fresh token."""
        if self.user_repo.username_exists(username):
            raise ConflictError('Username is already taken')
        if self.user_repo.email_exists(email):
            raise ConflictError('Email is already registered')

        user = self.user_repo.create(username=username, email=email, password=password, **profile)
        logger.info(f'User {username} registered with role {user["role"]}')
        return AuthResult(success=True, user_data=user,
                          token=issue_token(user['id'], user['role']), status_code=201)

    def change_password(self, user_id: int, current_password: str, new_password: str) -> AuthResult:
        if not current_password or not new_password:
            return AuthResult(success=False, error='Both current and new passwords are required',
                              status_code=400)
        if len(new_password) < MIN_PASSWORD_LENGTH:
            return AuthResult(success=False,
                              error=f'New password must be at least {MIN_PASSWORD_LENGTH} characters',
                              status_code=400)

        password_hash = self.user_repo.get_password_hash(user_id)
        if password_hash is None:
            raise NotFoundError('User not found')
        if not self.user_repo.verify_password({'password_hash': password_hash}, current_password):
            return AuthResult(success=False, error='Current password is incorrect', status_code=400)

        self.user_repo.update_password(user_id, new_password)
        logger.info(f'User {user_id} changed their password')
        return AuthResult(success=True)

    def update_profile(self, user_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        if fields.get('email') and self.user_repo.email_exists(fields['email'], exclude_id=user_id):
            raise ConflictError('Email is already registered')
        user = self.user_repo.update(user_id, **fields)
        if not user:
            raise NotFoundError('User not found')
        return user
