"""Auth services package."""
from .auth_service import AuthService, AuthResult

__all__ = ['AuthService', 'AuthResult']
