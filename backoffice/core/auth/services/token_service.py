"""JWT access tokens.

HS256 tokens carrying {user_id, role, iat, exp}. The signing secret and
lifetime come from the Flask config (JWT_SECRET, JWT_EXPIRES_HOURS).
"""
import datetime as dt

import jwt
from flask import current_app

ALGORITHM = 'HS256'


class TokenError(Exception):
    """Token could not be used. `message` is safe to return to the client."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


def _secret():
    return current_app.config['JWT_SECRET']


def issue_token(user_id: int, role: str) -> str:
    now = dt.datetime.now(dt.timezone.utc)
    hours = int(current_app.config.get('JWT_EXPIRES_HOURS', 24))
    payload = {
        'user_id': user_id,
        'role': role,
        'iat': int(now.timestamp()),
        'exp': int((now + dt.timedelta(hours=hours)).timestamp()),
    }
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and verify a token. Raises TokenError on any problem."""
    try:
        payload = jwt.decode(token, _secret(), algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenError('Token expired')
    except jwt.InvalidTokenError:
        raise TokenError('Invalid token')
    if 'user_id' not in payload:
        raise TokenError('Invalid token')
    return payload


def parse_bearer(header_value: str):
    """Extract the token from an `Authorization: Bearer <token>` header, or None."""
    if not header_value:
        return None
    parts = header_value.split()
    if len(parts) != 2 or parts[0].lower() != 'bearer':
        return None
    return parts[1]
