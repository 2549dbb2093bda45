"""Back-office authentication module.

Bearer-token login, profile and password routes. Users themselves are
managed by core.users.
"""
from flask import Blueprint

auth_bp = Blueprint('auth', __name__)

from . import routes  # noqa: E402, F401
