"""Communications module: message threads attached to flows and bizdev requests."""
from flask import Blueprint

comms_bp = Blueprint('communications', __name__)

from . import routes  # noqa: E402, F401
