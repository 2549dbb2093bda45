"""Finance module: salaries, partner payments, investment operations and expenses."""
from flask import Blueprint

finance_bp = Blueprint('finance', __name__)

from .routes import salaries, partner_payments, investments, expenses  # noqa: E402, F401
