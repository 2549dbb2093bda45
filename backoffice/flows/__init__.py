"""Flows module: campaigns, their users, daily statistics and rollup reports."""
from flask import Blueprint

flows_bp = Blueprint('flows', __name__)

from .routes import flows, flow_stats, reports  # noqa: E402, F401
