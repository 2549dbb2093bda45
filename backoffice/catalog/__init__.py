"""Catalog module: brands and geos referenced by flows."""
from flask import Blueprint

catalog_bp = Blueprint('catalog', __name__)

from .routes import brands, geos  # noqa: E402, F401
