"""Catalog repositories."""
from .brand_repo import BrandRepository
from .geo_repo import GeoRepository

__all__ = ['BrandRepository', 'GeoRepository']
