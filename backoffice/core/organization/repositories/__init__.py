"""Organization repositories package."""
from .team_repository import TeamRepository
from .department_repository import DepartmentRepository

__all__ = ['TeamRepository', 'DepartmentRepository']
