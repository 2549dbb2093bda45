"""Flows repositories."""
from .flow_repo import FlowRepository
from .flow_user_repo import FlowUserRepository
from .flow_stats_repo import FlowStatsRepository
from .report_repo import ReportRepository

__all__ = [
    'FlowRepository', 'FlowUserRepository', 'FlowStatsRepository', 'ReportRepository',
]
