"""Flows services."""
from .flow_service import FlowService, UserContext
from .flow_stats_service import FlowStatsService
from .report_service import ReportService

__all__ = ['FlowService', 'FlowStatsService', 'ReportService', 'UserContext']
