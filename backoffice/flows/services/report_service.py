"""Statistics rollups per user, team and company."""

import logging

from backoffice.core.auth.models import COMPANY_REPORT_ROLES
from backoffice.core.auth.repositories import UserRepository
from backoffice.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from backoffice.core.organization.repositories import TeamRepository
from backoffice.flows.repositories import ReportRepository
from . import stats_aggregator
from .flow_service import UserContext

logger = logging.getLogger('backoffice.flows.services.report')


def _check_period(year, month=None):
    errors = []
    if not 2000 <= year <= 2100:
        errors.append({'field': 'year', 'message': 'year must be between 2000 and 2100'})
    if month is not None and not 1 <= month <= 12:
        errors.append({'field': 'month', 'message': 'month must be between 1 and 12'})
    if errors:
        raise ValidationError(errors)


class ReportService:

    def __init__(self):
        self.report_repo = ReportRepository()
        self.user_repo = UserRepository()
        self.team_repo = TeamRepository()

    # ============== Access ==============

    def _user_scope(self, user_id, viewer: UserContext):
        target = self.user_repo.get_by_id(user_id)
        if not target:
            raise NotFoundError('User not found')
        if viewer.role in COMPANY_REPORT_ROLES or viewer.user_id == user_id:
            return target
        if viewer.role == 'teamlead' and viewer.team_id and target.get('team_id') == viewer.team_id:
            return target
        raise ForbiddenError('Access denied to this user\'s statistics')

    def _team_scope(self, team_id, viewer: UserContext):
        team = self.team_repo.get(team_id)
        if not team:
            raise NotFoundError('Team not found')
        if viewer.role in COMPANY_REPORT_ROLES:
            return team
        if viewer.role == 'teamlead' and viewer.team_id == team_id:
            return team
        raise ForbiddenError('Access denied to this team\'s statistics')

    def _company_scope(self, viewer: UserContext):
        if viewer.role not in COMPANY_REPORT_ROLES:
            raise ForbiddenError('Access denied to company statistics')

    # ============== Calendars ==============

    def user_calendar(self, user_id, year, month, viewer: UserContext):
        _check_period(year, month)
        target = self._user_scope(user_id, viewer)
        result = stats_aggregator.build_month_calendar(
            year, month, self.report_repo.user_rows(user_id, year, month))
        result['user'] = {'id': target['id'], 'username': target['username'],
                          'team_id': target.get('team_id')}
        return result

    def team_calendar(self, team_id, year, month, viewer: UserContext):
        _check_period(year, month)
        team = self._team_scope(team_id, viewer)
        result = stats_aggregator.build_month_calendar(
            year, month, self.report_repo.team_rows(team_id, year, month))
        result['team'] = {'id': team['id'], 'name': team['name']}
        return result

    def company_calendar(self, year, month, viewer: UserContext):
        _check_period(year, month)
        self._company_scope(viewer)
        return stats_aggregator.build_month_calendar(
            year, month, self.report_repo.company_rows(year, month))

    # ============== Monthly ==============

    def user_monthly(self, user_id, year, viewer: UserContext):
        _check_period(year)
        target = self._user_scope(user_id, viewer)
        result = stats_aggregator.build_year_summary(year, self.report_repo.user_rows(user_id, year))
        result['user'] = {'id': target['id'], 'username': target['username']}
        return result

    def team_monthly(self, team_id, year, viewer: UserContext):
        _check_period(year)
        team = self._team_scope(team_id, viewer)
        result = stats_aggregator.build_year_summary(year, self.report_repo.team_rows(team_id, year))
        result['team'] = {'id': team['id'], 'name': team['name']}
        return result

    def company_monthly(self, year, viewer: UserContext):
        _check_period(year)
        self._company_scope(viewer)
        return stats_aggregator.build_year_summary(year, self.report_repo.company_rows(year))
