"""User, team and company statistics reports (calendar and monthly)."""

from flask_login import login_required, current_user

from backoffice.flows import flows_bp
from backoffice.flows.services import ReportService, UserContext
from backoffice.core.utils.api_helpers import handle_api_errors, success_response

_report_service = ReportService()


def _ctx():
    return UserContext.from_user(current_user)


# ---- Calendars ----

@flows_bp.route('/api/reports/users/<int:user_id>/calendar/<int:year>/<int:month>', methods=['GET'])
@login_required
@handle_api_errors
def api_user_calendar(user_id, year, month):
    return success_response(_report_service.user_calendar(user_id, year, month, _ctx()))


@flows_bp.route('/api/reports/teams/<int:team_id>/calendar/<int:year>/<int:month>', methods=['GET'])
@login_required
@handle_api_errors
def api_team_calendar(team_id, year, month):
    return success_response(_report_service.team_calendar(team_id, year, month, _ctx()))


@flows_bp.route('/api/reports/company/calendar/<int:year>/<int:month>', methods=['GET'])
@login_required
@handle_api_errors
def api_company_calendar(year, month):
    return success_response(_report_service.company_calendar(year, month, _ctx()))


# ---- Monthly ----

@flows_bp.route('/api/reports/users/<int:user_id>/monthly/<int:year>', methods=['GET'])
@login_required
@handle_api_errors
def api_user_monthly(user_id, year):
    return success_response(_report_service.user_monthly(user_id, year, _ctx()))


@flows_bp.route('/api/reports/teams/<int:team_id>/monthly/<int:year>', methods=['GET'])
@login_required
@handle_api_errors
def api_team_monthly(team_id, year):
    return success_response(_report_service.team_monthly(team_id, year, _ctx()))


@flows_bp.route('/api/reports/company/monthly/<int:year>', methods=['GET'])
@login_required
@handle_api_errors
def api_company_monthly(year):
    return success_response(_report_service.company_monthly(year, _ctx()))
