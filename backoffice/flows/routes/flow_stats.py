"""Daily flow statistics: upsert, bulk upsert, listings, aggregates and calendar."""

from flask import request
from flask_login import login_required, current_user

from backoffice.flows import flows_bp
from backoffice.flows.services import FlowStatsService, UserContext
from backoffice.core.utils.api_helpers import (
    get_json_or_error, get_pagination_args, handle_api_errors, success_response,
)

_stats_service = FlowStatsService()


def _ctx():
    return UserContext.from_user(current_user)


@flows_bp.route('/api/flow-stats', methods=['POST'])
@login_required
@handle_api_errors
def api_upsert_flow_stat():
    """Create or replace the stats of one flow/user/day."""
    data, error = get_json_or_error()
    if error:
        return error

    row = _stats_service.upsert(data, _ctx())
    return success_response(row, message='Statistics saved')


@flows_bp.route('/api/flow-stats/bulk', methods=['POST'])
@login_required
@handle_api_errors
def api_bulk_upsert_flow_stats():
    """All-or-nothing upsert of {stats: [...]}."""
    data, error = get_json_or_error()
    if error:
        return error

    rows = _stats_service.bulk_upsert(data.get('stats'), _ctx())
    return success_response(rows, message=f'{len(rows)} statistics rows saved', count=len(rows))


@flows_bp.route('/api/flow-stats/daily/<int:year>/<int:month>/<int:day>', methods=['GET'])
@login_required
@handle_api_errors
def api_daily_flow_stats(year, month, day):
    filters = {
        'flow_id': request.args.get('flow_id', type=int),
        'user_id': request.args.get('user_id', type=int),
        'team_id': request.args.get('team_id', type=int),
        'brand_id': request.args.get('brand_id', type=int),
        'geo_id': request.args.get('geo_id', type=int),
        'status': request.args.get('status'),
    }
    page, limit = get_pagination_args(default_limit=50, max_limit=200)
    data, pagination = _stats_service.daily(year, month, day, filters, _ctx(), page, limit)
    return success_response(data, pagination=pagination)


def _period_filters():
    return {
        'month': request.args.get('month', type=int),
        'year': request.args.get('year', type=int),
        'user_id': request.args.get('user_id', type=int),
        'date_from': request.args.get('date_from'),
        'date_to': request.args.get('date_to'),
    }


@flows_bp.route('/api/flow-stats/<int:flow_id>', methods=['GET'])
@login_required
@handle_api_errors
def api_flow_stats(flow_id):
    return success_response(_stats_service.flow_stats(flow_id, _period_filters(), _ctx()))


@flows_bp.route('/api/flow-stats/<int:flow_id>/aggregated', methods=['GET'])
@login_required
@handle_api_errors
def api_flow_stats_aggregated(flow_id):
    return success_response(_stats_service.aggregated(flow_id, _period_filters(), _ctx()))


@flows_bp.route('/api/flow-stats/<int:flow_id>/calendar/<int:year>/<int:month>', methods=['GET'])
@login_required
@handle_api_errors
def api_flow_stats_calendar(flow_id, year, month):
    return success_response(_stats_service.calendar(flow_id, year, month, _ctx()))


@flows_bp.route('/api/flow-stats/<int:flow_id>/<int:year>/<int:month>/<int:day>', methods=['DELETE'])
@login_required
@handle_api_errors
def api_delete_flow_stat(flow_id, year, month, day):
    deleted = _stats_service.delete(
        flow_id, year, month, day, _ctx(), user_id=request.args.get('user_id', type=int))
    if not deleted:
        return success_response({'deleted': 0}, message='No statistics found for this date')
    return success_response({'deleted': deleted}, message='Statistics deleted')
