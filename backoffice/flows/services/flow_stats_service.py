"""Flow Stats Service - daily upserts and per-flow aggregates.

Validates stats payloads, enforces flow access and prices every row through
the KPI calculator.
"""

import logging

from backoffice.core.exceptions import ValidationError
from backoffice.core.utils.logging_config import LogContext
from backoffice.core.utils.validation import FieldValidator, validate_calendar_date
from backoffice.flows.repositories import FlowStatsRepository
from . import kpi_calculator as kpi
from . import stats_aggregator
from .flow_service import FlowService, UserContext

logger = logging.getLogger('backoffice.flows.services.flow_stats')

MIN_YEAR = 2020
MAX_YEAR = 2030
MAX_BULK_ROWS = 500


def validate_stat(data, default_user_id):
    """Validate one stats payload. Returns cleaned dict or raises ValidationError."""
    v = FieldValidator(data)
    v.integer('flow_id', required=True, min_value=1)
    v.integer('user_id', min_value=1)
    day = v.integer('day', required=True, min_value=1, max_value=31)
    month = v.integer('month', required=True, min_value=1, max_value=12)
    year = v.integer('year', required=True, min_value=MIN_YEAR, max_value=MAX_YEAR)
    v.number('spend', min_value=0)
    for counter in ('installs', 'regs', 'deps', 'verified_deps'):
        v.integer(counter, min_value=0)
    v.number('cpa', min_value=0)
    v.string('notes', max_len=2000)
    v.raise_if_errors()

    validate_calendar_date(year, month, day)

    cleaned = v.cleaned
    if cleaned.get('verified_deps') and cleaned['verified_deps'] > (cleaned.get('deps') or 0):
        raise ValidationError([{'field': 'verified_deps',
                                'message': 'verified_deps cannot exceed deps'}])
    cleaned['user_id'] = cleaned.get('user_id') or default_user_id
    return cleaned


class FlowStatsService:

    def __init__(self):
        self.stats_repo = FlowStatsRepository()
        self.flow_service = FlowService()

    def _check_user_override(self, stat, user: UserContext):
        """Only managers may record stats on behalf of another user."""
        if stat['user_id'] != user.user_id and user.role not in ('admin', 'teamlead', 'bizdev'):
            raise ValidationError([{'field': 'user_id',
                                    'message': 'You can only record your own statistics'}])

    def upsert(self, data, user: UserContext):
        stat = validate_stat(data, user.user_id)
        self._check_user_override(stat, user)
        flow = self.flow_service.get_accessible(stat['flow_id'], user)
        if 'cpa' not in stat:
            stat['cpa'] = flow.get('cpa') or 0

        row = self.stats_repo.upsert(stat, user.user_id)
        logger.info(f"Stats saved for flow {stat['flow_id']} user {stat['user_id']} "
                    f"{stat['year']}-{stat['month']:02d}-{stat['day']:02d}")
        return kpi.enrich_row(row, flow)

    def bulk_upsert(self, items, user: UserContext):
        """Validate every item first; the whole batch is written in one transaction."""
        if not isinstance(items, list) or not items:
            raise ValidationError([{'field': 'stats', 'message': 'stats must be a non-empty list'}])
        if len(items) > MAX_BULK_ROWS:
            raise ValidationError([{'field': 'stats',
                                    'message': f'At most {MAX_BULK_ROWS} rows per request'}])

        cleaned, errors, flows = [], [], {}
        for index, item in enumerate(items):
            try:
                if not isinstance(item, dict):
                    raise ValidationError([{'field': 'stats', 'message': 'Item must be an object'}])
                stat = validate_stat(item, user.user_id)
                self._check_user_override(stat, user)
            except ValidationError as e:
                errors.extend({'index': index, **err} for err in e.errors)
                continue
            if stat['flow_id'] not in flows:
                flows[stat['flow_id']] = self.flow_service.get_accessible(stat['flow_id'], user)
            stat.setdefault('cpa', flows[stat['flow_id']].get('cpa') or 0)
            cleaned.append(stat)
        if errors:
            raise ValidationError(errors)

        with LogContext(logger, user_id=user.user_id, rows=len(cleaned)):
            rows = self.stats_repo.bulk_upsert(cleaned, user.user_id)
            logger.info('Bulk stats upsert committed')
        return [kpi.enrich_row(r, flows[r['flow_id']]) for r in rows]

    def daily(self, year, month, day, filters, user: UserContext, page, limit):
        if not MIN_YEAR <= year <= MAX_YEAR:
            raise ValidationError([{'field': 'year',
                                    'message': f'year must be between {MIN_YEAR} and {MAX_YEAR}'}])
        validate_calendar_date(year, month, day)
        visible_to = self.flow_service.visibility_filter(user)
        if visible_to:
            filters = {**filters, 'visible_to_user_id': visible_to}
        rows, pagination = self.stats_repo.get_daily(year, month, day, filters, page, limit)
        # Totals cover the whole filtered day, not just this page
        all_rows = rows if pagination['total'] <= len(rows) else \
            self.stats_repo.get_daily_all(year, month, day, filters)
        return {
            'date': f'{year:04d}-{month:02d}-{day:02d}',
            'stats': [kpi.enrich_row(r) for r in rows],
            'totals': stats_aggregator.aggregate(all_rows),
        }, pagination

    def flow_stats(self, flow_id, filters, user: UserContext):
        flow = self.flow_service.get_accessible(flow_id, user)
        rows = self.stats_repo.get_by_flow(flow_id, filters)
        return [kpi.enrich_row(r, flow) for r in rows]

    def aggregated(self, flow_id, filters, user: UserContext):
        flow = self.flow_service.get_accessible(flow_id, user)
        rows = self.stats_repo.get_by_flow(flow_id, filters)
        summary = stats_aggregator.aggregate(rows, flow)
        summary['flow_id'] = flow_id
        summary['filters'] = {k: v for k, v in filters.items() if v is not None}
        return summary

    def calendar(self, flow_id, year, month, user: UserContext):
        if not 1 <= month <= 12:
            raise ValidationError([{'field': 'month', 'message': 'month must be between 1 and 12'}])
        flow = self.flow_service.get_accessible(flow_id, user)
        rows = self.stats_repo.get_month(flow_id, year, month)
        result = stats_aggregator.build_month_calendar(year, month, rows, flow=flow, include_entries=True)
        result['flow'] = {
            'id': flow['id'],
            'name': flow['name'],
            'flow_type': flow['flow_type'],
            'kpi_metric': flow['kpi_metric'],
            'kpi_target_value': flow.get('kpi_target_value'),
            'currency': flow.get('currency'),
        }
        return result

    def delete(self, flow_id, year, month, day, user: UserContext, user_id=None):
        validate_calendar_date(year, month, day)
        self.flow_service.get_accessible(flow_id, user)
        if user.role not in ('admin', 'teamlead', 'bizdev'):
            user_id = user.user_id
        deleted = self.stats_repo.delete(flow_id, year, month, day, user_id)
        logger.info(f'Deleted {deleted} stats rows for flow {flow_id} {year}-{month:02d}-{day:02d}')
        return deleted
