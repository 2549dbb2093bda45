"""Calendar and monthly rollups of flow statistics.

Input rows are either raw flow_stats rows (one per flow/user/day) or rows
pre-grouped by SQL per flow and day. Both are merged per (period, flow) first,
so spend-flow revenue is always computed on a flow's whole day, then summed
into day, month and year totals.

Every row must carry: day (or month), flow_id, flow_type, kpi_metric,
spend_percentage_ranges and the counters. Optional: user_id / user_ids,
cpa or cpa_revenue.
"""
import calendar

from . import kpi_calculator as kpi


class PeriodBucket:
    """Accumulates counters, revenue, users and flows for one period (day, month, year)."""

    def __init__(self):
        self.totals = kpi.empty_totals()
        self.revenue = 0.0
        self.user_ids = set()
        self.flow_ids = set()
        self.entries = []

    def add(self, totals, revenue, flow_id=None, user_ids=()):
        kpi.add_counters(self.totals, totals)
        self.revenue = round(self.revenue + revenue, 2)
        if flow_id is not None:
            self.flow_ids.add(flow_id)
        self.user_ids.update(u for u in user_ids if u is not None)

    def merge(self, other):
        self.add(other.totals, other.revenue)
        self.flow_ids |= other.flow_ids
        self.user_ids |= other.user_ids

    @property
    def has_data(self):
        return bool(self.flow_ids) or kpi.has_activity(self.totals)

    def summary(self, flow=None):
        out = dict(self.totals)
        out.update(kpi.calculate_kpis(self.totals, self.revenue))
        users = len(self.user_ids)
        out['active_users_count'] = users
        out['flows_count'] = len(self.flow_ids)
        out['avg_spend_per_user'] = round(self.totals['spend'] / users, 2) if users else 0.0
        out['has_data'] = self.has_data
        if flow is not None:
            out.update(kpi.kpi_status(flow, self.totals))
        return out


def _row_user_ids(row):
    if row.get('user_ids') is not None:
        return list(row['user_ids'])
    if row.get('user_id') is not None:
        return [row['user_id']]
    return []


def merge_flow_periods(rows, period_key):
    """Group rows by (period, flow_id) and price each group.

    Args:
        rows: Stats rows (see module docstring).
        period_key: Function row -> period (e.g. the day number).

    Returns:
        Dict period -> PeriodBucket with one add() per flow.
    """
    groups = {}
    for row in rows:
        key = (period_key(row), row.get('flow_id'))
        group = groups.get(key)
        if group is None:
            group = {'flow': row, 'totals': kpi.empty_totals(), 'cpa_revenue': 0.0,
                     'user_ids': set(), 'entries': []}
            groups[key] = group
        kpi.add_counters(group['totals'], row)
        if row.get('cpa_revenue') is not None:
            group['cpa_revenue'] += float(row['cpa_revenue'])
        else:
            group['cpa_revenue'] += int(row.get('deps') or 0) * float(row.get('cpa') or 0)
        group['user_ids'].update(_row_user_ids(row))
        group['entries'].append(row)

    buckets = {}
    for (period, flow_id), group in groups.items():
        revenue = kpi.flow_revenue(group['flow'], group['totals'], group['cpa_revenue'])
        bucket = buckets.setdefault(period, PeriodBucket())
        bucket.add(group['totals'], revenue, flow_id, group['user_ids'])
        bucket.entries.extend(group['entries'])
    return buckets


def days_in_month(year, month):
    return calendar.monthrange(year, month)[1]


def build_month_calendar(year, month, rows, flow=None, include_entries=False):
    """One entry per calendar day, zero-filled where nothing was recorded.

    Args:
        year, month: Calendar month to build.
        rows: Stats rows for that month.
        flow: When the calendar belongs to a single flow, its row (adds kpi_value/kpi_met).
        include_entries: Attach the per-user rows that make up each day.

    Returns:
        {'year', 'month', 'days_in_month', 'days': [...], 'totals': {...}}
    """
    n_days = days_in_month(year, month)
    buckets = merge_flow_periods(
        (r for r in rows if 1 <= int(r['day']) <= n_days), lambda r: int(r['day'])
    )

    month_bucket = PeriodBucket()
    days = []
    for day in range(1, n_days + 1):
        bucket = buckets.get(day, PeriodBucket())
        month_bucket.merge(bucket)
        entry = {'day': day, 'date': f'{year:04d}-{month:02d}-{day:02d}'}
        entry.update(bucket.summary(flow))
        if include_entries:
            entry['entries'] = [kpi.enrich_row(r) for r in bucket.entries]
        days.append(entry)

    totals = month_bucket.summary(flow)
    days_with_data = sum(1 for d in days if d['has_data'])
    totals['days_with_data'] = days_with_data
    totals['avg_daily_spend'] = round(totals['spend'] / days_with_data, 2) if days_with_data else 0.0

    return {
        'year': year,
        'month': month,
        'days_in_month': n_days,
        'days': days,
        'totals': totals,
    }


def build_year_summary(year, rows, flow=None):
    """Twelve months (zero-filled) plus the yearly total.

    Rows must carry `month` and `day`; a flow's revenue is still priced per day.
    """
    day_buckets = merge_flow_periods(rows, lambda r: (int(r['month']), int(r['day'])))

    month_buckets = {m: PeriodBucket() for m in range(1, 13)}
    for (month, _day), bucket in day_buckets.items():
        if month in month_buckets:
            month_buckets[month].merge(bucket)

    year_bucket = PeriodBucket()
    months = []
    for month in range(1, 13):
        bucket = month_buckets[month]
        year_bucket.merge(bucket)
        entry = {'month': month, 'month_name': calendar.month_name[month]}
        entry.update(bucket.summary(flow))
        months.append(entry)

    return {'year': year, 'months': months, 'totals': year_bucket.summary(flow)}


def aggregate(rows, flow=None):
    """Single total over all rows (per-flow-day pricing), with days_with_data."""
    day_buckets = merge_flow_periods(
        rows, lambda r: (r.get('year'), r.get('month'), r.get('day'))
    )
    total = PeriodBucket()
    for bucket in day_buckets.values():
        total.merge(bucket)
    summary = total.summary(flow)
    summary['days_with_data'] = len(day_buckets)
    return summary
