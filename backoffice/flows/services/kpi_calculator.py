"""KPI arithmetic for flow statistics.

Every ratio is guarded against a zero denominator (the result is 0) and
rounded to 2 decimals.

    inst2reg = regs / installs * 100
    reg2dep  = deps / regs * 100
    OAS      = deps / installs * 100
    RD       = deps / regs * 100
    URD      = verified_deps / regs * 100
    CPD      = spend / deps
    ROI      = (revenue - spend) / spend * 100

Revenue depends on the flow type:
    cpa   -> deps * cpa
    spend -> spend * multiplier of the spend_percentage_ranges entry that
             contains the flow's KPI metric value
"""

KPI_METRICS = ('OAS', 'CPD', 'RD', 'URD')
FLOW_TYPES = ('cpa', 'spend')

# KPIs where a smaller value is the better one
LOWER_IS_BETTER = frozenset({'CPD'})

COUNTERS = ('spend', 'installs', 'regs', 'deps', 'verified_deps')


def _num(value):
    return float(value) if value is not None else 0.0


def safe_ratio(numerator, denominator, scale=100.0):
    """numerator / denominator * scale, rounded to 2 decimals. 0 when denominator is 0."""
    denominator = _num(denominator)
    if denominator == 0:
        return 0.0
    return round(_num(numerator) / denominator * scale, 2)


def empty_totals():
    return {'spend': 0.0, 'installs': 0, 'regs': 0, 'deps': 0, 'verified_deps': 0}


def add_counters(totals, row):
    """Add the counters of `row` into `totals` in place."""
    totals['spend'] = round(totals['spend'] + _num(row.get('spend')), 2)
    for key in ('installs', 'regs', 'deps', 'verified_deps'):
        totals[key] += int(row.get(key) or 0)
    return totals


def metric_value(metric, totals):
    """Value of one KPI metric (OAS/CPD/RD/URD) for a set of counters."""
    if metric == 'OAS':
        return safe_ratio(totals['deps'], totals['installs'])
    if metric == 'RD':
        return safe_ratio(totals['deps'], totals['regs'])
    if metric == 'URD':
        return safe_ratio(totals['verified_deps'], totals['regs'])
    if metric == 'CPD':
        return safe_ratio(totals['spend'], totals['deps'], scale=1.0)
    raise ValueError(f'Unknown KPI metric: {metric}')


def spend_multiplier(ranges, value):
    """Multiplier of the first range with min_percentage <= value < max_percentage.

    A max_percentage of None means the range is open-ended. No match gives 0.
    """
    for entry in ranges or []:
        low = _num(entry.get('min_percentage'))
        high = entry.get('max_percentage')
        if value >= low and (high is None or value < _num(high)):
            return _num(entry.get('spend_multiplier'))
    return 0.0


def flow_revenue(flow, totals, cpa_revenue=None):
    """Revenue of one flow for a set of counters.

    Args:
        flow: Dict with flow_type, kpi_metric, cpa and spend_percentage_ranges.
        totals: Counters for the period (see empty_totals()).
        cpa_revenue: Pre-computed SUM(deps * cpa) when the stored rows carry their
                     own cpa. Falls back to deps * flow['cpa'].
    """
    if flow.get('flow_type') == 'spend':
        value = metric_value(flow.get('kpi_metric') or 'OAS', totals)
        return round(totals['spend'] * spend_multiplier(flow.get('spend_percentage_ranges'), value), 2)
    if cpa_revenue is not None:
        return round(_num(cpa_revenue), 2)
    return round(totals['deps'] * _num(flow.get('cpa')), 2)


def calculate_kpis(totals, revenue=0.0):
    """Every derived KPI for a set of counters.

    Returns:
        Dict with inst2reg, reg2dep, oas, rd, urd, cpd, revenue, profit, roi.
    """
    spend = _num(totals.get('spend'))
    revenue = round(_num(revenue), 2)
    return {
        'inst2reg': safe_ratio(totals.get('regs'), totals.get('installs')),
        'reg2dep': safe_ratio(totals.get('deps'), totals.get('regs')),
        'oas': safe_ratio(totals.get('deps'), totals.get('installs')),
        'rd': safe_ratio(totals.get('deps'), totals.get('regs')),
        'urd': safe_ratio(totals.get('verified_deps'), totals.get('regs')),
        'cpd': safe_ratio(spend, totals.get('deps'), scale=1.0),
        'revenue': revenue,
        'profit': round(revenue - spend, 2),
        'roi': safe_ratio(revenue - spend, spend),
    }


def has_activity(totals):
    return any(_num(totals.get(key)) for key in COUNTERS)


def kpi_status(flow, totals):
    """KPI value of the flow's metric and whether it meets kpi_target_value.

    kpi_met is only judged for cpa flows; it is None for spend flows, without a
    target or without activity. For CPD a deposit-free period with spend never
    meets the target.
    """
    metric = flow.get('kpi_metric')
    if metric not in KPI_METRICS:
        return {'kpi_metric': metric, 'kpi_value': None, 'kpi_target_value': None, 'kpi_met': None}

    value = metric_value(metric, totals)
    target = flow.get('kpi_target_value')
    met = None
    if flow.get('flow_type') == 'cpa' and target is not None and has_activity(totals):
        target = _num(target)
        if metric in LOWER_IS_BETTER:
            met = totals['deps'] > 0 and value <= target
        else:
            met = value >= target
    return {'kpi_metric': metric, 'kpi_value': value, 'kpi_target_value': target, 'kpi_met': met}


def enrich_row(row, flow=None):
    """Attach roi/inst2reg/reg2dep (and the rest) to a single flow_stats row."""
    flow = flow or row
    totals = add_counters(empty_totals(), row)
    revenue = flow_revenue(
        {**flow, 'cpa': row.get('cpa', flow.get('cpa'))}, totals
    )
    return {**row, **calculate_kpis(totals, revenue)}
