"""Read-only queries behind the user/team/company statistics reports.

Rows come back grouped per (month, day, flow) so revenue can be priced per
flow-day in the stats aggregator.
"""

from backoffice.core.base_repository import BaseRepository

GROUPED_SELECT = '''
    SELECT fs.month, fs.day, fs.flow_id,
           f.flow_type, f.kpi_metric, f.spend_percentage_ranges,
           SUM(fs.spend) AS spend,
           SUM(fs.installs) AS installs,
           SUM(fs.regs) AS regs,
           SUM(fs.deps) AS deps,
           SUM(fs.verified_deps) AS verified_deps,
           SUM(fs.deps * fs.cpa) AS cpa_revenue,
           ARRAY_AGG(DISTINCT fs.user_id) AS user_ids
    FROM flow_stats fs
    JOIN flows f ON f.id = fs.flow_id
    JOIN users u ON u.id = fs.user_id
'''

GROUP_BY = '''
    GROUP BY fs.month, fs.day, fs.flow_id, f.flow_type, f.kpi_metric, f.spend_percentage_ranges
    ORDER BY fs.month, fs.day
'''


class ReportRepository(BaseRepository):

    def _grouped(self, scope_sql, scope_params, year, month=None):
        where = ['fs.year = %s']
        params = [year]
        if month is not None:
            where.append('fs.month = %s')
            params.append(month)
        if scope_sql:
            where.append(scope_sql)
            params.extend(scope_params)
        return self.query_all(
            f"{GROUPED_SELECT} WHERE {' AND '.join(where)} {GROUP_BY}", params
        )

    def user_rows(self, user_id, year, month=None):
        return self._grouped('fs.user_id = %s', [user_id], year, month)

    def team_rows(self, team_id, year, month=None):
        return self._grouped('u.team_id = %s', [team_id], year, month)

    def company_rows(self, year, month=None):
        return self._grouped(None, [], year, month)
