"""Repository for flow_stats: one row per (flow, user, day)."""

import logging
from backoffice.core.base_repository import BaseRepository
from backoffice.database import dict_from_row

logger = logging.getLogger('backoffice.flows.flow_stats_repo')

# ON CONFLICT DO UPDATE always returns a row
UPSERT_SQL = '''
    INSERT INTO flow_stats (flow_id, user_id, day, month, year, spend, installs, regs,
                            deps, verified_deps, cpa, notes, created_by, updated_by)
    VALUES (%(flow_id)s, %(user_id)s, %(day)s, %(month)s, %(year)s, %(spend)s, %(installs)s,
            %(regs)s, %(deps)s, %(verified_deps)s, %(cpa)s, %(notes)s, %(actor_id)s, %(actor_id)s)
    ON CONFLICT (flow_id, user_id, day, month, year) DO UPDATE SET
        spend = EXCLUDED.spend,
        installs = EXCLUDED.installs,
        regs = EXCLUDED.regs,
        deps = EXCLUDED.deps,
        verified_deps = EXCLUDED.verified_deps,
        cpa = EXCLUDED.cpa,
        notes = EXCLUDED.notes,
        updated_by = EXCLUDED.updated_by,
        updated_at = CURRENT_TIMESTAMP
    RETURNING *
'''

# Flow columns the KPI calculator needs next to every stats row
FLOW_KPI_COLUMNS = '''
    f.name AS flow_name, f.flow_type, f.kpi_metric, f.kpi_target_value,
    f.spend_percentage_ranges, f.currency
'''


def _upsert_params(stat, actor_id):
    return {
        'flow_id': stat['flow_id'],
        'user_id': stat['user_id'],
        'day': stat['day'],
        'month': stat['month'],
        'year': stat['year'],
        'spend': stat.get('spend') or 0,
        'installs': stat.get('installs') or 0,
        'regs': stat.get('regs') or 0,
        'deps': stat.get('deps') or 0,
        'verified_deps': stat.get('verified_deps') or 0,
        'cpa': stat.get('cpa') or 0,
        'notes': stat.get('notes'),
        'actor_id': actor_id,
    }


class FlowStatsRepository(BaseRepository):

    def upsert(self, stat, actor_id):
        return self.execute(UPSERT_SQL, _upsert_params(stat, actor_id), returning=True)

    def bulk_upsert(self, stats, actor_id):
        """Upsert every row in one transaction; any failure rolls back all of them."""
        def _work(cursor):
            saved = []
            for stat in stats:
                cursor.execute(UPSERT_SQL, _upsert_params(stat, actor_id))
                saved.append(dict_from_row(cursor.fetchone()))
            return saved
        return self.execute_many(_work)

    def _daily_query(self, year, month, day, filters):
        where = ['fs.year = %s', 'fs.month = %s', 'fs.day = %s']
        params = [year, month, day]
        for key, column in (('flow_id', 'fs.flow_id'), ('user_id', 'fs.user_id'),
                            ('brand_id', 'f.brand_id'), ('geo_id', 'f.geo_id'),
                            ('status', 'f.status')):
            if filters.get(key) is not None:
                where.append(f'{column} = %s')
                params.append(filters[key])
        if filters.get('team_id') is not None:
            where.append('u.team_id = %s')
            params.append(filters['team_id'])
        if filters.get('visible_to_user_id'):
            where.append('''(f.created_by = %s OR EXISTS (
                SELECT 1 FROM flow_users fu
                WHERE fu.flow_id = f.id AND fu.user_id = %s AND fu.status = 'active'))''')
            params.extend([filters['visible_to_user_id']] * 2)

        base = f'''
            SELECT fs.*, {FLOW_KPI_COLUMNS},
                   b.name AS brand_name, g.name AS geo_name,
                   u.username, u.team_id, t.name AS team_name
            FROM flow_stats fs
            JOIN flows f ON f.id = fs.flow_id
            JOIN users u ON u.id = fs.user_id
            LEFT JOIN brands b ON b.id = f.brand_id
            LEFT JOIN geos g ON g.id = f.geo_id
            LEFT JOIN teams t ON t.id = u.team_id
        '''
        return base, where, params

    def get_daily(self, year, month, day, filters, page=1, limit=50):
        """All flows' rows for one date, with flow/user/brand/geo/team names."""
        base, where, params = self._daily_query(year, month, day, filters)
        return self.paginate(base, where, params, 'f.name, u.username', page, limit)

    def get_daily_all(self, year, month, day, filters):
        """Every row get_daily would page through; feeds the day's totals."""
        base, where, params = self._daily_query(year, month, day, filters)
        return self.query_all(f"{base} WHERE {' AND '.join(where)}", params)

    def get_by_flow(self, flow_id, filters=None):
        """Rows of one flow filtered by month/year, date range and user."""
        filters = filters or {}
        where = ['fs.flow_id = %s']
        params = [flow_id]
        if filters.get('year') is not None:
            where.append('fs.year = %s')
            params.append(filters['year'])
        if filters.get('month') is not None:
            where.append('fs.month = %s')
            params.append(filters['month'])
        if filters.get('user_id') is not None:
            where.append('fs.user_id = %s')
            params.append(filters['user_id'])
        if filters.get('date_from'):
            where.append('make_date(fs.year, fs.month, fs.day) >= %s')
            params.append(filters['date_from'])
        if filters.get('date_to'):
            where.append('make_date(fs.year, fs.month, fs.day) <= %s')
            params.append(filters['date_to'])

        return self.query_all(f'''
            SELECT fs.*, {FLOW_KPI_COLUMNS}, u.username, u.first_name, u.last_name
            FROM flow_stats fs
            JOIN flows f ON f.id = fs.flow_id
            JOIN users u ON u.id = fs.user_id
            WHERE {' AND '.join(where)}
            ORDER BY fs.year DESC, fs.month DESC, fs.day DESC, u.username
        ''', params)

    def get_month(self, flow_id, year, month):
        return self.get_by_flow(flow_id, {'year': year, 'month': month})

    def delete(self, flow_id, year, month, day, user_id=None):
        sql = 'DELETE FROM flow_stats WHERE flow_id = %s AND year = %s AND month = %s AND day = %s'
        params = [flow_id, year, month, day]
        if user_id is not None:
            sql += ' AND user_id = %s'
            params.append(user_id)
        return self.execute(sql, params)
