"""Repository for the flows table."""

import logging
from psycopg2.extras import Json

from backoffice.core.base_repository import BaseRepository

logger = logging.getLogger('backoffice.flows.flow_repo')

FLOW_SELECT = '''
    SELECT f.*,
           b.name AS brand_name, g.name AS geo_name, g.country_code AS geo_country_code,
           t.name AS team_name, cu.username AS created_by_username
    FROM flows f
    LEFT JOIN brands b ON b.id = f.brand_id
    LEFT JOIN geos g ON g.id = f.geo_id
    LEFT JOIN teams t ON t.id = f.team_id
    LEFT JOIN users cu ON cu.id = f.created_by
'''

SORT_COLUMNS = {
    'name': 'f.name',
    'status': 'f.status',
    'created_at': 'f.created_at',
    'updated_at': 'f.updated_at',
    'start_date': 'f.start_date',
}

UPDATABLE_FIELDS = {
    'name', 'description', 'brand_id', 'geo_id', 'team_id', 'flow_type', 'kpi_metric',
    'kpi_target_value', 'spend_percentage_ranges', 'status', 'is_active', 'currency', 'cpa',
    'start_date', 'end_date', 'conditions', 'notes',
}


class FlowRepository(BaseRepository):

    def list_flows(self, filters, page=1, limit=20, sort_by='created_at', order='desc'):
        where, params = [], []
        for key in ('status', 'flow_type', 'kpi_metric', 'brand_id', 'geo_id', 'team_id'):
            if filters.get(key) is not None:
                where.append(f'f.{key} = %s')
                params.append(filters[key])
        if filters.get('is_active') is not None:
            where.append('f.is_active = %s')
            params.append(filters['is_active'])
        if filters.get('search'):
            where.append('(f.name ILIKE %s OR f.description ILIKE %s)')
            params.extend([f"%{filters['search']}%"] * 2)
        if filters.get('date_from'):
            where.append('(f.end_date IS NULL OR f.end_date >= %s)')
            params.append(filters['date_from'])
        if filters.get('date_to'):
            where.append('(f.start_date IS NULL OR f.start_date <= %s)')
            params.append(filters['date_to'])
        if filters.get('visible_to_user_id'):
            where.append('''(f.created_by = %s OR EXISTS (
                SELECT 1 FROM flow_users fu
                WHERE fu.flow_id = f.id AND fu.user_id = %s AND fu.status = 'active'))''')
            params.extend([filters['visible_to_user_id']] * 2)

        sort_column = SORT_COLUMNS.get(sort_by, 'f.created_at')
        direction = 'ASC' if str(order).lower() == 'asc' else 'DESC'
        return self.paginate(FLOW_SELECT, where, params, f'{sort_column} {direction}', page, limit)

    def get_by_id(self, flow_id):
        return self.query_one(f'{FLOW_SELECT} WHERE f.id = %s', (flow_id,))

    def name_exists(self, name, exclude_id=None):
        if exclude_id:
            return self.exists('SELECT 1 FROM flows WHERE LOWER(name) = LOWER(%s) AND id != %s',
                               (name, exclude_id))
        return self.exists('SELECT 1 FROM flows WHERE LOWER(name) = LOWER(%s)', (name,))

    def create(self, fields, created_by):
        """Insert the flow and register its creator as an active flow user, atomically."""
        def _work(cursor):
            cursor.execute('''
                INSERT INTO flows (name, description, brand_id, geo_id, team_id, flow_type,
                                   kpi_metric, kpi_target_value, spend_percentage_ranges, status,
                                   is_active, currency, cpa, start_date, end_date, conditions,
                                   notes, created_by, updated_by)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING id
            ''', (
                fields['name'], fields.get('description'), fields['brand_id'], fields['geo_id'],
                fields.get('team_id'), fields['flow_type'], fields['kpi_metric'],
                fields.get('kpi_target_value'), self._json(fields.get('spend_percentage_ranges')),
                fields.get('status') or 'pending', fields.get('is_active', True),
                fields.get('currency') or 'USD', fields.get('cpa') or 0,
                fields.get('start_date'), fields.get('end_date'), fields.get('conditions'),
                fields.get('notes'), created_by, created_by,
            ))
            flow_id = cursor.fetchone()['id']
            cursor.execute('''
                INSERT INTO flow_users (flow_id, user_id, status, created_by)
                VALUES (%s, %s, 'active', %s)
                ON CONFLICT (flow_id, user_id) DO NOTHING
            ''', (flow_id, created_by, created_by))
            return flow_id

        flow_id = self.execute_many(_work)
        return self.get_by_id(flow_id)

    def update(self, flow_id, fields, updated_by):
        updates, params = [], []
        for key, val in fields.items():
            if key in UPDATABLE_FIELDS:
                updates.append(f'{key} = %s')
                params.append(self._json(val) if key == 'spend_percentage_ranges' else val)
        if not updates:
            return self.get_by_id(flow_id)
        updates.extend(['updated_by = %s', 'updated_at = CURRENT_TIMESTAMP'])
        params.extend([updated_by, flow_id])
        if self.execute(f'UPDATE flows SET {", ".join(updates)} WHERE id = %s', params) == 0:
            return None
        return self.get_by_id(flow_id)

    def usage(self, flow_id):
        """Rows that block deleting a flow."""
        return self.query_one('''
            SELECT
                (SELECT COUNT(*) FROM flow_stats WHERE flow_id = %s) AS stats_count,
                (SELECT COUNT(*) FROM communications c
                   JOIN communication_contexts cc ON cc.id = c.context_id
                  WHERE cc.context_type = 'flow' AND cc.context_id = %s) AS communications_count
        ''', (flow_id, flow_id)) or {'stats_count': 0, 'communications_count': 0}

    def delete(self, flow_id):
        def _work(cursor):
            cursor.execute('''
                DELETE FROM communication_contexts WHERE context_type = 'flow' AND context_id = %s
            ''', (flow_id,))
            cursor.execute('DELETE FROM flows WHERE id = %s', (flow_id,))
            return cursor.rowcount > 0
        return self.execute_many(_work)

    def user_has_access(self, flow_id, user_id):
        """Creator or active flow user."""
        return self.exists('''
            SELECT 1 FROM flows f
            WHERE f.id = %s AND (f.created_by = %s OR EXISTS (
                SELECT 1 FROM flow_users fu
                WHERE fu.flow_id = f.id AND fu.user_id = %s AND fu.status = 'active'))
        ''', (flow_id, user_id, user_id))

    def get_overview(self, visible_to_user_id=None):
        """Counts by status and type."""
        where = ''
        params = []
        if visible_to_user_id:
            where = '''WHERE f.created_by = %s OR EXISTS (
                SELECT 1 FROM flow_users fu
                WHERE fu.flow_id = f.id AND fu.user_id = %s AND fu.status = 'active')'''
            params = [visible_to_user_id, visible_to_user_id]
        return self.query_one(f'''
            SELECT
                COUNT(*) AS total_flows,
                COUNT(*) FILTER (WHERE f.status = 'active') AS active_flows,
                COUNT(*) FILTER (WHERE f.status = 'paused') AS paused_flows,
                COUNT(*) FILTER (WHERE f.status = 'stopped') AS stopped_flows,
                COUNT(*) FILTER (WHERE f.status = 'pending') AS pending_flows,
                COUNT(*) FILTER (WHERE f.status = 'archived') AS archived_flows,
                COUNT(*) FILTER (WHERE f.flow_type = 'cpa') AS cpa_flows,
                COUNT(*) FILTER (WHERE f.flow_type = 'spend') AS spend_flows,
                COUNT(*) FILTER (WHERE f.is_active) AS enabled_flows,
                COUNT(DISTINCT f.brand_id) AS brands_count,
                COUNT(DISTINCT f.geo_id) AS geos_count
            FROM flows f
            {where}
        ''', params)

    @staticmethod
    def _json(value):
        return Json(value) if value is not None else None
