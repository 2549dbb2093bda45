"""Repository for the geos table."""

from backoffice.core.base_repository import BaseRepository


class GeoRepository(BaseRepository):

    def get_all(self, only_active=False, region=None):
        where, params = [], []
        if only_active:
            where.append('g.is_active = TRUE')
        if region:
            where.append('g.region = %s')
            params.append(region)
        where_sql = f"WHERE {' AND '.join(where)}" if where else ''
        return self.query_all(f'''
            SELECT g.*, COUNT(f.id) AS flows_count
            FROM geos g
            LEFT JOIN flows f ON f.geo_id = g.id
            {where_sql}
            GROUP BY g.id
            ORDER BY g.name
        ''', params)

    def get_by_id(self, geo_id):
        return self.query_one('SELECT * FROM geos WHERE id = %s', (geo_id,))

    def name_exists(self, name, exclude_id=None):
        if exclude_id:
            return self.exists('SELECT 1 FROM geos WHERE LOWER(name) = LOWER(%s) AND id != %s',
                               (name, exclude_id))
        return self.exists('SELECT 1 FROM geos WHERE LOWER(name) = LOWER(%s)', (name,))

    def create(self, name, country_code=None, region=None, is_active=True, created_by=None):
        return self.execute('''
            INSERT INTO geos (name, country_code, region, is_active, created_by)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING *
        ''', (name, country_code, region, is_active, created_by), returning=True)

    def update(self, geo_id, **kwargs):
        allowed = {'name', 'country_code', 'region', 'is_active'}
        updates, params = [], []
        for key, val in kwargs.items():
            if key in allowed:
                updates.append(f'{key} = %s')
                params.append(val)
        if not updates:
            return self.get_by_id(geo_id)
        updates.append('updated_at = CURRENT_TIMESTAMP')
        params.append(geo_id)
        return self.execute(
            f'UPDATE geos SET {", ".join(updates)} WHERE id = %s RETURNING *', params, returning=True
        )

    def set_status(self, geo_id, is_active):
        return self.update(geo_id, is_active=is_active)

    def count_flows(self, geo_id):
        row = self.query_one('SELECT COUNT(*) AS cnt FROM flows WHERE geo_id = %s', (geo_id,))
        return int(row['cnt']) if row else 0

    def delete(self, geo_id):
        return self.execute('DELETE FROM geos WHERE id = %s', (geo_id,)) > 0
