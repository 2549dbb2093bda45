"""Repository for the brands table."""

import logging
from backoffice.core.base_repository import BaseRepository

logger = logging.getLogger('backoffice.catalog.brand_repo')


class BrandRepository(BaseRepository):

    def get_all(self, only_active=False):
        where = 'WHERE b.is_active = TRUE' if only_active else ''
        return self.query_all(f'''
            SELECT b.*, COUNT(f.id) AS flows_count
            FROM brands b
            LEFT JOIN flows f ON f.brand_id = b.id
            {where}
            GROUP BY b.id
            ORDER BY b.name
        ''')

    def get_by_id(self, brand_id):
        return self.query_one('SELECT * FROM brands WHERE id = %s', (brand_id,))

    def name_exists(self, name, exclude_id=None):
        if exclude_id:
            return self.exists('SELECT 1 FROM brands WHERE LOWER(name) = LOWER(%s) AND id != %s',
                               (name, exclude_id))
        return self.exists('SELECT 1 FROM brands WHERE LOWER(name) = LOWER(%s)', (name,))

    def create(self, name, description=None, website=None, is_active=True, created_by=None):
        return self.execute('''
            INSERT INTO brands (name, description, website, is_active, created_by)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING *
        ''', (name, description, website, is_active, created_by), returning=True)

    def update(self, brand_id, **kwargs):
        allowed = {'name', 'description', 'website', 'is_active'}
        updates, params = [], []
        for key, val in kwargs.items():
            if key in allowed:
                updates.append(f'{key} = %s')
                params.append(val)
        if not updates:
            return self.get_by_id(brand_id)
        updates.append('updated_at = CURRENT_TIMESTAMP')
        params.append(brand_id)
        return self.execute(
            f'UPDATE brands SET {", ".join(updates)} WHERE id = %s RETURNING *', params, returning=True
        )

    def set_status(self, brand_id, is_active):
        return self.update(brand_id, is_active=is_active)

    def count_flows(self, brand_id):
        row = self.query_one('SELECT COUNT(*) AS cnt FROM flows WHERE brand_id = %s', (brand_id,))
        return int(row['cnt']) if row else 0

    def delete(self, brand_id):
        return self.execute('DELETE FROM brands WHERE id = %s', (brand_id,)) > 0
