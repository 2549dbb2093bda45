"""Department Repository - departments and their usage counters."""
from typing import Optional

from backoffice.core.base_repository import BaseRepository

DEPARTMENT_TYPES = ('buying', 'bizdev', 'finance', 'management', 'other')


class DepartmentRepository(BaseRepository):
    """Repository for department data access operations."""

    def get_all(self, is_active: bool = None, dept_type: str = None) -> list[dict]:
        where, params = [], []
        if is_active is not None:
            where.append('d.is_active = %s')
            params.append(is_active)
        if dept_type:
            where.append('d.type = %s')
            params.append(dept_type)
        where_sql = f"WHERE {' AND '.join(where)}" if where else ''
        return self.query_all(f'''
            SELECT d.*, COUNT(u.id) AS user_count
            FROM departments d
            LEFT JOIN users u ON u.department_id = d.id
            {where_sql}
            GROUP BY d.id
            ORDER BY d.name
        ''', params)

    def get(self, department_id: int) -> Optional[dict]:
        return self.query_one('SELECT * FROM departments WHERE id = %s', (department_id,))

    def name_exists(self, name: str, exclude_id: int = None) -> bool:
        if exclude_id:
            return self.exists('SELECT 1 FROM departments WHERE LOWER(name) = LOWER(%s) AND id != %s',
                               (name, exclude_id))
        return self.exists('SELECT 1 FROM departments WHERE LOWER(name) = LOWER(%s)', (name,))

    def create(self, name: str, description: str = None, dept_type: str = 'other') -> dict:
        return self.execute('''
            INSERT INTO departments (name, description, type)
            VALUES (%s, %s, %s)
            RETURNING *
        ''', (name, description, dept_type), returning=True)

    def update(self, department_id: int, **kwargs) -> Optional[dict]:
        allowed = {'name', 'description', 'type', 'is_active'}
        updates, params = [], []
        for key, val in kwargs.items():
            if key in allowed:
                updates.append(f'{key} = %s')
                params.append(val)
        if not updates:
            return self.get(department_id)
        updates.append('updated_at = CURRENT_TIMESTAMP')
        params.append(department_id)
        return self.execute(
            f'UPDATE departments SET {", ".join(updates)} WHERE id = %s RETURNING *',
            params, returning=True
        )

    def set_active(self, department_id: int, is_active: bool) -> Optional[dict]:
        return self.update(department_id, is_active=is_active)

    def usage(self, department_id: int) -> dict:
        """How many users and expense types still point at the department."""
        return self.query_one('''
            SELECT
                (SELECT COUNT(*) FROM users WHERE department_id = %s) AS users_count,
                (SELECT COUNT(*) FROM expense_types WHERE department_id = %s) AS expense_types_count
        ''', (department_id, department_id)) or {'users_count': 0, 'expense_types_count': 0}

    def delete(self, department_id: int) -> bool:
        return self.execute('DELETE FROM departments WHERE id = %s', (department_id,)) > 0

    def get_stats(self, department_id: int) -> dict:
        row = self.query_one('''
            SELECT
                (SELECT COUNT(*) FROM users WHERE department_id = %s) AS users_count,
                (SELECT COUNT(*) FROM users WHERE department_id = %s AND is_active) AS active_users_count,
                (SELECT COUNT(*) FROM expense_types WHERE department_id = %s) AS expense_types_count,
                (SELECT COUNT(*) FROM expenses WHERE department_id = %s) AS expenses_count,
                (SELECT COALESCE(SUM(amount), 0) FROM expenses WHERE department_id = %s) AS expenses_total
        ''', (department_id,) * 5)
        stats = row or {}
        stats['department_id'] = department_id
        return stats
