"""Repositories for expense_types and expenses."""

import logging
from backoffice.core.base_repository import BaseRepository

logger = logging.getLogger('backoffice.finance.expense_repo')

EXPENSE_SELECT = '''
    SELECT e.*, et.name AS expense_type_name, d.name AS department_name, u.username
    FROM expenses e
    JOIN expense_types et ON et.id = e.expense_type_id
    LEFT JOIN departments d ON d.id = e.department_id
    JOIN users u ON u.id = e.user_id
'''

EXPENSE_SORT_COLUMNS = {
    'expense_date': 'e.expense_date',
    'amount': 'e.amount',
    'created_at': 'e.created_at',
}

EXPENSE_FIELDS = {
    'expense_type_id', 'department_id', 'amount', 'currency', 'network', 'wallet_address',
    'transaction_hash', 'expense_date', 'description', 'status',
}


class ExpenseTypeRepository(BaseRepository):

    def get_all(self, department_id=None, is_active=None):
        where, params = [], []
        if department_id is not None:
            where.append('et.department_id = %s')
            params.append(department_id)
        if is_active is not None:
            where.append('et.is_active = %s')
            params.append(is_active)
        where_sql = f"WHERE {' AND '.join(where)}" if where else ''
        return self.query_all(f'''
            SELECT et.*, d.name AS department_name, COUNT(e.id) AS expenses_count
            FROM expense_types et
            JOIN departments d ON d.id = et.department_id
            LEFT JOIN expenses e ON e.expense_type_id = et.id
            {where_sql}
            GROUP BY et.id, d.name
            ORDER BY d.name, et.name
        ''', params)

    def get_by_id(self, type_id):
        return self.query_one('''
            SELECT et.*, d.name AS department_name
            FROM expense_types et
            JOIN departments d ON d.id = et.department_id
            WHERE et.id = %s
        ''', (type_id,))

    def name_exists(self, name, department_id, exclude_id=None):
        sql = '''SELECT 1 FROM expense_types
                 WHERE LOWER(name) = LOWER(%s) AND department_id = %s'''
        params = [name, department_id]
        if exclude_id:
            sql += ' AND id != %s'
            params.append(exclude_id)
        return self.exists(sql, params)

    def create(self, name, department_id, description=None, is_active=True):
        row = self.execute('''
            INSERT INTO expense_types (name, department_id, description, is_active)
            VALUES (%s, %s, %s, %s)
            RETURNING id
        ''', (name, department_id, description, is_active), returning=True)
        return self.get_by_id(row['id'])

    def update(self, type_id, **kwargs):
        allowed = {'name', 'department_id', 'description', 'is_active'}
        updates, params = [], []
        for key, val in kwargs.items():
            if key in allowed:
                updates.append(f'{key} = %s')
                params.append(val)
        if updates:
            updates.append('updated_at = CURRENT_TIMESTAMP')
            params.append(type_id)
            self.execute(f'UPDATE expense_types SET {", ".join(updates)} WHERE id = %s', params)
        return self.get_by_id(type_id)

    def count_expenses(self, type_id):
        row = self.query_one('SELECT COUNT(*) AS cnt FROM expenses WHERE expense_type_id = %s',
                             (type_id,))
        return int(row['cnt']) if row else 0

    def delete(self, type_id):
        return self.execute('DELETE FROM expense_types WHERE id = %s', (type_id,)) > 0

    def get_stats(self):
        return self.query_all('''
            SELECT et.id, et.name, et.department_id, d.name AS department_name, et.is_active,
                   COUNT(e.id) AS expenses_count,
                   COALESCE(SUM(e.amount), 0) AS total_amount,
                   MAX(e.expense_date) AS last_expense_date
            FROM expense_types et
            JOIN departments d ON d.id = et.department_id
            LEFT JOIN expenses e ON e.expense_type_id = et.id
            GROUP BY et.id, d.name
            ORDER BY total_amount DESC, et.name
        ''')


class ExpenseRepository(BaseRepository):

    @staticmethod
    def _filters(filters):
        where, params = [], []
        for key in ('department_id', 'expense_type_id', 'user_id', 'status'):
            if filters.get(key) is not None:
                where.append(f'e.{key} = %s')
                params.append(filters[key])
        if filters.get('date_from'):
            where.append('e.expense_date >= %s')
            params.append(filters['date_from'])
        if filters.get('date_to'):
            where.append('e.expense_date <= %s')
            params.append(filters['date_to'])
        return where, params

    def list_expenses(self, filters, page=1, limit=20, sort_by='expense_date', order='desc'):
        where, params = self._filters(filters)
        column = EXPENSE_SORT_COLUMNS.get(sort_by, 'e.expense_date')
        direction = 'ASC' if str(order).lower() == 'asc' else 'DESC'
        return self.paginate(EXPENSE_SELECT, where, params, f'{column} {direction}, e.id DESC',
                             page, limit)

    def get_by_id(self, expense_id):
        return self.query_one(f'{EXPENSE_SELECT} WHERE e.id = %s', (expense_id,))

    def create(self, fields, user_id):
        columns = [k for k in fields if k in EXPENSE_FIELDS]
        values = [fields[k] for k in columns]
        placeholders = ', '.join(['%s'] * (len(columns) + 1))
        row = self.execute(f'''
            INSERT INTO expenses ({', '.join(columns)}, user_id)
            VALUES ({placeholders})
            RETURNING id
        ''', values + [user_id], returning=True)
        return self.get_by_id(row['id'])

    def update(self, expense_id, **kwargs):
        updates, params = [], []
        for key, val in kwargs.items():
            if key in EXPENSE_FIELDS:
                updates.append(f'{key} = %s')
                params.append(val)
        if updates:
            updates.append('updated_at = CURRENT_TIMESTAMP')
            params.append(expense_id)
            self.execute(f'UPDATE expenses SET {", ".join(updates)} WHERE id = %s', params)
        return self.get_by_id(expense_id)

    def delete(self, expense_id):
        return self.execute('DELETE FROM expenses WHERE id = %s', (expense_id,)) > 0

    def get_summary(self, filters):
        """Totals overall, by department and by expense type."""
        where, params = self._filters(filters)
        where_sql = f"WHERE {' AND '.join(where)}" if where else ''
        totals = self.query_one(f'''
            SELECT COUNT(*) AS expenses_count, COALESCE(SUM(e.amount), 0) AS total_amount
            FROM expenses e {where_sql}
        ''', params) or {'expenses_count': 0, 'total_amount': 0}
        by_department = self.query_all(f'''
            SELECT e.department_id, d.name AS department_name,
                   COUNT(*) AS expenses_count, COALESCE(SUM(e.amount), 0) AS total_amount
            FROM expenses e
            LEFT JOIN departments d ON d.id = e.department_id
            {where_sql}
            GROUP BY e.department_id, d.name
            ORDER BY total_amount DESC
        ''', params)
        by_type = self.query_all(f'''
            SELECT e.expense_type_id, et.name AS expense_type_name,
                   COUNT(*) AS expenses_count, COALESCE(SUM(e.amount), 0) AS total_amount
            FROM expenses e
            JOIN expense_types et ON et.id = e.expense_type_id
            {where_sql}
            GROUP BY e.expense_type_id, et.name
            ORDER BY total_amount DESC
        ''', params)
        return {'totals': totals, 'by_department': by_department, 'by_type': by_type}
