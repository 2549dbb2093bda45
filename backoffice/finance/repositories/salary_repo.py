"""Repository for salaries and salary_templates."""

import logging
from backoffice.core.base_repository import BaseRepository

logger = logging.getLogger('backoffice.finance.salary_repo')

SALARY_SELECT = '''
    SELECT s.*,
           u.username, u.first_name, u.last_name, u.team_id, t.name AS team_name,
           ab.username AS approved_by_username, fm.username AS finance_manager_username
    FROM salaries s
    JOIN users u ON u.id = s.user_id
    LEFT JOIN teams t ON t.id = u.team_id
    LEFT JOIN users ab ON ab.id = s.approved_by
    LEFT JOIN users fm ON fm.id = s.finance_manager_id
'''

SORT_COLUMNS = {
    'created_at': 's.created_at',
    'amount': 's.amount',
    'status': 's.status',
    'period': 's.year {dir}, s.month',
}


def _scope_where(filters):
    where, params = [], []
    for key, column in (('user_id', 's.user_id'), ('status', 's.status'),
                        ('month', 's.month'), ('year', 's.year'), ('team_id', 'u.team_id')):
        if filters.get(key) is not None:
            where.append(f'{column} = %s')
            params.append(filters[key])
    return where, params


class SalaryRepository(BaseRepository):

    def list_salaries(self, filters, page=1, limit=20, sort_by='period', order='desc'):
        where, params = _scope_where(filters)
        direction = 'ASC' if str(order).lower() == 'asc' else 'DESC'
        column = SORT_COLUMNS.get(sort_by, SORT_COLUMNS['period']).format(dir=direction)
        return self.paginate(SALARY_SELECT, where, params, f'{column} {direction}, s.id DESC',
                             page, limit)

    def get_by_id(self, salary_id):
        return self.query_one(f'{SALARY_SELECT} WHERE s.id = %s', (salary_id,))

    def exists_for_period(self, user_id, month, year):
        return self.exists('SELECT 1 FROM salaries WHERE user_id = %s AND month = %s AND year = %s',
                           (user_id, month, year))

    def create(self, user_id, month, year, amount, currency='USD', description=None,
               created_by=None):
        row = self.execute('''
            INSERT INTO salaries (user_id, month, year, amount, currency, description,
                                  status, created_by)
            VALUES (%s, %s, %s, %s, %s, %s, 'pending', %s)
            RETURNING id
        ''', (user_id, month, year, amount, currency, description, created_by), returning=True)
        return self.get_by_id(row['id'])

    def update(self, salary_id, **kwargs):
        allowed = {'amount', 'currency', 'description'}
        updates, params = [], []
        for key, val in kwargs.items():
            if key in allowed:
                updates.append(f'{key} = %s')
                params.append(val)
        if updates:
            updates.append('updated_at = CURRENT_TIMESTAMP')
            params.append(salary_id)
            self.execute(f'UPDATE salaries SET {", ".join(updates)} WHERE id = %s', params)
        return self.get_by_id(salary_id)

    def approve(self, salary_id, approved_by):
        self.execute('''
            UPDATE salaries SET status = 'approved', approved_by = %s,
                   approved_at = CURRENT_TIMESTAMP, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (approved_by, salary_id))
        return self.get_by_id(salary_id)

    def mark_paid(self, salary_id, finance_manager_id, network, address, transaction_hash):
        self.execute('''
            UPDATE salaries SET status = 'paid', paid_at = CURRENT_TIMESTAMP,
                   finance_manager_id = %s, payment_network = %s, payment_address = %s,
                   payment_transaction_hash = %s, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (finance_manager_id, network, address, transaction_hash, salary_id))
        return self.get_by_id(salary_id)

    def reject(self, salary_id, reason=None):
        self.execute('''
            UPDATE salaries SET status = 'rejected', rejection_reason = %s,
                   updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (reason, salary_id))
        return self.get_by_id(salary_id)

    def delete(self, salary_id):
        return self.execute('DELETE FROM salaries WHERE id = %s', (salary_id,)) > 0

    def get_stats(self, filters):
        """Count and amount per status, plus overall totals."""
        where, params = _scope_where(filters)
        where_sql = f"WHERE {' AND '.join(where)}" if where else ''
        rows = self.query_all(f'''
            SELECT s.status, COUNT(*) AS count, COALESCE(SUM(s.amount), 0) AS total_amount
            FROM salaries s
            JOIN users u ON u.id = s.user_id
            {where_sql}
            GROUP BY s.status
        ''', params)
        by_status = {r['status']: {'count': int(r['count']), 'total_amount': r['total_amount']}
                     for r in rows}
        return {
            'by_status': by_status,
            'total_count': sum(s['count'] for s in by_status.values()),
            'total_amount': round(sum(s['total_amount'] for s in by_status.values()), 2),
        }

    def generate_for_period(self, month, year, created_by):
        """Create pending salaries from active templates in one transaction.

        Users that already have a salary for the period are skipped.
        Returns {'created': [...ids], 'skipped': n}.
        """
        def _work(cursor):
            cursor.execute('''
                SELECT st.user_id, st.base_amount, st.currency
                FROM salary_templates st
                JOIN users u ON u.id = st.user_id
                WHERE st.is_active = TRUE AND u.is_active = TRUE AND st.base_amount > 0
                ORDER BY st.user_id
            ''')
            templates = cursor.fetchall()
            created, skipped = [], 0
            for tpl in templates:
                cursor.execute('''
                    INSERT INTO salaries (user_id, month, year, amount, currency, description,
                                          status, created_by)
                    VALUES (%s, %s, %s, %s, %s, %s, 'pending', %s)
                    ON CONFLICT (user_id, month, year) DO NOTHING
                    RETURNING id
                ''', (tpl['user_id'], month, year, tpl['base_amount'], tpl['currency'],
                      f'Salary {month:02d}/{year}', created_by))
                row = cursor.fetchone()
                if row:
                    created.append(row['id'])
                else:
                    skipped += 1
            return {'created': created, 'skipped': skipped, 'templates': len(templates)}
        return self.execute_many(_work)


class SalaryTemplateRepository(BaseRepository):

    def get_all(self, only_active=False):
        where = 'WHERE st.is_active = TRUE' if only_active else ''
        return self.query_all(f'''
            SELECT st.*, u.username, u.first_name, u.last_name, u.team_id,
                   u.salary_wallet_address, u.salary_network
            FROM salary_templates st
            JOIN users u ON u.id = st.user_id
            {where}
            ORDER BY u.username
        ''')

    def upsert(self, user_id, base_amount, currency='USD', notes=None, is_active=True):
        return self.execute('''
            INSERT INTO salary_templates (user_id, base_amount, currency, notes, is_active)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (user_id) DO UPDATE SET
                base_amount = EXCLUDED.base_amount,
                currency = EXCLUDED.currency,
                notes = EXCLUDED.notes,
                is_active = EXCLUDED.is_active,
                updated_at = CURRENT_TIMESTAMP
            RETURNING *
        ''', (user_id, base_amount, currency, notes, is_active), returning=True)
