"""Repository for investment_operations (crypto inflows/outflows)."""

import logging
from backoffice.core.base_repository import BaseRepository

logger = logging.getLogger('backoffice.finance.investment_repo')

OPERATION_SELECT = '''
    SELECT io.*, cu.username AS created_by_username
    FROM investment_operations io
    LEFT JOIN users cu ON cu.id = io.created_by
'''

SORT_COLUMNS = {
    'operation_date': 'io.operation_date',
    'amount': 'io.amount',
    'created_at': 'io.created_at',
}

UPDATABLE_FIELDS = {
    'operation_date', 'amount', 'operation_type', 'operator', 'network', 'token',
    'transaction_hash', 'wallet_address', 'additional_fees', 'notes',
}

# incoming, outgoing and fees per group; balance is derived in Python
TOTALS_COLUMNS = '''
    COUNT(*) AS operations_count,
    COALESCE(SUM(amount) FILTER (WHERE operation_type = 'incoming'), 0) AS incoming,
    COALESCE(SUM(amount) FILTER (WHERE operation_type = 'outgoing'), 0) AS outgoing,
    COALESCE(SUM(additional_fees), 0) AS fees
'''


def with_balance(row):
    row['balance'] = round((row.get('incoming') or 0) - (row.get('outgoing') or 0)
                           - (row.get('fees') or 0), 2)
    return row


class InvestmentRepository(BaseRepository):

    def list_operations(self, filters, page=1, limit=20, sort_by='operation_date', order='desc'):
        where, params = [], []
        for key in ('operation_type', 'operator', 'network', 'token'):
            if filters.get(key) is not None:
                where.append(f'io.{key} = %s')
                params.append(filters[key])
        if filters.get('date_from'):
            where.append('io.operation_date >= %s')
            params.append(filters['date_from'])
        if filters.get('date_to'):
            where.append('io.operation_date <= %s')
            params.append(filters['date_to'])

        column = SORT_COLUMNS.get(sort_by, 'io.operation_date')
        direction = 'ASC' if str(order).lower() == 'asc' else 'DESC'
        return self.paginate(OPERATION_SELECT, where, params, f'{column} {direction}, io.id DESC',
                             page, limit)

    def get_by_id(self, operation_id):
        return self.query_one(f'{OPERATION_SELECT} WHERE io.id = %s', (operation_id,))

    def hash_exists(self, transaction_hash, exclude_id=None):
        if exclude_id:
            return self.exists(
                'SELECT 1 FROM investment_operations WHERE transaction_hash = %s AND id != %s',
                (transaction_hash, exclude_id))
        return self.exists('SELECT 1 FROM investment_operations WHERE transaction_hash = %s',
                           (transaction_hash,))

    def create(self, fields, created_by):
        columns = [k for k in fields if k in UPDATABLE_FIELDS]
        values = [fields[k] for k in columns]
        placeholders = ', '.join(['%s'] * (len(columns) + 1))
        row = self.execute(f'''
            INSERT INTO investment_operations ({', '.join(columns)}, created_by)
            VALUES ({placeholders})
            RETURNING id
        ''', values + [created_by], returning=True)
        return self.get_by_id(row['id'])

    def update(self, operation_id, **kwargs):
        updates, params = [], []
        for key, val in kwargs.items():
            if key in UPDATABLE_FIELDS:
                updates.append(f'{key} = %s')
                params.append(val)
        if updates:
            updates.append('updated_at = CURRENT_TIMESTAMP')
            params.append(operation_id)
            self.execute(f'UPDATE investment_operations SET {", ".join(updates)} WHERE id = %s',
                         params)
        return self.get_by_id(operation_id)

    def delete(self, operation_id):
        return self.execute('DELETE FROM investment_operations WHERE id = %s', (operation_id,)) > 0

    def get_stats(self, date_from=None, date_to=None):
        """Summary plus breakdowns by operator, network and token."""
        where, params = [], []
        if date_from:
            where.append('operation_date >= %s')
            params.append(date_from)
        if date_to:
            where.append('operation_date <= %s')
            params.append(date_to)
        where_sql = f"WHERE {' AND '.join(where)}" if where else ''

        summary = self.query_one(
            f'SELECT {TOTALS_COLUMNS} FROM investment_operations {where_sql}', params) or {}
        result = {'summary': with_balance(summary)}
        for key, column in (('byOperator', 'operator'), ('byNetwork', 'network'),
                            ('byToken', 'token')):
            rows = self.query_all(f'''
                SELECT {column}, {TOTALS_COLUMNS}
                FROM investment_operations {where_sql}
                GROUP BY {column}
                ORDER BY {column}
            ''', params)
            result[key] = [with_balance(r) for r in rows]
        return result

    def get_monthly(self, year):
        """Twelve months of totals for `year`, zero-filled."""
        rows = self.query_all(f'''
            SELECT EXTRACT(MONTH FROM operation_date)::int AS month, {TOTALS_COLUMNS}
            FROM investment_operations
            WHERE EXTRACT(YEAR FROM operation_date) = %s
            GROUP BY 1
        ''', (year,))
        by_month = {int(r['month']): r for r in rows}
        months = []
        for month in range(1, 13):
            row = by_month.get(month) or {'operations_count': 0, 'incoming': 0,
                                          'outgoing': 0, 'fees': 0}
            row['month'] = month
            months.append(with_balance(row))
        return {'year': year, 'months': months}
