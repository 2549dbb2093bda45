"""Repository for partner_payments."""

import logging
from backoffice.core.base_repository import BaseRepository

logger = logging.getLogger('backoffice.finance.partner_payment_repo')

PAYMENT_SELECT = '''
    SELECT pp.*, p.name AS partner_name, cu.username AS created_by_username
    FROM partner_payments pp
    JOIN partners p ON p.id = pp.partner_id
    LEFT JOIN users cu ON cu.id = pp.created_by
'''

SORT_COLUMNS = {
    'created_at': 'pp.created_at',
    'amount': 'pp.amount',
    'status': 'pp.status',
    'payment_date': 'pp.payment_date',
}

UPDATABLE_FIELDS = {
    'partner_id', 'amount', 'currency', 'payment_method', 'network', 'wallet_address',
    'transaction_hash', 'description', 'notes',
}


class PartnerPaymentRepository(BaseRepository):

    def list_payments(self, filters, page=1, limit=20, sort_by='created_at', order='desc'):
        where, params = [], []
        for key in ('partner_id', 'status', 'network', 'currency'):
            if filters.get(key) is not None:
                where.append(f'pp.{key} = %s')
                params.append(filters[key])
        if filters.get('date_from'):
            where.append('pp.created_at::date >= %s')
            params.append(filters['date_from'])
        if filters.get('date_to'):
            where.append('pp.created_at::date <= %s')
            params.append(filters['date_to'])
        if filters.get('search'):
            where.append('(p.name ILIKE %s OR pp.transaction_hash ILIKE %s OR pp.description ILIKE %s)')
            params.extend([f"%{filters['search']}%"] * 3)

        column = SORT_COLUMNS.get(sort_by, 'pp.created_at')
        direction = 'ASC' if str(order).lower() == 'asc' else 'DESC'
        return self.paginate(PAYMENT_SELECT, where, params, f'{column} {direction}', page, limit)

    def get_by_id(self, payment_id):
        return self.query_one(f'{PAYMENT_SELECT} WHERE pp.id = %s', (payment_id,))

    def partner_exists(self, partner_id):
        return self.exists('SELECT 1 FROM partners WHERE id = %s', (partner_id,))

    def hash_exists(self, transaction_hash, exclude_id=None):
        if exclude_id:
            return self.exists(
                'SELECT 1 FROM partner_payments WHERE transaction_hash = %s AND id != %s',
                (transaction_hash, exclude_id))
        return self.exists('SELECT 1 FROM partner_payments WHERE transaction_hash = %s',
                           (transaction_hash,))

    def create(self, fields, created_by):
        columns = [k for k in fields if k in UPDATABLE_FIELDS]
        values = [fields[k] for k in columns]
        placeholders = ', '.join(['%s'] * (len(columns) + 1))
        row = self.execute(f'''
            INSERT INTO partner_payments ({', '.join(columns)}, created_by)
            VALUES ({placeholders})
            RETURNING id
        ''', values + [created_by], returning=True)
        return self.get_by_id(row['id'])

    def update(self, payment_id, **kwargs):
        updates, params = [], []
        for key, val in kwargs.items():
            if key in UPDATABLE_FIELDS:
                updates.append(f'{key} = %s')
                params.append(val)
        if updates:
            updates.append('updated_at = CURRENT_TIMESTAMP')
            params.append(payment_id)
            self.execute(f'UPDATE partner_payments SET {", ".join(updates)} WHERE id = %s', params)
        return self.get_by_id(payment_id)

    def set_status(self, payment_id, status, **side_effects):
        """Change status and apply the per-status column updates.

        `side_effects` maps column -> value; the special value 'NOW' becomes
        CURRENT_TIMESTAMP.
        """
        updates, params = ['status = %s'], [status]
        for column, value in side_effects.items():
            if value == 'NOW':
                updates.append(f'{column} = CURRENT_TIMESTAMP')
            else:
                updates.append(f'{column} = %s')
                params.append(value)
        updates.append('updated_at = CURRENT_TIMESTAMP')
        params.append(payment_id)
        self.execute(f'UPDATE partner_payments SET {", ".join(updates)} WHERE id = %s', params)
        return self.get_by_id(payment_id)

    def delete(self, payment_id):
        return self.execute('DELETE FROM partner_payments WHERE id = %s', (payment_id,)) > 0

    def get_stats(self):
        rows = self.query_all('''
            SELECT status, COUNT(*) AS count, COALESCE(SUM(amount), 0) AS total_amount
            FROM partner_payments
            GROUP BY status
        ''')
        by_status = {r['status']: {'count': int(r['count']), 'total_amount': r['total_amount']}
                     for r in rows}
        return {
            'by_status': by_status,
            'total_count': sum(s['count'] for s in by_status.values()),
            'total_amount': round(sum(s['total_amount'] for s in by_status.values()), 2),
            'completed_amount': by_status.get('completed', {}).get('total_amount', 0),
        }

    def get_stats_by_partner(self):
        return self.query_all('''
            SELECT p.id AS partner_id, p.name AS partner_name,
                   COUNT(pp.id) AS payments_count,
                   COALESCE(SUM(pp.amount), 0) AS total_amount,
                   COALESCE(SUM(pp.amount) FILTER (WHERE pp.status = 'completed'), 0) AS completed_amount,
                   COALESCE(SUM(pp.amount) FILTER (WHERE pp.status IN ('pending', 'processing', 'hold')), 0)
                       AS outstanding_amount,
                   MAX(pp.confirmation_date) AS last_payment_at
            FROM partners p
            JOIN partner_payments pp ON pp.partner_id = p.id
            GROUP BY p.id, p.name
            ORDER BY total_amount DESC
        ''')
