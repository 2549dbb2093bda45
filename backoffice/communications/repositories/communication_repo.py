"""Repository for communications and their polymorphic communication_contexts."""

import logging
from psycopg2.extras import Json

from backoffice.core.base_repository import BaseRepository

logger = logging.getLogger('backoffice.communications.communication_repo')

# context_type -> table holding the object the thread is attached to
CONTEXT_TABLES = {
    'flow': 'flows',
    'bizdev_request': 'bizdev_requests',
}

MESSAGE_SELECT = '''
    SELECT c.*, cc.context_type, cc.context_id AS object_id,
           s.username AS sender_username, s.first_name AS sender_first_name,
           s.last_name AS sender_last_name, s.role AS sender_role,
           r.username AS recipient_username, r.first_name AS recipient_first_name,
           r.last_name AS recipient_last_name, r.role AS recipient_role,
           e.username AS edited_by_username, e.first_name AS edited_by_first_name,
           e.last_name AS edited_by_last_name, e.role AS edited_by_role
    FROM communications c
    JOIN communication_contexts cc ON cc.id = c.context_id
    JOIN users s ON s.id = c.sender_id
    LEFT JOIN users r ON r.id = c.recipient_id
    LEFT JOIN users e ON e.id = c.edited_by
'''

SORT_COLUMNS = {
    'created_at': 'c.created_at',
    'updated_at': 'c.updated_at',
    'message_type': 'c.message_type',
    'is_urgent': 'c.is_urgent',
}


def shape_message(row):
    """Fold the joined user columns into sender_info / recipient_info / edited_by_info."""
    if not row:
        return row
    for prefix, id_key in (('sender', 'sender_id'), ('recipient', 'recipient_id'),
                           ('edited_by', 'edited_by')):
        info = {
            'username': row.pop(f'{prefix}_username', None),
            'first_name': row.pop(f'{prefix}_first_name', None),
            'last_name': row.pop(f'{prefix}_last_name', None),
            'role': row.pop(f'{prefix}_role', None),
        }
        row[f'{prefix}_info'] = dict(id=row[id_key], **info) if row.get(id_key) else None
    return row


CONTEXT_JOINS = '''
    LEFT JOIN flows f ON cc.context_type = 'flow' AND f.id = cc.context_id
    LEFT JOIN bizdev_requests br ON cc.context_type = 'bizdev_request' AND br.id = cc.context_id
'''


def readable_rule(user_id, all_flows=False, all_requests=False):
    """SQL condition (over cc, f, br) matching threads the user may read, plus its params."""
    params = []
    if all_flows:
        flow_rule = 'TRUE'
    else:
        flow_rule = '''(f.created_by = %s OR EXISTS (
            SELECT 1 FROM flow_users fu
            WHERE fu.flow_id = f.id AND fu.user_id = %s AND fu.status = 'active'))'''
        params.extend([user_id, user_id])
    if all_requests:
        request_rule = 'TRUE'
    else:
        request_rule = 'br.created_by = %s'
        params.append(user_id)
    sql = f'''(
            (cc.context_type = 'flow' AND {flow_rule})
            OR (cc.context_type = 'bizdev_request' AND {request_rule}))'''
    return sql, params


class CommunicationRepository(BaseRepository):

    # ============== Contexts ==============

    def get_context_object(self, context_type, context_id):
        """The flow / bizdev request a thread hangs off, or None."""
        table = CONTEXT_TABLES[context_type]
        return self.query_one(f'SELECT id, created_by FROM {table} WHERE id = %s', (context_id,))

    # ============== Messages ==============

    def list_messages(self, context_type, context_id, filters, page=1, limit=50,
                      sort_by='created_at', order='asc'):
        where = ['cc.context_type = %s', 'cc.context_id = %s']
        params = [context_type, context_id]
        for key in ('is_internal', 'message_type', 'sender_id'):
            if filters.get(key) is not None:
                where.append(f'c.{key} = %s')
                params.append(filters[key])
        if filters.get('search'):
            where.append('c.message ILIKE %s')
            params.append(f"%{filters['search']}%")

        column = SORT_COLUMNS.get(sort_by, 'c.created_at')
        direction = 'DESC' if str(order).lower() == 'desc' else 'ASC'
        rows, pagination = self.paginate(MESSAGE_SELECT, where, params,
                                         f'{column} {direction}, c.id {direction}', page, limit)
        return [shape_message(r) for r in rows], pagination

    def get_by_id(self, message_id):
        return shape_message(self.query_one(f'{MESSAGE_SELECT} WHERE c.id = %s', (message_id,)))

    def create(self, context_type, context_id, fields, sender_id):
        """Insert a message, creating the context row on first use.

        Also bumps the context object's updated_at. Runs in one transaction.
        """
        table = CONTEXT_TABLES[context_type]

        def _work(cursor):
            cursor.execute('''
                INSERT INTO communication_contexts (context_type, context_id)
                VALUES (%s, %s)
                ON CONFLICT (context_type, context_id) DO UPDATE SET context_type = EXCLUDED.context_type
                RETURNING id
            ''', (context_type, context_id))
            ctx_row_id = cursor.fetchone()['id']
            cursor.execute('''
                INSERT INTO communications (context_id, parent_id, sender_id, recipient_id, message,
                                            message_type, is_internal, is_urgent, metadata)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING id
            ''', (ctx_row_id, fields.get('parent_id'), sender_id, fields.get('recipient_id'),
                  fields['message'], fields.get('message_type') or 'comment',
                  bool(fields.get('is_internal')), bool(fields.get('is_urgent')),
                  Json(fields.get('metadata') or {})))
            message_id = cursor.fetchone()['id']
            cursor.execute(f'UPDATE {table} SET updated_at = CURRENT_TIMESTAMP WHERE id = %s',
                           (context_id,))
            return message_id

        return self.get_by_id(self.execute_many(_work))

    def update_message(self, message_id, message, editor_id):
        self.execute('''
            UPDATE communications
            SET message = %s, is_edited = TRUE, edited_at = CURRENT_TIMESTAMP, edited_by = %s,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (message, editor_id, message_id))
        return self.get_by_id(message_id)

    def soft_delete(self, message_id, actor_id):
        return self.execute('''
            UPDATE communications
            SET message = '[deleted]',
                metadata = COALESCE(metadata, '{}'::jsonb) || %s,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (Json({'deleted': True, 'deleted_by': actor_id}), message_id)) > 0

    def mark_read(self, message_ids, reader_id, all_flows=False, all_requests=False):
        """Mark messages addressed to the reader (or to nobody) as read.

        A sender never marks their own message, and ids in threads the reader
        cannot see are left alone.
        """
        rule, rule_params = readable_rule(reader_id, all_flows, all_requests)
        sql = f'''
            UPDATE communications SET is_read = TRUE, updated_at = CURRENT_TIMESTAMP
            WHERE id = ANY(%s) AND sender_id != %s AND is_read = FALSE
              AND (recipient_id = %s OR recipient_id IS NULL)
              AND context_id IN (
                  SELECT cc.id FROM communication_contexts cc {CONTEXT_JOINS}
                  WHERE {rule})
        '''
        return self.execute(sql, [list(message_ids), reader_id, reader_id] + rule_params)

    def get_stats(self, context_type, context_id):
        row = self.query_one('''
            SELECT COUNT(c.id) AS total,
                   COUNT(c.id) FILTER (WHERE c.is_read = FALSE) AS unread,
                   COUNT(c.id) FILTER (WHERE c.message_type = 'comment') AS comments,
                   COUNT(c.id) FILTER (WHERE c.message_type = 'system') AS system,
                   COUNT(c.id) FILTER (WHERE c.is_internal = TRUE) AS internal,
                   COUNT(c.id) FILTER (WHERE c.is_urgent = TRUE) AS urgent,
                   MAX(c.created_at) AS last_message_at
            FROM communication_contexts cc
            LEFT JOIN communications c ON c.context_id = cc.id
            WHERE cc.context_type = %s AND cc.context_id = %s
        ''', (context_type, context_id))
        stats = {'total': 0, 'unread': 0, 'comments': 0, 'system': 0, 'internal': 0,
                 'urgent': 0, 'last_message_at': None}
        if row:
            stats.update({k: (int(v) if k != 'last_message_at' and v is not None else v)
                          for k, v in row.items()})
        return stats

    def search(self, query, user_id, context_type=None, all_flows=False, all_requests=False,
               limit=50):
        """Full-text-ish ILIKE search limited to threads the user may read."""
        where = ['c.message ILIKE %s', "NOT (c.metadata ? 'deleted')"]
        params = [f'%{query}%']
        if context_type:
            where.append('cc.context_type = %s')
            params.append(context_type)

        rule, rule_params = readable_rule(user_id, all_flows, all_requests)
        where.append(rule)
        params.extend(rule_params)
        params.append(limit)

        sql = MESSAGE_SELECT + CONTEXT_JOINS + \
            f" WHERE {' AND '.join(where)} ORDER BY c.created_at DESC LIMIT %s"
        return [shape_message(r) for r in self.query_all(sql, params)]
