"""Base Repository: connection boilerplate shared by all repos.

Provides query_one(), query_all(), execute(), execute_many() that handle
get_db()/get_cursor()/release_db() and try/finally automatically, plus
paginate() for the list endpoints.

Usage:
    class BrandRepository(BaseRepository):
        def get(self, brand_id):
            return self.query_one('SELECT * FROM brands WHERE id = %s', (brand_id,))

        def create(self, name):
            return self.execute(
                'INSERT INTO brands (name) VALUES (%s) RETURNING *',
                (name,), returning=True
            )

        def replace_all(self, rows):
            def _work(cursor):
                cursor.execute('DELETE FROM ...')
                cursor.execute('INSERT ...')
                return cursor.fetchone()
            return self.execute_many(_work)
"""

from backoffice.database import get_db, get_cursor, release_db, dict_from_row


class BaseRepository:

    def query_one(self, sql, params=None):
        """Execute a SELECT and return a single row as dict, or None."""
        conn = get_db()
        try:
            cursor = get_cursor(conn)
            cursor.execute(sql, params or ())
            row = cursor.fetchone()
            return dict_from_row(row) if row else None
        finally:
            release_db(conn)

    def query_all(self, sql, params=None):
        """Execute a SELECT and return all rows as list of dicts."""
        conn = get_db()
        try:
            cursor = get_cursor(conn)
            cursor.execute(sql, params or ())
            return [dict_from_row(r) for r in cursor.fetchall()]
        finally:
            release_db(conn)

    def exists(self, sql, params=None):
        """Run a `SELECT 1 ...` style query and report whether it matched."""
        return self.query_one(sql, params) is not None

    def execute(self, sql, params=None, returning=False):
        """Execute an INSERT/UPDATE/DELETE with auto-commit.

        Args:
            sql: SQL statement
            params: Query parameters
            returning: If True, fetchone() and return dict. If False, return rowcount.

        Returns:
            dict if returning=True, else int (rowcount)
        """
        conn = get_db()
        try:
            cursor = get_cursor(conn)
            cursor.execute(sql, params or ())
            if returning:
                result = cursor.fetchone()
                conn.commit()
                return dict_from_row(result) if result else None
            conn.commit()
            return cursor.rowcount
        except Exception:
            conn.rollback()
            raise
        finally:
            release_db(conn)

    def execute_many(self, callback):
        """Execute multiple statements in a single transaction.

        Args:
            callback: Function that receives (cursor) and returns a result.
                      All statements within callback share one connection/transaction.

        Returns:
            Whatever callback returns
        """
        conn = get_db()
        try:
            conn.autocommit = False
            cursor = get_cursor(conn)
            result = callback(cursor)
            conn.commit()
            return result
        except Exception:
            conn.rollback()
            raise
        finally:
            release_db(conn)

    def paginate(self, base_sql, where, params, order_by, page=1, limit=20):
        """Run a filtered list query and its COUNT(*) twin.

        `base_sql` is everything up to (not including) WHERE; `where` is a list
        of SQL conditions ANDed together. Returns (rows, pagination dict).
        """
        where_sql = f" WHERE {' AND '.join(where)}" if where else ''
        offset = (page - 1) * limit

        count_row = self.query_one(
            f'SELECT COUNT(*) AS total FROM ({base_sql}{where_sql}) AS counted', params
        )
        total = int(count_row['total']) if count_row else 0

        rows = self.query_all(
            f'{base_sql}{where_sql} ORDER BY {order_by} LIMIT %s OFFSET %s',
            list(params) + [limit, offset]
        )
        return rows, {
            'total': total,
            'page': page,
            'limit': limit,
            'pages': (total + limit - 1) // limit if limit else 0,
        }
