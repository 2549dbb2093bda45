"""Back-office database module.

Connection pool, cursors, transactions and row serialization shared by
every repository. PostgreSQL only.
"""
import os
import time
import queue
import logging
import threading
from decimal import Decimal

import psycopg2
from psycopg2 import pool
from psycopg2.extras import RealDictCursor

logger = logging.getLogger('backoffice.database')

# PostgreSQL connection - DATABASE_URL is required
DATABASE_URL = os.environ.get('DATABASE_URL')

if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is required. Set it to your PostgreSQL connection string.")

_connection_pool = None
_pool_lock = threading.Lock()

POOL_SETTINGS = {
    'minconn': int(os.environ.get('DB_POOL_MIN_CONN', '2')),
    'maxconn': int(os.environ.get('DB_POOL_MAX_CONN', '10')),
    'connect_timeout': 5,
    'keepalives': 1,
    'keepalives_idle': 30,
    'keepalives_interval': 10,
    'keepalives_count': 5,
}
CHECKOUT_TIMEOUT = int(os.environ.get('DB_POOL_TIMEOUT', '10'))
CHECKOUT_ATTEMPTS = 3
PING_TTL = 5


def _get_pool():
    """Return the process-wide pool, creating it on first use."""
    global _connection_pool
    if _connection_pool is None:
        with _pool_lock:
            if _connection_pool is None:
                _connection_pool = pool.ThreadedConnectionPool(dsn=DATABASE_URL, **POOL_SETTINGS)
                logger.info(f"Connection pool ready ({POOL_SETTINGS['minconn']}-{POOL_SETTINGS['maxconn']} connections)")
    return _connection_pool


def _checkout(timeout=CHECKOUT_TIMEOUT):
    """Take a connection from the pool or fail after `timeout` seconds.

    ThreadedConnectionPool.getconn() blocks forever when the pool is exhausted,
    so the call runs in a daemon thread and hands back its outcome on a queue.
    """
    outcome = queue.Queue(maxsize=1)

    def _take():
        try:
            outcome.put((_get_pool().getconn(), None))
        except Exception as e:
            outcome.put((None, e))

    threading.Thread(target=_take, daemon=True).start()
    try:
        conn, error = outcome.get(timeout=timeout)
    except queue.Empty:
        raise psycopg2.OperationalError(f'No pooled connection free after {timeout}s')
    if error is not None:
        raise error
    return conn


def _discard(conn):
    try:
        _get_pool().putconn(conn, close=True)
    except Exception:
        logger.debug('Could not close discarded connection', exc_info=True)


def get_db():
    """Check out a live connection in autocommit mode.

    Connections the server has dropped fail a `SELECT 1` check; they are
    closed and another one is tried, CHECKOUT_ATTEMPTS times at most.
    """
    last_error = None
    for attempt in range(1, CHECKOUT_ATTEMPTS + 1):
        conn = _checkout()
        try:
            with conn.cursor() as cur:
                cur.execute('SELECT 1')
            conn.rollback()
            conn.autocommit = True
            return conn
        except psycopg2.Error as e:
            last_error = e
            logger.warning(f'Dropping dead connection ({attempt}/{CHECKOUT_ATTEMPTS}): {e}')
            _discard(conn)

    raise psycopg2.OperationalError(f'No usable connection after {CHECKOUT_ATTEMPTS} attempts: {last_error}')


def release_db(conn):
    """Hand a connection back to the pool; broken ones are closed instead."""
    if not conn or _connection_pool is None:
        return
    if conn.closed:
        _discard(conn)
        return
    try:
        conn.autocommit = False
        _connection_pool.putconn(conn)
    except Exception:
        logger.warning('Connection could not be returned, closing it', exc_info=True)
        _discard(conn)


_last_ping = {'ok': False, 'at': 0.0}


def ping_db():
    """True when the database answers. A success is trusted for PING_TTL seconds."""
    now = time.monotonic()
    if _last_ping['ok'] and now - _last_ping['at'] < PING_TTL:
        return True

    try:
        conn = get_db()
    except psycopg2.Error as e:
        logger.error(f'Database ping failed: {e}')
        _last_ping['ok'] = False
        return False
    try:
        with conn.cursor() as cur:
            cur.execute('SELECT 1')
        _last_ping.update(ok=True, at=now)
        return True
    except psycopg2.Error as e:
        logger.error(f'Database ping failed: {e}')
        _last_ping['ok'] = False
        return False
    finally:
        release_db(conn)


def get_cursor(conn):
    """Get cursor with dict row factory."""
    return conn.cursor(cursor_factory=RealDictCursor)


def dict_from_row(row):
    """Convert a database row to a JSON-ready dict.

    Dates and datetimes become ISO strings, NUMERIC values become floats.
    """
    if row is None:
        return None
    result = dict(row)
    for key, value in result.items():
        if isinstance(value, Decimal):
            result[key] = float(value)
        elif hasattr(value, 'isoformat'):
            result[key] = value.isoformat()
    return result


def init_db():
    """Create tables and indexes if the schema is not there yet.

    Delegates to migrations.init_schema.create_schema(). Skips when the
    `users` table already exists.
    """
    conn = get_db()
    cursor = get_cursor(conn)
    try:
        cursor.execute("""
            SELECT EXISTS (
                SELECT FROM information_schema.tables
                WHERE table_schema = 'public' AND table_name = 'users'
            )
        """)
        if cursor.fetchone()['exists']:
            logger.info('Database schema already initialized, skipping init_db()')
            return

        from backoffice.migrations.init_schema import create_schema
        conn.autocommit = False
        create_schema(conn, cursor)
        conn.commit()
        logger.info('Database schema initialized successfully')
    except Exception:
        conn.rollback()
        raise
    finally:
        release_db(conn)
