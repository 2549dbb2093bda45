"""User Repository - Data access layer for user operations.

Authentication lookups, user management (list/create/update/activate) and
salary wallet details.
"""
from typing import Optional, Dict, Any, List, Tuple
from werkzeug.security import generate_password_hash, check_password_hash

from backoffice.core.base_repository import BaseRepository

# Never select password_hash into API payloads
PUBLIC_COLUMNS = '''
    u.id, u.username, u.email, u.first_name, u.last_name, u.role,
    u.team_id, u.department_id, u.is_active, u.position, u.phone,
    u.telegram_id, u.salary_wallet_address, u.salary_network,
    u.last_login, u.created_at, u.updated_at
'''

USER_SORT_COLUMNS = {
    'id': 'u.id',
    'username': 'u.username',
    'email': 'u.email',
    'first_name': 'u.first_name',
    'last_name': 'u.last_name',
    'role': 'u.role',
    'created_at': 'u.created_at',
    'last_login': 'u.last_login',
}

UPDATABLE_FIELDS = {
    'username', 'email', 'first_name', 'last_name', 'role', 'team_id',
    'department_id', 'is_active', 'position', 'phone', 'telegram_id',
    'salary_wallet_address', 'salary_network',
}


class UserRepository(BaseRepository):
    """Repository for user data access operations."""

    def get_by_id(self, user_id: int) -> Optional[Dict[str, Any]]:
        """Get a user by ID with team and department names."""
        return self.query_one(f'''
            SELECT {PUBLIC_COLUMNS},
                   t.name AS team_name, d.name AS department_name
            FROM users u
            LEFT JOIN teams t ON t.id = u.team_id
            LEFT JOIN departments d ON d.id = u.department_id
            WHERE u.id = %s
        ''', (user_id,))

    def get_by_login(self, login: str) -> Optional[Dict[str, Any]]:
        """Get a user (including password_hash) by username or email."""
        return self.query_one('''
            SELECT * FROM users
            WHERE username = %s OR LOWER(email) = LOWER(%s)
        ''', (login, login))

    def get_password_hash(self, user_id: int) -> Optional[str]:
        row = self.query_one('SELECT password_hash FROM users WHERE id = %s', (user_id,))
        return row['password_hash'] if row else None

    def username_exists(self, username: str, exclude_id: int = None) -> bool:
        if exclude_id:
            return self.exists('SELECT 1 FROM users WHERE username = %s AND id != %s',
                               (username, exclude_id))
        return self.exists('SELECT 1 FROM users WHERE username = %s', (username,))

    def email_exists(self, email: str, exclude_id: int = None) -> bool:
        if exclude_id:
            return self.exists('SELECT 1 FROM users WHERE LOWER(email) = LOWER(%s) AND id != %s',
                               (email, exclude_id))
        return self.exists('SELECT 1 FROM users WHERE LOWER(email) = LOWER(%s)', (email,))

    # --- Authentication Methods ---

    def verify_password(self, user: Dict[str, Any], password: str) -> bool:
        if not user or not user.get('password_hash'):
            return False
        return check_password_hash(user['password_hash'], password)

    def update_password(self, user_id: int, password: str) -> bool:
        password_hash = generate_password_hash(password)
        return self.execute('''
            UPDATE users SET password_hash = %s, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (password_hash, user_id)) > 0

    def update_last_login(self, user_id: int) -> bool:
        return self.execute('''
            UPDATE users SET last_login = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (user_id,)) > 0

    # --- Management ---

    def list_users(self, filters: Dict[str, Any], page: int = 1, limit: int = 20,
                   sort_by: str = 'created_at', order: str = 'desc') -> Tuple[List[Dict], Dict]:
        """List users with filters. Active users always come first."""
        where, params = [], []
        if filters.get('role'):
            where.append('u.role = %s')
            params.append(filters['role'])
        if filters.get('team_id'):
            where.append('u.team_id = %s')
            params.append(filters['team_id'])
        if filters.get('department_id'):
            where.append('u.department_id = %s')
            params.append(filters['department_id'])
        if filters.get('is_active') is not None:
            where.append('u.is_active = %s')
            params.append(filters['is_active'])
        if filters.get('search'):
            where.append('''(u.username ILIKE %s OR u.email ILIKE %s
                             OR u.first_name ILIKE %s OR u.last_name ILIKE %s)''')
            params.extend([f"%{filters['search']}%"] * 4)

        sort_column = USER_SORT_COLUMNS.get(sort_by, 'u.created_at')
        direction = 'ASC' if str(order).lower() == 'asc' else 'DESC'

        base = f'''
            SELECT {PUBLIC_COLUMNS},
                   t.name AS team_name, d.name AS department_name
            FROM users u
            LEFT JOIN teams t ON t.id = u.team_id
            LEFT JOIN departments d ON d.id = u.department_id
        '''
        return self.paginate(base, where, params,
                             f'u.is_active DESC, {sort_column} {direction}', page, limit)

    def create(self, username: str, email: str, password: str, first_name: str = None,
               last_name: str = None, role: str = 'user', team_id: int = None,
               department_id: int = None, position: str = None, phone: str = None,
               telegram_id: str = None) -> Dict[str, Any]:
        """Create a user. Returns the public user row."""
        row = self.execute('''
            INSERT INTO users (username, email, password_hash, first_name, last_name, role,
                               team_id, department_id, position, phone, telegram_id)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id
        ''', (username, email, generate_password_hash(password), first_name, last_name, role,
              team_id, department_id, position, phone, telegram_id), returning=True)
        return self.get_by_id(row['id'])

    def update(self, user_id: int, **kwargs) -> Optional[Dict[str, Any]]:
        updates, params = [], []
        for key, val in kwargs.items():
            if key in UPDATABLE_FIELDS:
                updates.append(f'{key} = %s')
                params.append(val)
        if not updates:
            return self.get_by_id(user_id)
        updates.append('updated_at = CURRENT_TIMESTAMP')
        params.append(user_id)
        if self.execute(f'UPDATE users SET {", ".join(updates)} WHERE id = %s', params) == 0:
            return None
        return self.get_by_id(user_id)

    def set_active(self, user_id: int, is_active: bool) -> bool:
        return self.execute('''
            UPDATE users SET is_active = %s, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (is_active, user_id)) > 0

    def update_role(self, user_id: int, role: str) -> bool:
        return self.execute('''
            UPDATE users SET role = %s, updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (role, user_id)) > 0

    def update_wallet(self, user_id: int, wallet_address: str, network: str = None) -> Optional[Dict]:
        return self.execute('''
            UPDATE users SET salary_wallet_address = %s, salary_network = %s,
                             updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
            RETURNING id, username, salary_wallet_address, salary_network
        ''', (wallet_address, network, user_id), returning=True)
