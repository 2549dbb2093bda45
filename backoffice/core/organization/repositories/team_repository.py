"""Team Repository - teams, their members and team-level counters."""
import logging
from typing import Optional

from backoffice.core.base_repository import BaseRepository

logger = logging.getLogger('backoffice.organization.team_repository')


class TeamRepository(BaseRepository):
    """Repository for team data access operations."""

    def get_all(self) -> list[dict]:
        return self.query_all('''
            SELECT t.*,
                   COUNT(u.id) AS user_count,
                   COUNT(u.id) FILTER (WHERE u.is_active) AS active_user_count,
                   NULLIF(TRIM(CONCAT(tl.first_name, ' ', tl.last_name)), '') AS team_lead_name
            FROM teams t
            LEFT JOIN users u ON u.team_id = t.id
            LEFT JOIN users tl ON tl.id = t.team_lead_id
            GROUP BY t.id, tl.first_name, tl.last_name
            ORDER BY t.name
        ''')

    def get(self, team_id: int) -> Optional[dict]:
        return self.query_one('''
            SELECT t.*, tl.username AS team_lead_username,
                   NULLIF(TRIM(CONCAT(tl.first_name, ' ', tl.last_name)), '') AS team_lead_name
            FROM teams t
            LEFT JOIN users tl ON tl.id = t.team_lead_id
            WHERE t.id = %s
        ''', (team_id,))

    def get_members(self, team_id: int) -> list[dict]:
        return self.query_all('''
            SELECT id, username, email, first_name, last_name, role, is_active, position
            FROM users
            WHERE team_id = %s
            ORDER BY is_active DESC, username
        ''', (team_id,))

    def name_exists(self, name: str, exclude_id: int = None) -> bool:
        if exclude_id:
            return self.exists('SELECT 1 FROM teams WHERE LOWER(name) = LOWER(%s) AND id != %s',
                               (name, exclude_id))
        return self.exists('SELECT 1 FROM teams WHERE LOWER(name) = LOWER(%s)', (name,))

    def create(self, name: str, description: str = None, team_lead_id: int = None) -> dict:
        return self.execute('''
            INSERT INTO teams (name, description, team_lead_id)
            VALUES (%s, %s, %s)
            RETURNING *
        ''', (name, description, team_lead_id), returning=True)

    def update(self, team_id: int, **kwargs) -> Optional[dict]:
        allowed = {'name', 'description', 'team_lead_id'}
        updates, params = [], []
        for key, val in kwargs.items():
            if key in allowed:
                updates.append(f'{key} = %s')
                params.append(val)
        if not updates:
            return self.get(team_id)
        updates.append('updated_at = CURRENT_TIMESTAMP')
        params.append(team_id)
        return self.execute(
            f'UPDATE teams SET {", ".join(updates)} WHERE id = %s RETURNING *', params, returning=True
        )

    def count_users(self, team_id: int) -> int:
        row = self.query_one('SELECT COUNT(*) AS cnt FROM users WHERE team_id = %s', (team_id,))
        return int(row['cnt']) if row else 0

    def delete(self, team_id: int) -> bool:
        return self.execute('DELETE FROM teams WHERE id = %s', (team_id,)) > 0

    def get_stats(self, team_id: int, month: int, year: int) -> dict:
        """Member counts, flows touched by the team and its spend for one month."""
        row = self.query_one('''
            SELECT
                (SELECT COUNT(*) FROM users WHERE team_id = %s) AS members_count,
                (SELECT COUNT(*) FROM users WHERE team_id = %s AND is_active) AS active_members_count,
                (SELECT COUNT(*) FROM flows WHERE team_id = %s) AS flows_count,
                (SELECT COUNT(*) FROM flows WHERE team_id = %s AND status = 'active') AS active_flows_count,
                (SELECT COALESCE(SUM(fs.spend), 0)
                   FROM flow_stats fs JOIN users u ON u.id = fs.user_id
                  WHERE u.team_id = %s AND fs.month = %s AND fs.year = %s) AS month_spend,
                (SELECT COALESCE(SUM(fs.deps), 0)
                   FROM flow_stats fs JOIN users u ON u.id = fs.user_id
                  WHERE u.team_id = %s AND fs.month = %s AND fs.year = %s) AS month_deps
        ''', (team_id, team_id, team_id, team_id, team_id, month, year, team_id, month, year))
        stats = row or {}
        stats.update({'team_id': team_id, 'month': month, 'year': year})
        return stats
