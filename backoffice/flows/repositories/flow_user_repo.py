"""Repository for flow_users (who works on which flow)."""

from backoffice.core.base_repository import BaseRepository


class FlowUserRepository(BaseRepository):

    def get_by_flow(self, flow_id, only_active=False):
        status_sql = "AND fu.status = 'active'" if only_active else ''
        return self.query_all(f'''
            SELECT fu.*, u.username, u.email, u.first_name, u.last_name, u.role, u.team_id
            FROM flow_users fu
            JOIN users u ON u.id = fu.user_id
            WHERE fu.flow_id = %s {status_sql}
            ORDER BY fu.status, fu.joined_at
        ''', (flow_id,))

    def add(self, flow_id, user_id, created_by, notes=None):
        """Add a user to a flow, reactivating a previous membership."""
        return self.execute('''
            INSERT INTO flow_users (flow_id, user_id, status, notes, created_by)
            VALUES (%s, %s, 'active', %s, %s)
            ON CONFLICT (flow_id, user_id) DO UPDATE SET
                status = 'active',
                notes = COALESCE(EXCLUDED.notes, flow_users.notes),
                joined_at = CURRENT_TIMESTAMP
            RETURNING *
        ''', (flow_id, user_id, notes, created_by), returning=True)

    def deactivate(self, flow_id, user_id):
        return self.execute('''
            UPDATE flow_users SET status = 'inactive'
            WHERE flow_id = %s AND user_id = %s AND status = 'active'
        ''', (flow_id, user_id)) > 0
