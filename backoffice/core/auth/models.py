"""Back-office auth models.

User model for Flask-Login and the role vocabulary used by every module.
"""
from flask_login import UserMixin

ROLES = (
    'admin', 'teamlead', 'bizdev', 'buyer',
    'affiliate_manager', 'finance_manager', 'user',
)

# Role groups used by route decorators
FLOW_MANAGERS = ('admin', 'teamlead', 'bizdev')
FINANCE_ROLES = ('admin', 'finance_manager')
PAYMENT_ROLES = ('admin', 'bizdev')
CATALOG_EDITORS = ('admin', 'bizdev')
COMPANY_REPORT_ROLES = ('admin', 'bizdev', 'finance_manager')


class User(UserMixin):
    """User class for Flask-Login, built from a users row."""

    def __init__(self, user_data):
        self.id = user_data['id']
        self.username = user_data['username']
        self.email = user_data['email']
        self.first_name = user_data.get('first_name')
        self.last_name = user_data.get('last_name')
        self.role = user_data.get('role', 'user')
        self.team_id = user_data.get('team_id')
        self.department_id = user_data.get('department_id')
        self.is_active_user = user_data.get('is_active', True)

    @property
    def is_active(self):
        return self.is_active_user

