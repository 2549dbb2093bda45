"""Flow Service - validation and orchestration for flow operations.

Routes call this service; the service coordinates the flow, flow user and
catalog repositories and raises ServiceError subclasses on rule violations.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from backoffice.catalog.repositories import BrandRepository, GeoRepository
from backoffice.core.auth.models import FLOW_MANAGERS
from backoffice.core.auth.repositories import UserRepository
from backoffice.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ServiceError
from backoffice.core.organization.repositories import TeamRepository
from backoffice.core.utils.logging_config import log_with_context
from backoffice.core.utils.validation import FieldValidator
from backoffice.flows.repositories import FlowRepository, FlowUserRepository
from .kpi_calculator import FLOW_TYPES, KPI_METRICS

logger = logging.getLogger('backoffice.flows.services.flow')

FLOW_STATUSES = ('active', 'paused', 'stopped', 'pending', 'archived')
CURRENCIES = ('USD', 'EUR', 'GBP', 'UAH')

# Roles that only see flows they created or are assigned to
RESTRICTED_VIEW_ROLES = ('buyer', 'user')


@dataclass
class UserContext:
    """Lightweight user context passed from route handlers."""
    user_id: int
    role: str
    team_id: Optional[int] = None

    @classmethod
    def from_user(cls, user):
        return cls(user_id=user.id, role=user.role, team_id=getattr(user, 'team_id', None))


def validate_spend_ranges(ranges):
    """Check a spend_percentage_ranges list. Returns a list of error messages."""
    if not isinstance(ranges, list) or not ranges:
        return ['spend_percentage_ranges must be a non-empty list']

    errors = []
    for i, entry in enumerate(ranges):
        if not isinstance(entry, dict):
            errors.append(f'spend_percentage_ranges[{i}] must be an object')
            continue
        low = entry.get('min_percentage')
        high = entry.get('max_percentage')
        multiplier = entry.get('spend_multiplier')
        if not _is_number(low) or low < 0:
            errors.append(f'spend_percentage_ranges[{i}].min_percentage must be a number >= 0')
        if high is not None and (not _is_number(high) or (_is_number(low) and high < low)):
            errors.append(f'spend_percentage_ranges[{i}].max_percentage must be null or >= min_percentage')
        if not _is_number(multiplier) or multiplier < 0:
            errors.append(f'spend_percentage_ranges[{i}].spend_multiplier must be a number >= 0')
        if entry.get('description') is not None and not isinstance(entry['description'], str):
            errors.append(f'spend_percentage_ranges[{i}].description must be a string')
    return errors


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class FlowService:
    """Orchestrates flow business logic."""

    def __init__(self):
        self.flow_repo = FlowRepository()
        self.flow_user_repo = FlowUserRepository()
        self.brand_repo = BrandRepository()
        self.geo_repo = GeoRepository()
        self.team_repo = TeamRepository()
        self.user_repo = UserRepository()

    # ============== Access ==============

    def can_access(self, flow, user: UserContext) -> bool:
        """Managers see every flow; others need to be its creator or an active flow user."""
        if user.role in FLOW_MANAGERS:
            return True
        if flow.get('created_by') == user.user_id:
            return True
        return self.flow_repo.user_has_access(flow['id'], user.user_id)

    def get_accessible(self, flow_id, user: UserContext):
        flow = self.flow_repo.get_by_id(flow_id)
        if not flow:
            raise NotFoundError('Flow not found')
        if not self.can_access(flow, user):
            raise ForbiddenError('Access denied to this flow')
        return flow

    def visibility_filter(self, user: UserContext):
        return user.user_id if user.role in RESTRICTED_VIEW_ROLES else None

    # ============== Validation ==============

    def validate(self, data, existing=None):
        """Validate a create (existing=None) or update body. Returns cleaned fields."""
        partial = existing is not None
        v = FieldValidator(data, partial=partial)
        name = v.string('name', required=True, min_len=3, max_len=255)
        v.string('description', max_len=5000)
        brand_id = v.integer('brand_id', required=True, min_value=1)
        geo_id = v.integer('geo_id', required=True, min_value=1)
        team_id = v.integer('team_id', min_value=1)
        v.choice('flow_type', FLOW_TYPES, required=True)
        v.choice('kpi_metric', KPI_METRICS, required=True)
        v.number('kpi_target_value', min_value=0)
        v.choice('status', FLOW_STATUSES)
        v.boolean('is_active')
        v.choice('currency', CURRENCIES)
        v.number('cpa', min_value=0)
        v.date('start_date')
        v.date('end_date')
        v.string('conditions', max_len=5000)
        v.string('notes', max_len=5000)
        if 'spend_percentage_ranges' in data and data['spend_percentage_ranges'] is not None:
            for message in validate_spend_ranges(data['spend_percentage_ranges']):
                v.add_error('spend_percentage_ranges', message)
            if not any(e['field'] == 'spend_percentage_ranges' for e in v.errors):
                v.cleaned['spend_percentage_ranges'] = data['spend_percentage_ranges']
        elif 'spend_percentage_ranges' in data:
            v.cleaned['spend_percentage_ranges'] = None

        merged = dict(existing or {})
        merged.update(v.cleaned)

        if merged.get('flow_type') == 'cpa' and merged.get('kpi_target_value') is None:
            v.add_error('kpi_target_value', 'kpi_target_value is required for cpa flows')
        if merged.get('flow_type') == 'spend' and not merged.get('spend_percentage_ranges'):
            if not any(e['field'] == 'spend_percentage_ranges' for e in v.errors):
                v.add_error('spend_percentage_ranges', 'spend_percentage_ranges are required for spend flows')
        start, end = merged.get('start_date'), merged.get('end_date')
        if start and end and str(end)[:10] < str(start)[:10]:
            v.add_error('end_date', 'end_date must not be before start_date')

        if brand_id and not self.brand_repo.get_by_id(brand_id):
            v.add_error('brand_id', 'Brand does not exist')
        if geo_id and not self.geo_repo.get_by_id(geo_id):
            v.add_error('geo_id', 'Geo does not exist')
        if team_id and not self.team_repo.get(team_id):
            v.add_error('team_id', 'Team does not exist')
        v.raise_if_errors()

        if name and self.flow_repo.name_exists(name, exclude_id=(existing or {}).get('id')):
            raise ConflictError('Flow with this name already exists')
        return v.cleaned

    # ============== Public Methods ==============

    def create(self, data, user: UserContext):
        fields = self.validate(data)
        flow = self.flow_repo.create(fields, user.user_id)
        log_with_context(logger, logging.INFO, 'Flow created',
                         flow_id=flow['id'], flow_type=flow['flow_type'], user_id=user.user_id)
        return flow

    def update(self, flow_id, data, user: UserContext):
        existing = self.get_accessible(flow_id, user)
        fields = self.validate(data, existing=existing)
        return self.flow_repo.update(flow_id, fields, user.user_id)

    def set_status(self, flow_id, status, user: UserContext):
        if status not in FLOW_STATUSES:
            raise ServiceError(f"status must be one of: {', '.join(FLOW_STATUSES)}")
        existing = self.get_accessible(flow_id, user)
        flow = self.flow_repo.update(flow_id, {'status': status}, user.user_id)
        log_with_context(logger, logging.INFO, 'Flow status changed', flow_id=flow_id,
                         old_status=existing['status'], new_status=status, user_id=user.user_id)
        return flow

    def set_active(self, flow_id, is_active, user: UserContext):
        self.get_accessible(flow_id, user)
        return self.flow_repo.update(flow_id, {'is_active': bool(is_active)}, user.user_id)

    def delete(self, flow_id, user: UserContext):
        self.get_accessible(flow_id, user)
        usage = self.flow_repo.usage(flow_id)
        if usage['stats_count'] or usage['communications_count']:
            raise ServiceError(
                f"Flow has {usage['stats_count']} stats rows and "
                f"{usage['communications_count']} messages and cannot be deleted")
        self.flow_repo.delete(flow_id)
        logger.info(f'Flow {flow_id} deleted by {user.user_id}')

    def add_user(self, flow_id, member_id, user: UserContext, notes=None):
        self.get_accessible(flow_id, user)
        member = self.user_repo.get_by_id(member_id)
        if not member:
            raise NotFoundError('User not found')
        if not member.get('is_active'):
            raise ServiceError('Cannot add an inactive user to a flow')
        return self.flow_user_repo.add(flow_id, member_id, user.user_id, notes)

    def remove_user(self, flow_id, member_id, user: UserContext):
        self.get_accessible(flow_id, user)
        if not self.flow_user_repo.deactivate(flow_id, member_id):
            raise NotFoundError('User is not an active member of this flow')
