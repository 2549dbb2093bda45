"""Declarative per-field request validation.

Collects every field error instead of stopping at the first one, so the
client gets the full list in a single 400.

Usage:
    v = FieldValidator(data)
    name = v.string('name', required=True, min_len=2, max_len=255)
    amount = v.number('amount', required=True, min_value=0.01)
    v.raise_if_errors()
    repo.create(**v.cleaned)

With partial=True (PUT/PATCH bodies) `required` is ignored and only the
fields present in the body are validated and copied into `cleaned`.
"""
import re
import math
import datetime as dt
import calendar

from backoffice.core.exceptions import ValidationError

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


class FieldValidator:

    def __init__(self, data, partial=False):
        self.data = data or {}
        self.partial = partial
        self.errors = []
        self.cleaned = {}

    @property
    def ok(self):
        return not self.errors

    def add_error(self, field, message):
        self.errors.append({'field': field, 'message': message})

    def check(self, condition, field, message):
        if not condition:
            self.add_error(field, message)
        return condition

    def raise_if_errors(self):
        if self.errors:
            raise ValidationError(self.errors)

    def present(self, field):
        value = self.data.get(field)
        return value is not None and value != ''

    def _missing(self, field, required):
        """True when the field is absent. Records an error if it was required."""
        if self.present(field):
            return False
        if required and not self.partial:
            self.add_error(field, f'{field} is required')
        elif field in self.data and self.data[field] is None:
            self.cleaned[field] = None
        return True

    # ---- Typed fields ----

    def string(self, field, required=False, min_len=None, max_len=None, pattern=None,
               pattern_message=None, upper=False):
        if self._missing(field, required):
            return None
        value = self.data[field]
        if not isinstance(value, str):
            self.add_error(field, f'{field} must be a string')
            return None
        value = value.strip()
        if upper:
            value = value.upper()
        if min_len is not None and len(value) < min_len:
            self.add_error(field, f'{field} must be at least {min_len} characters')
            return None
        if max_len is not None and len(value) > max_len:
            self.add_error(field, f'{field} must be at most {max_len} characters')
            return None
        if pattern is not None and not re.fullmatch(pattern, value):
            self.add_error(field, pattern_message or f'{field} has an invalid format')
            return None
        self.cleaned[field] = value
        return value

    def email(self, field, required=False):
        value = self.string(field, required=required, max_len=255)
        if value is not None and not EMAIL_RE.match(value):
            self.cleaned.pop(field, None)
            self.add_error(field, f'{field} must be a valid email address')
            return None
        if value is not None:
            value = value.lower()
            self.cleaned[field] = value
        return value

    def integer(self, field, required=False, min_value=None, max_value=None):
        if self._missing(field, required):
            return None
        raw = self.data[field]
        if isinstance(raw, bool):
            self.add_error(field, f'{field} must be an integer')
            return None
        try:
            value = int(raw)
        except (TypeError, ValueError, OverflowError):
            self.add_error(field, f'{field} must be an integer')
            return None
        if isinstance(raw, float) and raw != value:
            self.add_error(field, f'{field} must be an integer')
            return None
        if not self._in_range(field, value, min_value, max_value):
            return None
        self.cleaned[field] = value
        return value

    def number(self, field, required=False, min_value=None, max_value=None):
        if self._missing(field, required):
            return None
        raw = self.data[field]
        if isinstance(raw, bool):
            self.add_error(field, f'{field} must be a number')
            return None
        try:
            value = float(raw)
        except (TypeError, ValueError):
            self.add_error(field, f'{field} must be a number')
            return None
        if not math.isfinite(value):
            self.add_error(field, f'{field} must be a number')
            return None
        if not self._in_range(field, value, min_value, max_value):
            return None
        self.cleaned[field] = value
        return value

    def boolean(self, field, required=False):
        if self._missing(field, required):
            return None
        value = self.data[field]
        if not isinstance(value, bool):
            self.add_error(field, f'{field} must be true or false')
            return None
        self.cleaned[field] = value
        return value

    def choice(self, field, choices, required=False):
        if self._missing(field, required):
            return None
        value = self.data[field]
        if value not in choices:
            self.add_error(field, f"{field} must be one of: {', '.join(choices)}")
            return None
        self.cleaned[field] = value
        return value

    def date(self, field, required=False):
        """ISO date (YYYY-MM-DD). Stored in `cleaned` as a datetime.date."""
        if self._missing(field, required):
            return None
        value = self.data[field]
        try:
            parsed = dt.date.fromisoformat(str(value)[:10])
        except ValueError:
            self.add_error(field, f'{field} must be a date (YYYY-MM-DD)')
            return None
        self.cleaned[field] = parsed
        return parsed

    def list_of_ints(self, field, required=False):
        if self._missing(field, required):
            return None
        value = self.data[field]
        if not isinstance(value, list) or not value:
            self.add_error(field, f'{field} must be a non-empty list')
            return None
        ids = []
        for item in value:
            try:
                number = int(item)
            except (TypeError, ValueError, OverflowError):
                number = None
            if number is None or isinstance(item, bool) or (isinstance(item, float) and item != number):
                self.add_error(field, f'{field} must contain integers only')
                return None
            ids.append(number)
        self.cleaned[field] = ids
        return ids

    def mapping(self, field, required=False):
        if self._missing(field, required):
            return None
        value = self.data[field]
        if not isinstance(value, dict):
            self.add_error(field, f'{field} must be an object')
            return None
        self.cleaned[field] = value
        return value

    def _in_range(self, field, value, min_value, max_value):
        if min_value is not None and value < min_value:
            self.add_error(field, f'{field} must be at least {min_value}')
            return False
        if max_value is not None and value > max_value:
            self.add_error(field, f'{field} must be at most {max_value}')
            return False
        return True


def validate_calendar_date(year, month, day):
    """Return a datetime.date or raise ValidationError for impossible dates (e.g. Feb 30)."""
    errors = []
    if not 1 <= month <= 12:
        errors.append({'field': 'month', 'message': 'month must be between 1 and 12'})
    elif not 1 <= day <= calendar.monthrange(year, month)[1]:
        errors.append({'field': 'day', 'message': f'{year}-{month:02d} has no day {day}'})
    if errors:
        raise ValidationError(errors, message='Invalid date')
    return dt.date(year, month, day)
