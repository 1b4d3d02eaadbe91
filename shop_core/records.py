# shop_core/records.py
"""
Payload helpers shared by the web layer and the datastore.

Optional fields travel as either a concrete value or ``ABSENT``; the datastore
turns ``ABSENT`` into ``None`` when it writes. Stored dates come back in
several shapes, and ``parse_timestamp`` is the one place that reads them.
"""

import logging
from datetime import date, datetime, time, timezone

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"


class _Absent:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return 'ABSENT'

    def __bool__(self):
        return False


ABSENT = _Absent()


def optional(value):
    """Empty strings and ``None`` from a form become ``ABSENT``."""
    if value is None:
        return ABSENT
    if isinstance(value, str) and not value.strip():
        return ABSENT
    return value


def normalize_payload(payload):
    """Replace ``ABSENT`` with ``None``, recursing into dicts and lists."""
    def _clean(value):
        if value is ABSENT:
            return None
        if isinstance(value, dict):
            return {k: _clean(v) for k, v in value.items()}
        if isinstance(value, list):
            return [_clean(v) for v in value]
        return value

    return {key: _clean(value) for key, value in payload.items()}


class InvalidTimestamp:
    """A stored date value that could not be read."""

    __slots__ = ('raw',)

    def __init__(self, raw):
        self.raw = raw

    def __eq__(self, other):
        return isinstance(other, InvalidTimestamp) and other.raw == self.raw

    def __hash__(self):
        return hash(repr(self.raw))

    def __repr__(self):
        return f"InvalidTimestamp({self.raw!r})"

    def __bool__(self):
        return False


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value):
    """
    Read a stored date/time value.

    Accepts datetime, date, ISO-8601 strings, epoch seconds and
    ``{"seconds": ..., "nanoseconds": ...}`` mappings.

    Returns:
        an aware UTC datetime, ``None`` when the value is absent, or an
        ``InvalidTimestamp`` carrying the raw value.
    """
    if value is None or value is ABSENT or value == '':
        return None
    if isinstance(value, InvalidTimestamp):
        return value

    try:
        if isinstance(value, datetime):
            return _as_utc(value)
        if isinstance(value, date):
            return datetime.combine(value, time.min, tzinfo=timezone.utc)
        if isinstance(value, bool):
            raise TypeError("boolean is not a timestamp")
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value, tz=timezone.utc)
        if isinstance(value, str):
            text = value.strip()
            if text.endswith('Z'):
                text = text[:-1] + '+00:00'
            return _as_utc(datetime.fromisoformat(text))
        if isinstance(value, dict) and 'seconds' in value:
            seconds = float(value['seconds']) + float(value.get('nanoseconds') or 0) / 1e9
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        pass

    logger.warning("Unreadable timestamp value: %r", value)
    return InvalidTimestamp(value)


_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def sort_key(value):
    """Ordering key for stored dates; absent and invalid values sort as the oldest."""
    parsed = parse_timestamp(value)
    if isinstance(parsed, datetime):
        return parsed
    return _OLDEST


def format_date(value, fmt='%d/%m/%Y'):
    parsed = parse_timestamp(value)
    if isinstance(parsed, datetime):
        return parsed.strftime(fmt)
    return NOT_AVAILABLE


def to_date(value):
    """Calendar date for a stored value, or ``None``."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    parsed = parse_timestamp(value)
    if isinstance(parsed, datetime):
        return parsed.date()
    return None
