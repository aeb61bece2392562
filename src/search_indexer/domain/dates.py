import re
from datetime import date, datetime, timezone
from email.utils import parsedate_to_datetime

_EPOCH_DIGITS = re.compile(r"^\d+$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | datetime | date | None) -> datetime | None:
    """Parse ISO-8601, RFC 1123 (HTTP Last-Modified) or epoch-millisecond values.

    Naive values are read as UTC. Returns None when the value cannot be parsed.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if not text:
            return None
        if _EPOCH_DIGITS.match(text):
            if len(text) == 8:
                try:
                    parsed = datetime.strptime(text, "%Y%m%d")
                except ValueError:
                    return None
            else:
                try:
                    parsed = datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc)
                except (OverflowError, OSError, ValueError):
                    return None
        else:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                try:
                    parsed = parsedate_to_datetime(text)
                except (TypeError, ValueError, IndexError):
                    return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_date(value: str | datetime | None, now: datetime | None = None) -> str:
    """Calendar date (YYYY-MM-DD); unparseable input falls back to today."""
    current = now or utc_now()
    parsed = parse_timestamp(value)
    if parsed is None:
        parsed = current
    return parsed.date().isoformat()


def clamp_future_date(value: str | datetime | None, now: datetime | None = None) -> str:
    current = now or utc_now()
    parsed = parse_timestamp(value)
    if parsed is None or parsed > current:
        return current.date().isoformat()
    return parsed.date().isoformat()


def resolve_last_modified(
    metadata_value: str | None,
    source_hint: str | None,
    now: datetime | None = None,
) -> str:
    current = now or utc_now()
    for candidate in (metadata_value, source_hint):
        if parse_timestamp(candidate) is not None:
            return clamp_future_date(candidate, now=current)
    return current.date().isoformat()


def is_more_recent(candidate: str | None, reference: str | None) -> bool:
    """True when candidate is strictly later than reference. Unparseable values are never more recent."""
    left = parse_timestamp(candidate)
    right = parse_timestamp(reference)
    if left is None or right is None:
        return False
    return left > right


def iso_timestamp(now: datetime | None = None) -> str:
    return (now or utc_now()).isoformat()
