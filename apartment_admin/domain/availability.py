import math
from datetime import datetime, timezone

from apartment_admin.core.errors import ValidationError

SECONDS_PER_DAY = 24 * 60 * 60


def normalize_instant(value: datetime) -> datetime:
    """Aware datetimes become naive UTC, the form stored in the database."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def validate_stay(from_datetime: datetime, to_datetime: datetime) -> tuple[datetime, datetime]:
    start = normalize_instant(from_datetime)
    end = normalize_instant(to_datetime)
    if start >= end:
        raise ValidationError(
            "to_datetime must be after from_datetime",
            from_datetime=start.isoformat(),
            to_datetime=end.isoformat(),
        )
    return start, end


def stay_days(from_datetime: datetime, to_datetime: datetime) -> int:
    """Billable days: partial days round up, so 2 days and 1 hour is 3."""
    start, end = validate_stay(from_datetime, to_datetime)
    return math.ceil((end - start).total_seconds() / SECONDS_PER_DAY)


def intervals_overlap(
    a_from: datetime, a_to: datetime, b_from: datetime, b_to: datetime
) -> bool:
    """
    Inclusive overlap: a stay ending exactly when another starts conflicts,
    check-out and check-in instants may not coincide on one apartment.
    """
    return a_from <= b_to and a_to >= b_from
