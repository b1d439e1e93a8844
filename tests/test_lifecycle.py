from datetime import datetime, timedelta, timezone

import pytest

from apartment_admin.core.errors import ValidationError
from apartment_admin.domain.availability import intervals_overlap, stay_days, validate_stay
from apartment_admin.domain.lifecycle import (
    PERMISSIVE_POLICY,
    STRICT_POLICY,
    enters_confirmed,
    policy_from_settings,
)
from apartment_admin.models import BookingStatus


def test_permissive_policy_allows_any_change():
    assert PERMISSIVE_POLICY.can_transition(BookingStatus.CHECKED_OUT, BookingStatus.DRAFT)
    assert PERMISSIVE_POLICY.can_transition(BookingStatus.CANCELLED, BookingStatus.CONFIRMED)
    assert not PERMISSIVE_POLICY.is_strict


def test_strict_policy_valid_paths():
    assert STRICT_POLICY.can_transition(BookingStatus.DRAFT, BookingStatus.TENTATIVE)
    assert STRICT_POLICY.can_transition(BookingStatus.TENTATIVE, BookingStatus.CONFIRMED)
    assert STRICT_POLICY.can_transition(BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)
    assert STRICT_POLICY.can_transition(BookingStatus.CHECKED_IN, BookingStatus.CHECKED_OUT)
    assert STRICT_POLICY.can_transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED)


def test_strict_policy_rejects_invalid_paths():
    assert not STRICT_POLICY.can_transition(BookingStatus.DRAFT, BookingStatus.CHECKED_OUT)
    assert not STRICT_POLICY.can_transition(BookingStatus.CHECKED_OUT, BookingStatus.CHECKED_IN)
    assert not STRICT_POLICY.can_transition(BookingStatus.CANCELLED, BookingStatus.CONFIRMED)
    with pytest.raises(ValidationError):
        STRICT_POLICY.ensure_transition(BookingStatus.CANCELLED, BookingStatus.DRAFT)


def test_same_status_is_always_allowed():
    assert STRICT_POLICY.can_transition(BookingStatus.CHECKED_OUT, BookingStatus.CHECKED_OUT)


def test_policy_from_settings():
    assert policy_from_settings(True) is STRICT_POLICY
    assert policy_from_settings(False) is PERMISSIVE_POLICY


def test_enters_confirmed():
    assert enters_confirmed(None, BookingStatus.CONFIRMED)
    assert enters_confirmed(BookingStatus.TENTATIVE, BookingStatus.CONFIRMED)
    assert not enters_confirmed(BookingStatus.CONFIRMED, BookingStatus.CONFIRMED)
    assert not enters_confirmed(BookingStatus.DRAFT, BookingStatus.TENTATIVE)


class TestStayArithmetic:
    def test_partial_day_rounds_up(self):
        start = datetime(2030, 1, 10, 14, 0)
        assert stay_days(start, start + timedelta(days=2, hours=1)) == 3
        assert stay_days(start, start + timedelta(days=2)) == 2
        assert stay_days(start, start + timedelta(hours=3)) == 1

    def test_end_before_start(self):
        start = datetime(2030, 1, 10, 14, 0)
        with pytest.raises(ValidationError):
            validate_stay(start, start)
        with pytest.raises(ValidationError):
            validate_stay(start, start - timedelta(hours=1))

    def test_aware_datetimes_become_naive_utc(self):
        tz = timezone(timedelta(hours=3))
        start, end = validate_stay(
            datetime(2030, 1, 10, 17, 0, tzinfo=tz), datetime(2030, 1, 11, 17, 0, tzinfo=tz)
        )
        assert start == datetime(2030, 1, 10, 14, 0)
        assert start.tzinfo is None and end.tzinfo is None

    def test_touching_intervals_overlap(self):
        a_from, a_to = datetime(2030, 1, 10, 14), datetime(2030, 1, 12, 11)
        b_from, b_to = datetime(2030, 1, 12, 11), datetime(2030, 1, 14, 11)
        assert intervals_overlap(a_from, a_to, b_from, b_to)

    def test_separate_intervals(self):
        assert not intervals_overlap(
            datetime(2030, 1, 1), datetime(2030, 1, 5), datetime(2030, 1, 6), datetime(2030, 1, 8)
        )
