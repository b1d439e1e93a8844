from typing import Mapping, Optional

from apartment_admin.core.errors import ValidationError
from apartment_admin.models import BookingStatus

STRICT_TRANSITIONS = {
    BookingStatus.DRAFT: {
        BookingStatus.TENTATIVE,
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
    },
    BookingStatus.TENTATIVE: {
        BookingStatus.DRAFT,
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
    },
    BookingStatus.CONFIRMED: {
        BookingStatus.TENTATIVE,
        BookingStatus.CHECKED_IN,
        BookingStatus.CANCELLED,
    },
    BookingStatus.CHECKED_IN: {
        BookingStatus.CHECKED_OUT,
        BookingStatus.CANCELLED,
    },
}


class BookingStatusPolicy:
    """
    Which booking_status changes an update may make.

    Without a transition table every change is allowed (how bookings have
    always behaved). Pass a table, e.g. STRICT_TRANSITIONS, to harden it.
    """

    def __init__(self, transitions: Optional[Mapping[BookingStatus, set]] = None):
        self.transitions = transitions

    @property
    def is_strict(self) -> bool:
        return self.transitions is not None

    def can_transition(self, current: BookingStatus, target: BookingStatus) -> bool:
        if current == target or self.transitions is None:
            return True
        return target in self.transitions.get(current, set())

    def ensure_transition(self, current: BookingStatus, target: BookingStatus) -> None:
        if not self.can_transition(current, target):
            raise ValidationError(
                f"Cannot change booking status from {current.value} to {target.value}",
                current_status=current.value,
                requested_status=target.value,
            )


PERMISSIVE_POLICY = BookingStatusPolicy()
STRICT_POLICY = BookingStatusPolicy(STRICT_TRANSITIONS)


def policy_from_settings(strict: bool) -> BookingStatusPolicy:
    return STRICT_POLICY if strict else PERMISSIVE_POLICY


def enters_confirmed(previous: Optional[BookingStatus], current: BookingStatus) -> bool:
    return current == BookingStatus.CONFIRMED and previous != BookingStatus.CONFIRMED
