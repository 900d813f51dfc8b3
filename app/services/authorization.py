"""Default access policy for mutating bookings.

The booking services never inspect roles themselves; they receive a
``MutationPolicy`` and branch on its answer.
"""

from __future__ import annotations

from typing import Callable

from app.domain.models import Booking, Requester, Role

MutationPolicy = Callable[[Requester, Booking], bool]

# Roles allowed to book on behalf of someone else
DELEGATING_ROLES = frozenset({Role.SUPER_USER, Role.ADMIN})


def can_mutate(requester: Requester, booking: Booking) -> bool:
    """Owners may change their own bookings; elevated roles may change any."""
    return booking.owner_id == requester.id or requester.role != Role.USER


def effective_owner(requester: Requester, owner_id: str | None) -> str:
    if owner_id and requester.role in DELEGATING_ROLES:
        return owner_id
    return requester.id
