from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from app.models.enums import ListingStatus


S = ListingStatus

# Fixed adjacency map: each status names its allowed successors.
# Self transitions are never listed, so they are always invalid.
VALID_STATUS_TRANSITIONS: Mapping[ListingStatus, frozenset[ListingStatus]] = MappingProxyType({
    S.PRIVATE: frozenset({S.ACTIVE, S.PENDING, S.COMING_SOON}),
    S.PENDING: frozenset({S.ACTIVE, S.PRIVATE, S.COMING_SOON}),
    S.COMING_SOON: frozenset({S.ACTIVE, S.PRIVATE, S.SUSPENDED}),
    S.ACTIVE: frozenset({S.PRIVATE, S.SUSPENDED, S.EXPIRED, S.MAINTENANCE}),
    S.SUSPENDED: frozenset({S.ACTIVE, S.PRIVATE, S.MAINTENANCE}),
    S.EXPIRED: frozenset({S.ACTIVE, S.PRIVATE, S.COMING_SOON}),
    S.MAINTENANCE: frozenset({S.ACTIVE, S.PRIVATE, S.SUSPENDED}),
})

# statuses shown on the public marketplace
VISIBLE_STATUSES = frozenset({S.ACTIVE, S.COMING_SOON})


def coerce_status(value: ListingStatus | str | None) -> ListingStatus | None:
    if value is None or isinstance(value, ListingStatus):
        return value
    try:
        return ListingStatus(str(value).upper().strip())
    except ValueError:
        return None


def allowed_transitions(from_status: ListingStatus | str) -> frozenset[ListingStatus]:
    status = coerce_status(from_status)
    if status is None:
        return frozenset()
    return VALID_STATUS_TRANSITIONS.get(status, frozenset())


def is_valid_transition(from_status: ListingStatus | str, to_status: ListingStatus | str) -> bool:
    target = coerce_status(to_status)
    if target is None:
        return False
    return target in allowed_transitions(from_status)


def is_visible_status(status: ListingStatus | str | None) -> bool:
    return coerce_status(status) in VISIBLE_STATUSES
