import pytest

from app.models.enums import ListingStatus as S
from app.services.listing_state import (
    VALID_STATUS_TRANSITIONS,
    allowed_transitions,
    coerce_status,
    is_valid_transition,
    is_visible_status,
)

EXPECTED = {
    S.PRIVATE: {S.ACTIVE, S.PENDING, S.COMING_SOON},
    S.PENDING: {S.ACTIVE, S.PRIVATE, S.COMING_SOON},
    S.COMING_SOON: {S.ACTIVE, S.PRIVATE, S.SUSPENDED},
    S.ACTIVE: {S.PRIVATE, S.SUSPENDED, S.EXPIRED, S.MAINTENANCE},
    S.SUSPENDED: {S.ACTIVE, S.PRIVATE, S.MAINTENANCE},
    S.EXPIRED: {S.ACTIVE, S.PRIVATE, S.COMING_SOON},
    S.MAINTENANCE: {S.ACTIVE, S.PRIVATE, S.SUSPENDED},
}


@pytest.mark.parametrize("from_status", list(S))
@pytest.mark.parametrize("to_status", list(S))
def test_transition_table_covers_every_pair(from_status, to_status):
    assert is_valid_transition(from_status, to_status) is (to_status in EXPECTED[from_status])


@pytest.mark.parametrize("status", list(S))
def test_self_transitions_are_invalid(status):
    assert not is_valid_transition(status, status)


def test_table_is_read_only():
    with pytest.raises(TypeError):
        VALID_STATUS_TRANSITIONS[S.PRIVATE] = frozenset({S.EXPIRED})
    assert isinstance(VALID_STATUS_TRANSITIONS[S.ACTIVE], frozenset)


def test_accepts_stored_string_values():
    assert is_valid_transition("ACTIVE", "SUSPENDED")
    assert is_valid_transition("active", "maintenance")
    assert allowed_transitions("EXPIRED") == frozenset({S.ACTIVE, S.PRIVATE, S.COMING_SOON})


def test_unknown_status_is_never_valid():
    assert coerce_status("ARCHIVED") is None
    assert not is_valid_transition("ARCHIVED", S.ACTIVE)
    assert not is_valid_transition(S.ACTIVE, "ARCHIVED")
    assert allowed_transitions("ARCHIVED") == frozenset()


def test_visible_statuses():
    assert is_visible_status(S.ACTIVE)
    assert is_visible_status("COMING_SOON")
    assert not is_visible_status(S.MAINTENANCE)
    assert not is_visible_status(None)
