from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

from app.models.enums import ListingStatus
from app.schemas.listing import ListingCreate, ListingUpdate
from app.services.listing_validation import (
    default_description,
    default_price,
    default_title,
    determine_initial_status,
    sanitize_text,
    track_changes,
    validate_listing_data,
    validate_listing_update,
)

NOW = datetime(2026, 3, 10, 15, 30, tzinfo=timezone.utc)
UNIT = SimpleNamespace(unit_number="A-1", bedrooms=2, bathrooms=1, square_footage=850, rent_amount=Decimal("1500.00"))


def test_defaults_derived_from_unit():
    assert default_title(None, UNIT) == "A-1 - 2BR/1BA"
    assert default_description("", UNIT) == (
        "Spacious 2 bedrooms, 1 bathroom, 850 sq ft unit available for rent."
        " Contact us for more details and to schedule a viewing."
    )
    assert default_price(None, UNIT) == Decimal("1500.00")


def test_defaults_for_bare_unit():
    bare = SimpleNamespace(unit_number="B-2", bedrooms=None, bathrooms=None, square_footage=None, rent_amount=None)
    assert default_title(None, bare) == "B-2"
    assert default_description(None, bare).startswith("Quality rental unit available.")
    assert default_price(None, bare) == Decimal("1000")


def test_sanitize_strips_markup_and_script_vectors():
    assert sanitize_text('  <b onclick=alert(1)>Nice</b> javascript:void(0) ') == "b alert(1)Nice/b void(0)"
    assert sanitize_text("  plain text  ") == "plain text"


def test_valid_data_produces_draft():
    outcome = validate_listing_data(ListingCreate(price=Decimal("1200")), UNIT, now=NOW)
    assert outcome.is_valid
    assert outcome.draft.title == "A-1 - 2BR/1BA"
    assert outcome.draft.price == Decimal("1200")
    assert outcome.warnings == []


def test_field_errors_are_collected():
    data = ListingCreate(title="ab", description="short", price=Decimal("-5"))
    outcome = validate_listing_data(data, UNIT, now=NOW)
    assert not outcome.is_valid
    assert "Title must be at least 3 characters long" in outcome.errors
    assert "Description must be at least 10 characters long" in outcome.errors
    assert "Price must be a positive number" in outcome.errors


def test_high_price_only_warns():
    outcome = validate_listing_data(ListingCreate(price=Decimal("75000")), UNIT, now=NOW)
    assert outcome.is_valid
    assert outcome.warnings and "unusually high" in outcome.warnings[0]


def test_availability_in_the_past_is_rejected():
    data = ListingCreate(availability_date=NOW - timedelta(days=2))
    outcome = validate_listing_data(data, UNIT, now=NOW)
    assert "Availability date cannot be in the past" in outcome.errors


def test_earlier_today_is_not_the_past():
    data = ListingCreate(availability_date=NOW.replace(hour=1))
    assert validate_listing_data(data, UNIT, now=NOW).is_valid


def test_expiration_must_follow_availability():
    data = ListingCreate(availability_date=NOW + timedelta(days=5), expiration_date=NOW + timedelta(days=5))
    outcome = validate_listing_data(data, UNIT, now=NOW)
    assert "Expiration date must be after availability date" in outcome.errors


def test_initial_status_depends_on_availability():
    assert determine_initial_status(None, NOW) is ListingStatus.ACTIVE
    assert determine_initial_status(NOW - timedelta(hours=1), NOW) is ListingStatus.ACTIVE
    assert determine_initial_status(NOW, NOW) is ListingStatus.ACTIVE
    assert determine_initial_status(NOW + timedelta(seconds=1), NOW) is ListingStatus.COMING_SOON


def test_update_keeps_stored_past_availability():
    current = SimpleNamespace(
        title="A-1 - 2BR/1BA",
        description="A lovely flat near the sea.",
        price=Decimal("1500.00"),
        availability_date=NOW - timedelta(days=30),
        expiration_date=None,
    )
    outcome = validate_listing_update(current, ListingUpdate(price=Decimal("1600")), now=NOW)
    assert outcome.is_valid

    changes = track_changes(current, outcome.draft)
    assert changes == {"price": {"from": "1500.00", "to": "1600"}}


def test_update_rejects_new_past_availability():
    current = SimpleNamespace(
        title="A-1 - 2BR/1BA",
        description="A lovely flat near the sea.",
        price=Decimal("1500.00"),
        availability_date=None,
        expiration_date=None,
    )
    data = ListingUpdate(availability_date=NOW - timedelta(days=3))
    assert "Availability date cannot be in the past" in validate_listing_update(current, data, now=NOW).errors


def test_overlong_text_is_rejected_not_truncated():
    data = ListingCreate(title="t" * 101, description="d" * 1001, price=Decimal("1000"))
    outcome = validate_listing_data(data, UNIT, now=NOW)
    assert not outcome.is_valid
    assert "Title must be at most 100 characters long" in outcome.errors
    assert "Description must be at most 1000 characters long" in outcome.errors


def test_length_limits_are_inclusive():
    data = ListingCreate(title="t" * 100, description="d" * 1000, price=Decimal("1000"))
    outcome = validate_listing_data(data, UNIT, now=NOW)
    assert outcome.is_valid
    assert len(outcome.draft.description) == 1000


def test_lengths_are_checked_before_markup_is_stripped():
    outcome = validate_listing_data(ListingCreate(title="<b>Loft</b>"), UNIT, now=NOW)
    assert outcome.is_valid
    assert outcome.draft.title == "bLoft/b"


def test_update_rejects_overlong_description():
    current = SimpleNamespace(
        title="A-1 - 2BR/1BA",
        description="A lovely flat near the sea.",
        price=Decimal("1500.00"),
        availability_date=None,
        expiration_date=None,
    )
    outcome = validate_listing_update(current, ListingUpdate(description="x" * 1500), now=NOW)
    assert "Description must be at most 1000 characters long" in outcome.errors
