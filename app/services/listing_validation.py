from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from app.models.base import ensure_utc
from app.models.enums import ListingStatus

TITLE_MIN, TITLE_MAX = 3, 100
DESCRIPTION_MIN, DESCRIPTION_MAX = 10, 1000
FALLBACK_PRICE = Decimal("1000")

_EVENT_HANDLER = re.compile(r"on\w+=", re.IGNORECASE)
_JS_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)


@dataclass
class ListingDraft:
    title: str
    description: str
    price: Decimal
    availability_date: datetime | None = None
    expiration_date: datetime | None = None


@dataclass
class ValidationOutcome:
    draft: ListingDraft | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors and self.draft is not None


def sanitize_text(text: str | None) -> str:
    if not text:
        return ""
    cleaned = text.strip().replace("<", "").replace(">", "")
    cleaned = _JS_PROTOCOL.sub("", cleaned)
    return _EVENT_HANDLER.sub("", cleaned)


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'s' if n > 1 else ''}"


def default_title(provided: str | None, unit: Any) -> str:
    if provided and provided.strip():
        return provided.strip()

    unit_number = getattr(unit, "unit_number", None) or "Unit"
    parts = []
    if getattr(unit, "bedrooms", None):
        parts.append(f"{unit.bedrooms}BR")
    if getattr(unit, "bathrooms", None):
        parts.append(f"{unit.bathrooms}BA")
    details = "/".join(parts)
    return f"{unit_number} - {details}" if details else unit_number


def default_description(provided: str | None, unit: Any) -> str:
    if provided and provided.strip():
        return provided.strip()

    parts = []
    if getattr(unit, "bedrooms", None):
        parts.append(_plural(unit.bedrooms, "bedroom"))
    if getattr(unit, "bathrooms", None):
        parts.append(_plural(unit.bathrooms, "bathroom"))
    if getattr(unit, "square_footage", None):
        parts.append(f"{unit.square_footage} sq ft")

    base = f"Spacious {', '.join(parts)} unit available for rent." if parts else "Quality rental unit available."
    return base + " Contact us for more details and to schedule a viewing."


def default_price(provided: Decimal | float | int | None, unit: Any) -> Decimal:
    if provided is not None:
        return Decimal(str(provided))
    rent = getattr(unit, "rent_amount", None)
    if rent is not None and Decimal(str(rent)) > 0:
        return Decimal(str(rent))
    return FALLBACK_PRICE


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def determine_initial_status(availability_date: datetime | None, now: datetime) -> ListingStatus:
    if availability_date is not None and ensure_utc(availability_date) > now:
        return ListingStatus.COMING_SOON
    return ListingStatus.ACTIVE


def _check_title(title: str, errors: list[str]) -> None:
    if not title:
        errors.append("Title is required")
    elif len(title) < TITLE_MIN:
        errors.append(f"Title must be at least {TITLE_MIN} characters long")
    elif len(title) > TITLE_MAX:
        errors.append(f"Title must be at most {TITLE_MAX} characters long")


def _check_description(description: str, errors: list[str]) -> None:
    if not description:
        errors.append("Description is required")
    elif len(description) < DESCRIPTION_MIN:
        errors.append(f"Description must be at least {DESCRIPTION_MIN} characters long")
    elif len(description) > DESCRIPTION_MAX:
        errors.append(f"Description must be at most {DESCRIPTION_MAX} characters long")


def _check_price(price: Any, warning_threshold: Decimal | int, errors: list[str], warnings: list[str]) -> Decimal | None:
    try:
        value = Decimal(str(price))
    except (InvalidOperation, ValueError, TypeError):
        errors.append("Price must be a positive number")
        return None
    if not value.is_finite() or value <= 0:
        errors.append("Price must be a positive number")
        return None
    if value > Decimal(str(warning_threshold)):
        warnings.append(f"Price {value} seems unusually high, please verify")
    return value


def validate_listing_data(
    data: Any,
    unit: Any,
    *,
    now: datetime,
    price_warning_threshold: Decimal | int = 50000,
) -> ValidationOutcome:
    """
    Fill missing fields from the unit and validate the result.
    ``data`` is a ListingCreate (or anything with the same attributes).
    """
    errors: list[str] = []
    warnings: list[str] = []

    # lengths are judged on the trimmed input; sanitizing happens once it is valid
    title = default_title(data.title, unit)
    description = default_description(data.description, unit)
    _check_title(title, errors)
    _check_description(description, errors)

    try:
        raw_price = default_price(data.price, unit)
    except (InvalidOperation, ValueError):
        raw_price = None
    price = _check_price(raw_price, price_warning_threshold, errors, warnings)

    availability = ensure_utc(data.availability_date)
    expiration = ensure_utc(data.expiration_date)

    if availability is not None and availability < start_of_day(now):
        errors.append("Availability date cannot be in the past")
    if availability is not None and expiration is not None and expiration <= availability:
        errors.append("Expiration date must be after availability date")

    if errors:
        return ValidationOutcome(errors=errors, warnings=warnings)

    return ValidationOutcome(
        draft=ListingDraft(
            title=sanitize_text(title),
            description=sanitize_text(description),
            price=price,
            availability_date=availability,
            expiration_date=expiration,
        ),
        warnings=warnings,
    )


def validate_listing_update(
    current: Any,
    data: Any,
    *,
    now: datetime,
    price_warning_threshold: Decimal | int = 50000,
) -> ValidationOutcome:
    """Merge a ListingUpdate over the current listing and validate the merged values."""
    errors: list[str] = []
    warnings: list[str] = []

    title = (data.title if data.title is not None else current.title or "").strip()
    description = (data.description if data.description is not None else current.description or "").strip()
    _check_title(title, errors)
    _check_description(description, errors)
    price = _check_price(data.price if data.price is not None else current.price, price_warning_threshold, errors, warnings)

    availability = ensure_utc(data.availability_date if data.availability_date is not None else current.availability_date)
    expiration = ensure_utc(data.expiration_date if data.expiration_date is not None else current.expiration_date)

    # an already-passed availability date on the stored listing is fine; a new one must not be in the past
    if data.availability_date is not None and availability < start_of_day(now):
        errors.append("Availability date cannot be in the past")
    if availability is not None and expiration is not None and expiration <= availability:
        errors.append("Expiration date must be after availability date")

    if errors:
        return ValidationOutcome(errors=errors, warnings=warnings)

    return ValidationOutcome(
        draft=ListingDraft(
            title=sanitize_text(title),
            description=sanitize_text(description),
            price=price,
            availability_date=availability,
            expiration_date=expiration,
        ),
        warnings=warnings,
    )


def track_changes(current: Any, draft: ListingDraft) -> dict[str, dict[str, Any]]:
    changes: dict[str, dict[str, Any]] = {}
    for name in ("title", "description", "price", "availability_date", "expiration_date"):
        before = getattr(current, name)
        after = getattr(draft, name)
        if name == "price":
            differs = before is None or Decimal(str(before)) != after
        else:
            differs = (ensure_utc(before) if isinstance(before, datetime) else before) != after
        if differs:
            changes[name] = {"from": _jsonable(before), "to": _jsonable(after)}
    return changes


def _jsonable(v: Any) -> Any:
    if isinstance(v, datetime):
        return v.isoformat()
    if isinstance(v, Decimal):
        return str(v)
    return v
