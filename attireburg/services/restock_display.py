"""
Restock date display rules for out-of-stock products.

An item with stock never shows restock information. An out-of-stock item
shows exactly one of three states:

    no-date      no expected date stored
    expired      stored date is not after now
    future-date  stored date is after now
"""
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from attireburg.config import settings


GERMAN_MONTHS = [
    "Januar", "Februar", "März", "April", "Mai", "Juni",
    "Juli", "August", "September", "Oktober", "November", "Dezember",
]

ENGLISH_DAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
ENGLISH_MONTHS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]

DISPLAY_NONE = "none"
DISPLAY_NO_DATE = "no-date"
DISPLAY_EXPIRED = "expired"
DISPLAY_FUTURE = "future-date"

MESSAGE_NO_DATE = "Restock date to be determined"
MESSAGE_EXPIRED = "Restock date has passed - new date to be determined"
MESSAGE_FUTURE_PREFIX = "Voraussichtlich wieder verfügbar: "


def to_display_time(value: datetime) -> datetime:
    """Convert to the shop's display timezone. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(ZoneInfo(settings.DISPLAY_TIMEZONE))


def format_german_date(value: datetime) -> str:
    """Long German date in display time, e.g. ``15. März 2026``."""
    value = to_display_time(value)
    return f"{value.day}. {GERMAN_MONTHS[value.month - 1]} {value.year}"


def format_date_string(value: datetime) -> str:
    """Short English date in display time, e.g. ``Sun Mar 15 2026``."""
    value = to_display_time(value)
    return (
        f"{ENGLISH_DAYS[value.weekday()]} {ENGLISH_MONTHS[value.month - 1]} "
        f"{value.day:02d} {value.year}"
    )


def get_restock_display(
    stock: int,
    expected_date: Optional[datetime],
    now: Optional[datetime] = None,
) -> dict:
    """
    Decide what the storefront shows for an item's restock date.

    Returns:
        {"should_show": bool, "display_type": str, "message": str | None,
         "expected_date": datetime | None}
    """
    if stock > 0:
        return {
            "should_show": False,
            "display_type": DISPLAY_NONE,
            "message": None,
            "expected_date": None,
        }

    if expected_date is None:
        return {
            "should_show": True,
            "display_type": DISPLAY_NO_DATE,
            "message": MESSAGE_NO_DATE,
            "expected_date": None,
        }

    now = now or datetime.now(timezone.utc)
    if expected_date.tzinfo is None:
        expected_date = expected_date.replace(tzinfo=timezone.utc)

    if expected_date <= now:
        return {
            "should_show": True,
            "display_type": DISPLAY_EXPIRED,
            "message": MESSAGE_EXPIRED,
            "expected_date": expected_date,
        }

    return {
        "should_show": True,
        "display_type": DISPLAY_FUTURE,
        "message": f"{MESSAGE_FUTURE_PREFIX}{format_german_date(expected_date)}",
        "expected_date": expected_date,
    }
