"""Normalization helpers for loosely-typed inbound webhook values."""
from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

_AMOUNT_NOISE = re.compile(r"[^0-9.\-]")
_NON_DIGITS = re.compile(r"\D")
_CRM_DATE = re.compile(r"\w+,?\s+(\w+)\s+(\d+)(?:th|st|nd|rd)?,?\s+(\d{4})")
_CRM_TIME = re.compile(r"(\d{1,2}):(\d{2})\s*(am|pm)", re.IGNORECASE)
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def clean_string(value: Any) -> str | None:
    """Return the stripped string form of ``value`` or ``None`` when blank."""

    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_email(value: Any) -> str | None:
    text = clean_string(value)
    return text.lower() if text else None


def normalize_phone(value: Any) -> str | None:
    """Keep digits only so formatting differences never split a contact."""

    text = clean_string(value)
    if text is None:
        return None
    digits = _NON_DIGITS.sub("", text)
    return digits or None


def parse_amount(value: Any) -> Decimal | None:
    """Parse numbers and currency-formatted strings such as ``"$1,500.00"``."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return None
        return amount if amount.is_finite() else None
    if isinstance(value, str):
        cleaned = _AMOUNT_NOISE.sub("", value)
        if not cleaned:
            return None
        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            return None
        return amount if amount.is_finite() else None
    return None


def parse_datetime(value: Any) -> datetime | None:
    """Parse ISO-8601 or CRM display dates like ``"Thu, Oct 30th, 2025 | 2:00 pm"``.

    Naive results are interpreted as UTC.
    """

    if isinstance(value, datetime):
        return _with_utc(value)
    text = clean_string(value)
    if text is None:
        return None
    iso_text = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return _with_utc(datetime.fromisoformat(iso_text))
    except ValueError:
        pass
    return _parse_display_date(text)


def _parse_display_date(text: str) -> datetime | None:
    parts = text.split(" | ")
    if len(parts) != 2:
        return None
    date_match = _CRM_DATE.search(parts[0].strip())
    time_match = _CRM_TIME.search(parts[1].strip())
    if date_match is None or time_match is None:
        return None
    month_name, day, year = date_match.groups()
    if month_name[:3] not in _MONTHS:
        return None
    hours, minutes, meridiem = time_match.groups()
    hour = int(hours) % 12
    if meridiem.lower() == "pm":
        hour += 12
    try:
        return datetime(
            int(year),
            _MONTHS.index(month_name[:3]) + 1,
            int(day),
            hour,
            int(minutes),
            tzinfo=timezone.utc,
        )
    except ValueError:
        return None


def _with_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
