# Overview: Money and time helpers shared by services, models and routes.

"""
Money and time conventions

- Money is integer cents everywhere. Nothing fractional is persisted.
- Percentages are integer basis points (370 bps = 3.70%).
- Every rounding step is half-up to a whole cent. Python's round() is
  banker's rounding and must not be used for money.
- Datetimes are stored UTC-naive and serialized with a trailing 'Z'.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional

BPS_PER_UNIT = 10_000
BPS_PER_PERCENT = 100


# =============================================================================
# MONEY
# =============================================================================

def round_cents(value) -> int:
    """Round a Decimal/int amount of cents half-up to a whole cent."""
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def apply_bps(amount_cents: int, bps: int) -> int:
    """amount * bps / 10000, rounded half-up to whole cents."""
    return round_cents(Decimal(amount_cents) * Decimal(bps) / Decimal(BPS_PER_UNIT))


def halve_cents(amount_cents: int) -> int:
    """Half of a cent amount, rounded half-up (179 -> 90)."""
    return round_cents(Decimal(amount_cents) / 2)


def percent_to_bps(value) -> int:
    """
    Convert a percent given by a client ("3.7", 3.7, 10) into basis points.

    Raises ValueError if the percent has more precision than 1/100 of a percent.
    """
    try:
        dec = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid percentage: {value!r}")
    bps = dec * BPS_PER_PERCENT
    if bps != bps.to_integral_value():
        raise ValueError(f"Percentage {value} has more than two decimal places")
    return int(bps)


def bps_to_percent(bps: int | None) -> str | None:
    """Basis points as a display percent string ("3.7")."""
    if bps is None:
        return None
    dec = Decimal(bps) / BPS_PER_PERCENT
    return format(dec.normalize(), "f")


# =============================================================================
# TIME
# =============================================================================

def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 string to a UTC-naive datetime.

    Naive input is interpreted as UTC; a trailing Z or offset is converted.
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
