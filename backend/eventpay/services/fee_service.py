# Overview: Pure fee arithmetic for every payment model; no database access.

"""
Fee Calculator

Models:
- CREDIT_CARD: platform fee = pct(subtotal) + fixed;
  processing fee = pct(subtotal + platform fee), because the processor
  charges on the full amount actually collected.
- PREPAY: platform fee = 0 (collected up front through credits);
  processing fee = pct(subtotal).
- CONSIGNMENT: nothing per order. Fees are computed once, at settlement,
  by consignment_fees().

Every intermediate amount is rounded half-up to a whole cent before it is
summed. Percentages are basis points.

Discounts never compound: charity halves the defaults at selection time,
and the low-price discount resets to half of the *defaults*, not half of
whatever the config currently holds.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict

from ..errors import ValidationError
from ..models.payments import (
    MODEL_PREPAY,
    MODEL_CREDIT_CARD,
    MODEL_CONSIGNMENT,
    VALID_PAYMENT_MODELS,
)
from ..utils import apply_bps, halve_cents

DEFAULT_PLATFORM_FEE_BPS = 370          # 3.7%
DEFAULT_PLATFORM_FEE_FIXED_CENTS = 179  # $1.79
DEFAULT_PROCESSING_FEE_BPS = 290        # 2.9%


@dataclass(frozen=True)
class FeeParams:
    platform_fee_bps: int
    platform_fee_fixed_cents: int
    processing_fee_bps: int

    @classmethod
    def from_config(cls, config) -> "FeeParams":
        return cls(
            platform_fee_bps=config.platform_fee_bps,
            platform_fee_fixed_cents=config.platform_fee_fixed_cents,
            processing_fee_bps=config.processing_fee_bps,
        )


@dataclass(frozen=True)
class FeeBreakdown:
    payment_model: str
    subtotal_cents: int
    platform_fee_cents: int
    processing_fee_cents: int
    total_cents: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ConsignmentFees:
    platform_fee_fixed_total_cents: int
    platform_fee_variable_cents: int
    total_platform_fee_cents: int


def default_params(model: str, *, charity: bool = False) -> FeeParams:
    """Fee parameters a newly selected model starts with."""
    if model == MODEL_PREPAY:
        return FeeParams(0, 0, DEFAULT_PROCESSING_FEE_BPS)
    if model == MODEL_CREDIT_CARD:
        if charity:
            return discounted_params()
        return FeeParams(DEFAULT_PLATFORM_FEE_BPS, DEFAULT_PLATFORM_FEE_FIXED_CENTS, DEFAULT_PROCESSING_FEE_BPS)
    if model == MODEL_CONSIGNMENT:
        return FeeParams(DEFAULT_PLATFORM_FEE_BPS, DEFAULT_PLATFORM_FEE_FIXED_CENTS, DEFAULT_PROCESSING_FEE_BPS)
    raise ValidationError(f"Invalid payment model: {model}. Must be one of {VALID_PAYMENT_MODELS}")


def discounted_params() -> FeeParams:
    """Half of the default platform fee (both parts); processing is untouched."""
    return FeeParams(
        platform_fee_bps=DEFAULT_PLATFORM_FEE_BPS // 2,
        platform_fee_fixed_cents=halve_cents(DEFAULT_PLATFORM_FEE_FIXED_CENTS),
        processing_fee_bps=DEFAULT_PROCESSING_FEE_BPS,
    )


def _require_amount(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer number of cents")
    if value < 0:
        raise ValidationError(f"{field} cannot be negative")
    return value


def compute_fees(model: str, subtotal_cents: int, params: FeeParams) -> FeeBreakdown:
    """Fees for one order. Pure: same inputs, same output."""
    subtotal_cents = _require_amount(subtotal_cents, "subtotal_cents")

    if model == MODEL_CREDIT_CARD:
        platform_fee = apply_bps(subtotal_cents, params.platform_fee_bps) + params.platform_fee_fixed_cents
        processing_fee = apply_bps(subtotal_cents + platform_fee, params.processing_fee_bps)
    elif model == MODEL_PREPAY:
        platform_fee = 0
        processing_fee = apply_bps(subtotal_cents, params.processing_fee_bps)
    elif model == MODEL_CONSIGNMENT:
        platform_fee = 0
        processing_fee = 0
    else:
        raise ValidationError(f"Invalid payment model: {model}. Must be one of {VALID_PAYMENT_MODELS}")

    return FeeBreakdown(
        payment_model=model,
        subtotal_cents=subtotal_cents,
        platform_fee_cents=platform_fee,
        processing_fee_cents=processing_fee,
        total_cents=subtotal_cents + platform_fee + processing_fee,
    )


def consignment_fees(total_revenue_cents: int, sold_tickets: int, params: FeeParams) -> ConsignmentFees:
    """Platform fee owed on a consignment event: fixed per ticket plus pct of revenue."""
    fixed_total = params.platform_fee_fixed_cents * sold_tickets
    variable = apply_bps(total_revenue_cents, params.platform_fee_bps)
    return ConsignmentFees(
        platform_fee_fixed_total_cents=fixed_total,
        platform_fee_variable_cents=variable,
        total_platform_fee_cents=fixed_total + variable,
    )


def preview_fees(
    ticket_price_cents: int,
    model: str,
    *,
    charity: bool = False,
    low_price: bool = False,
) -> dict:
    """
    Fee preview for a single ticket price, before any config exists.

    Either discount yields the same halved defaults; asking for both does
    not halve twice.
    """
    if model not in (MODEL_PREPAY, MODEL_CREDIT_CARD):
        raise ValidationError("Fee preview is available for PREPAY and CREDIT_CARD models")

    if model == MODEL_CREDIT_CARD and (charity or low_price):
        params = discounted_params()
    else:
        params = default_params(model)

    breakdown = compute_fees(model, ticket_price_cents, params)
    return {
        **breakdown.to_dict(),
        "organizer_receives_cents": breakdown.subtotal_cents - breakdown.platform_fee_cents,
        "buyer_pays_cents": breakdown.total_cents,
    }
