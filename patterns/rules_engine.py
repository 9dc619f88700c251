"""Pure-function rules engine.

Rules are stateless functions: (entity, context) -> RuleResult.
No database, no side effects, no network calls. Services load the data,
ask the rules, then persist whatever the rules decided.

Covers stock movements, coupon validity/discounts and regional price
fallback.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class RuleResult:
    """Outcome of a single rule evaluation."""

    passed: bool
    rule_name: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class RuleSetResult:
    """Aggregate outcome of multiple rules."""

    all_passed: bool
    results: list[RuleResult]
    failed: list[RuleResult] = field(default_factory=list)

    def __post_init__(self):
        self.failed = [r for r in self.results if not r.passed]
        self.all_passed = len(self.failed) == 0


# ---------------------------------------------------------------------------
# Stock movements
# ---------------------------------------------------------------------------

class MovementType(str, Enum):
    IN = "IN"
    OUT = "OUT"
    ADJUSTMENT = "ADJUSTMENT"
    TRANSFER = "TRANSFER"
    RETURN = "RETURN"
    DAMAGE = "DAMAGE"
    LOSS = "LOSS"


_INBOUND = {MovementType.IN, MovementType.RETURN}
_OUTBOUND = {MovementType.OUT, MovementType.DAMAGE, MovementType.LOSS, MovementType.TRANSFER}


def compute_movement(current: int, quantity: int, movement_type: MovementType) -> tuple[int, int]:
    """Return (new_quantity, signed_delta) for a movement.

    ADJUSTMENT treats ``quantity`` as the new absolute on-hand value.
    The result may be negative; callers reject that with
    check_non_negative_stock().
    """
    movement_type = MovementType(movement_type)
    if movement_type in _INBOUND:
        return current + quantity, quantity
    if movement_type in _OUTBOUND:
        return current - quantity, -quantity
    return quantity, quantity - current


def check_non_negative_stock(new_quantity: int) -> RuleResult:
    passed = new_quantity >= 0
    return RuleResult(
        passed=passed,
        rule_name="non_negative_stock",
        message="Stock level valid" if passed else "Insufficient stock",
        details={"new_quantity": new_quantity},
    )


def is_low_stock(quantity: int, threshold: int) -> bool:
    """Low stock includes the threshold itself."""
    return quantity <= threshold


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------

def _as_utc(value: datetime | None) -> datetime | None:
    """Naive datetimes are taken as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def check_coupon_window(coupon: dict, now: datetime) -> RuleResult:
    """Active, started (or no start) and not yet expired (or no expiry)."""
    starts_at = _as_utc(coupon.get("starts_at"))
    expires_at = _as_utc(coupon.get("expires_at"))
    now = _as_utc(now)
    is_active = coupon.get("is_active", True)

    reasons = []
    if not is_active:
        reasons.append("Coupon is inactive")
    if starts_at is not None and starts_at > now:
        reasons.append("Coupon has not started yet")
    if expires_at is not None and expires_at <= now:
        reasons.append("Coupon has expired")

    return RuleResult(
        passed=not reasons,
        rule_name="coupon_window",
        message="Coupon is valid" if not reasons else "; ".join(reasons),
        details={"starts_at": starts_at, "expires_at": expires_at, "is_active": is_active},
    )


def check_coupon_usage(coupon: dict) -> RuleResult:
    limit = coupon.get("usage_limit")
    used = coupon.get("usage_count", 0)
    passed = not limit or used < limit
    return RuleResult(
        passed=passed,
        rule_name="coupon_usage",
        message="Usage available" if passed else "Coupon usage limit reached",
        details={"usage_limit": limit, "usage_count": used},
    )


def compute_discount(coupon: dict, subtotal: Decimal) -> Decimal:
    """Discount a coupon grants on ``subtotal``.

    PERCENTAGE is capped by ``max_discount``; FIXED_AMOUNT never exceeds the
    subtotal; FREE_SHIPPING discounts nothing on the items. Below
    ``min_purchase`` no discount applies.
    """
    subtotal = Decimal(subtotal)
    min_purchase = coupon.get("min_purchase")
    if min_purchase is not None and subtotal < Decimal(min_purchase):
        return Decimal("0.00")

    value = Decimal(coupon.get("value") or 0)
    coupon_type = coupon.get("type")

    if coupon_type == "PERCENTAGE":
        discount = subtotal * value / Decimal(100)
        max_discount = coupon.get("max_discount")
        if max_discount is not None:
            discount = min(discount, Decimal(max_discount))
    elif coupon_type == "FIXED_AMOUNT":
        discount = min(value, subtotal)
    else:
        discount = Decimal(0)

    return discount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def apply_percentage(unit_amount: int, percent: float) -> int:
    """Discounted unit amount in minor units, rounded half up."""
    if percent <= 0:
        return unit_amount
    discounted = Decimal(unit_amount) * (Decimal(1) - Decimal(str(percent)) / Decimal(100))
    return int(discounted.quantize(Decimal(1), rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Rule composition
# ---------------------------------------------------------------------------

def evaluate_rules(*rules: RuleResult) -> RuleSetResult:
    """Compose multiple rule results into a single aggregate.

    Example::

        result = evaluate_rules(
            check_coupon_window(coupon, now),
            check_coupon_usage(coupon),
        )
        if not result.all_passed:
            raise ValidationFailed(result.failed[0].message)
    """
    return RuleSetResult(
        all_passed=all(r.passed for r in rules),
        results=list(rules),
    )
