"""Test pure stock, coupon and order-state rules."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from patterns.rules_engine import (
    MovementType,
    apply_percentage,
    check_coupon_usage,
    check_coupon_window,
    check_non_negative_stock,
    compute_discount,
    compute_movement,
    evaluate_rules,
    is_low_stock,
)
from patterns.workflow_states import OrderStatus, OrderWorkflow, can_transition


@pytest.mark.parametrize(
    "movement_type,expected",
    [
        (MovementType.IN, (15, 5)),
        (MovementType.RETURN, (15, 5)),
        (MovementType.OUT, (5, -5)),
        (MovementType.DAMAGE, (5, -5)),
        (MovementType.LOSS, (5, -5)),
        (MovementType.TRANSFER, (5, -5)),
    ],
)
def test_compute_movement_signed_delta(movement_type, expected):
    assert compute_movement(10, 5, movement_type) == expected


def test_compute_movement_adjustment_sets_absolute_value():
    assert compute_movement(10, 3, MovementType.ADJUSTMENT) == (3, -7)
    assert compute_movement(2, 8, "ADJUSTMENT") == (8, 6)


def test_compute_movement_can_go_negative():
    new_quantity, _ = compute_movement(2, 5, MovementType.OUT)
    result = check_non_negative_stock(new_quantity)
    assert new_quantity == -3
    assert not result.passed
    assert result.message == "Insufficient stock"


def test_low_stock_includes_threshold():
    assert is_low_stock(10, 10)
    assert not is_low_stock(11, 10)


def test_coupon_window():
    now = datetime(2025, 6, 1, tzinfo=timezone.utc)
    assert check_coupon_window({"is_active": True}, now).passed
    expired = check_coupon_window({"expires_at": now - timedelta(days=1)}, now)
    assert not expired.passed
    assert "expired" in expired.message
    future = check_coupon_window({"starts_at": now + timedelta(days=1)}, now)
    assert not future.passed
    naive = check_coupon_window({"expires_at": datetime(2025, 5, 31)}, now)
    assert naive.message == "Coupon has expired"
    inactive = check_coupon_window({"is_active": False, "starts_at": now + timedelta(days=1)}, now)
    assert inactive.message == "Coupon is inactive; Coupon has not started yet"


def test_coupon_usage_limit():
    assert check_coupon_usage({"usage_limit": None, "usage_count": 99}).passed
    assert check_coupon_usage({"usage_limit": 5, "usage_count": 4}).passed
    assert not check_coupon_usage({"usage_limit": 5, "usage_count": 5}).passed


def test_compute_discount_percentage_capped():
    coupon = {"type": "PERCENTAGE", "value": Decimal("20"), "max_discount": Decimal("15")}
    assert compute_discount(coupon, Decimal("50")) == Decimal("10.00")
    assert compute_discount(coupon, Decimal("100")) == Decimal("15")


def test_compute_discount_fixed_and_minimum():
    coupon = {"type": "FIXED_AMOUNT", "value": Decimal("30"), "min_purchase": Decimal("20")}
    assert compute_discount(coupon, Decimal("10")) == Decimal("0.00")
    assert compute_discount(coupon, Decimal("25")) == Decimal("25.00")
    assert compute_discount({"type": "FREE_SHIPPING", "value": 0}, Decimal("25")) == Decimal("0.00")


def test_apply_percentage_rounds_half_up():
    assert apply_percentage(2999, 0) == 2999
    assert apply_percentage(1000, 15) == 850
    assert apply_percentage(999, 50) == 500


def test_evaluate_rules():
    result = evaluate_rules(
        check_coupon_window({"is_active": True}, datetime(2025, 6, 1, tzinfo=timezone.utc)),
        check_coupon_usage({"usage_limit": 1, "usage_count": 1}),
        check_non_negative_stock(4),
    )
    assert not result.all_passed
    assert [r.rule_name for r in result.failed] == ["coupon_usage"]
    assert len(result.results) == 3


def test_order_workflow_transitions():
    wf = OrderWorkflow(order_number="ORD-1", current_state=OrderStatus.PENDING)
    wf.transition(OrderStatus.CONFIRMED, actor="stripe_webhook")
    wf.transition(OrderStatus.SHIPPED)
    assert wf.current_state == OrderStatus.SHIPPED
    assert len(wf.history) == 2
    with pytest.raises(ValueError, match="Cannot transition"):
        wf.transition(OrderStatus.PENDING)


def test_terminal_states():
    wf = OrderWorkflow(order_number="ORD-2", current_state=OrderStatus.CANCELLED)
    assert wf.is_terminal
    assert can_transition(OrderStatus.CANCELLED, OrderStatus.CANCELLED)
    assert not can_transition(OrderStatus.CANCELLED, OrderStatus.PENDING)
