"""
Unit tests for order money calculations
"""

from datetime import datetime

import pytest

from retail_api.models import Order
from retail_api.services.orders import (
    LineTotals,
    calculate_line,
    calculate_order_totals,
    generate_order_number,
    tax_for,
)


def test_two_line_order_totals():
    """2 x 1000 + 1 x 500 = 2500, plus 300 shipping = 2800"""
    lines = [calculate_line(2, 1000), calculate_line(1, 500)]

    totals = calculate_order_totals(lines, shipping_cents=300)

    assert [line.line_total_cents for line in lines] == [2000, 500]
    assert totals.subtotal_cents == 2500
    assert totals.tax_cents == 0
    assert totals.total_cents == 2800


def test_line_discount_reduces_line_total():
    line = calculate_line(3, 1000, discount_cents=500)

    assert line.line_total_cents == 2500


def test_line_discount_larger_than_line_is_rejected():
    with pytest.raises(ValueError):
        calculate_line(1, 100, discount_cents=101)


def test_order_discount_is_subtracted_last():
    totals = calculate_order_totals(
        [LineTotals(line_total_cents=2000, tax_cents=160)],
        shipping_cents=500,
        discount_cents=660,
    )

    assert totals.total_cents == 2000 + 160 + 500 - 660


def test_order_discount_larger_than_order_is_rejected():
    with pytest.raises(ValueError):
        calculate_order_totals([LineTotals(1000, 0)], discount_cents=1001)


def test_tax_rounds_half_up_in_basis_points():
    assert tax_for(1000, 825) == 83  # 82.5 rounds up
    assert tax_for(1000, 0) == 0
    assert tax_for(0, 825) == 0


def test_line_tax_uses_rate():
    line = calculate_line(2, 1000, tax_rate_bps=1000)

    assert line.tax_cents == 200


def test_order_numbers_are_sequential_per_day(db, make_tenant):
    tenant = make_tenant("Numbered")
    now = datetime(2026, 3, 1, 12, 0)

    first = generate_order_number(db, tenant.id, now)
    db.add(Order(tenant_id=tenant.id, order_number=first, customer_email="a@example.com"))
    db.commit()
    second = generate_order_number(db, tenant.id, now)

    assert first == "ORD-20260301-0001"
    assert second == "ORD-20260301-0002"
