from decimal import Decimal

import pytest

from quote_builder.domain.pricing import compute_summary, line_total, money_str
from quote_builder.models.quote import AdjustmentType, LineItem, PricingConfig


def _items(*rows):
    return [LineItem(productId=i + 1, quantity=q, unitPrice=p) for i, (q, p) in enumerate(rows)]


def test_reference_scenario():
    items = _items((2, "100"), (1, "50"))
    pricing = PricingConfig(
        discountType=AdjustmentType.PERCENTAGE,
        discountValue=10,
        taxRate=8,
        downPaymentType=AdjustmentType.PERCENTAGE,
        downPaymentValue=20,
    )

    s = compute_summary(items, pricing)

    assert s.subtotal == Decimal("250.00")
    assert s.discountAmount == Decimal("25.00")
    assert s.taxableBase == Decimal("225.00")
    assert s.taxAmount == Decimal("18.00")
    assert s.total == Decimal("243.00")
    assert s.downPaymentAmount == Decimal("48.60")
    assert s.remainingBalance == Decimal("194.40")


def test_fixed_discount_larger_than_subtotal_clamps_total_to_zero():
    items = _items((1, "100"))
    pricing = PricingConfig(
        discountType=AdjustmentType.FIXED,
        discountValue=500,
        taxRate=8,
        downPaymentType=AdjustmentType.FIXED,
        downPaymentValue=50,
    )

    s = compute_summary(items, pricing)

    assert s.discountAmount == Decimal("100.00")
    assert s.total == Decimal("0.00")
    assert s.downPaymentAmount == Decimal("0.00")
    assert s.remainingBalance == Decimal("0.00")


def test_empty_line_items_are_all_zero():
    pricing = PricingConfig(
        discountType=AdjustmentType.PERCENTAGE,
        discountValue=15,
        taxRate=10,
        downPaymentType=AdjustmentType.PERCENTAGE,
        downPaymentValue=50,
    )
    s = compute_summary([], pricing)
    for field in ("subtotal", "discountAmount", "taxAmount", "total", "downPaymentAmount", "remainingBalance"):
        assert getattr(s, field) == Decimal("0.00"), field


def test_no_pricing_config_defaults_to_subtotal():
    s = compute_summary(_items((3, "19.99")))
    assert s.subtotal == Decimal("59.97")
    assert s.total == Decimal("59.97")
    assert s.remainingBalance == Decimal("59.97")


def test_subtotal_has_no_float_drift():
    items = _items((3, 0.1), (7, 0.7), (1, "1234.565"))
    s = compute_summary(items)
    # 0.3 + 4.9 + 1234.565 = 1239.765 -> rounded once, half-up
    assert s.subtotal == Decimal("1239.77")


def test_tax_applies_to_discounted_base():
    items = _items((1, "200"))
    pricing = PricingConfig(discountType=AdjustmentType.FIXED, discountValue=50, taxRate=10)
    s = compute_summary(items, pricing)
    assert s.taxAmount == Decimal("15.00")
    assert s.total == Decimal("165.00")


def test_percentage_down_payment_is_share_of_post_tax_total():
    items = _items((1, "100"))
    pricing = PricingConfig(
        taxRate=25, downPaymentType=AdjustmentType.PERCENTAGE, downPaymentValue=50
    )
    s = compute_summary(items, pricing)
    assert s.total == Decimal("125.00")
    assert s.downPaymentAmount == Decimal("62.50")
    assert s.remainingBalance == Decimal("62.50")


def test_rounding_happens_only_on_output():
    # 33.335 * 3 = 100.005; rounding each line first would give 100.02
    items = _items((3, "33.335"))
    pricing = PricingConfig(taxRate="7.5")
    s = compute_summary(items, pricing)
    assert s.subtotal == Decimal("100.01")
    # 100.005 * 0.075 = 7.500375
    assert s.taxAmount == Decimal("7.50")
    assert s.total == Decimal("107.51")


@pytest.mark.parametrize(
    "discount_type,discount_value,dp_type,dp_value",
    [
        (AdjustmentType.PERCENTAGE, 10000, AdjustmentType.PERCENTAGE, 50),
        (AdjustmentType.PERCENTAGE, -40, AdjustmentType.FIXED, -10),
        (AdjustmentType.FIXED, -25, AdjustmentType.PERCENTAGE, 250),
        (AdjustmentType.FIXED, 99999, AdjustmentType.FIXED, 99999),
        (None, 30, AdjustmentType.FIXED, 1000000),
        (AdjustmentType.PERCENTAGE, "33.3333", None, 80),
    ],
)
def test_clamps_hold_for_adversarial_inputs(discount_type, discount_value, dp_type, dp_value):
    items = _items((2, "100"), (1, "50"))
    pricing = PricingConfig(
        discountType=discount_type,
        discountValue=discount_value,
        taxRate=8,
        downPaymentType=dp_type,
        downPaymentValue=dp_value,
    )
    s = compute_summary(items, pricing)
    assert Decimal("0") <= s.discountAmount <= s.subtotal
    assert s.total >= 0
    assert Decimal("0") <= s.downPaymentAmount <= s.total
    assert Decimal("0") <= s.remainingBalance <= s.total


def test_negative_down_payment_is_treated_as_zero():
    s = compute_summary(
        _items((1, "80")),
        PricingConfig(downPaymentType=AdjustmentType.FIXED, downPaymentValue=-20),
    )
    assert s.downPaymentAmount == Decimal("0.00")
    assert s.remainingBalance == Decimal("80.00")


def test_compute_summary_is_pure():
    items = _items((2, "100"), (1, "50"))
    pricing = PricingConfig(discountType=AdjustmentType.PERCENTAGE, discountValue="12.5", taxRate="6.25")
    first = compute_summary(items, pricing)
    second = compute_summary(items, pricing)
    assert first == second
    assert [li.unitPrice for li in items] == [Decimal("100"), Decimal("50")]


def test_line_total_and_money_str():
    assert line_total(LineItem(productId=1, quantity=3, unitPrice="10.005")) == Decimal("30.02")
    assert money_str("7") == "7.00"
    assert money_str(None) == "0.00"
