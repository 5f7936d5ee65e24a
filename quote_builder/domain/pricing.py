from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional

from quote_builder.models.quote import AdjustmentType, LineItem, PricingConfig, QuoteSummary


CENTS = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _dec(x: Any, default: Decimal = ZERO) -> Decimal:
    if x is None:
        return default
    if isinstance(x, Decimal):
        return x if x.is_finite() else default
    try:
        value = Decimal(str(x))
    except (InvalidOperation, ValueError):
        return default
    return value if value.is_finite() else default


def _clamp(value: Decimal, low: Decimal, high: Optional[Decimal] = None) -> Decimal:
    if value < low:
        return low
    if high is not None and value > high:
        return high
    return value


def money(value: Any) -> Decimal:
    """Round to cents, half-up. Only applied to values leaving the calculator."""
    return _dec(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def money_str(value: Any) -> str:
    return f"{money(value):.2f}"


def _adjustment(kind: Optional[AdjustmentType], value: Any, base: Decimal) -> Decimal:
    amount = _dec(value)
    if kind == AdjustmentType.PERCENTAGE:
        return base * amount / HUNDRED
    if kind == AdjustmentType.FIXED:
        return amount
    return ZERO


def subtotal_of(line_items: Iterable[LineItem]) -> Decimal:
    return sum((Decimal(li.quantity) * _dec(li.unitPrice) for li in line_items), ZERO)


def compute_summary(line_items: Iterable[LineItem], pricing: Optional[PricingConfig] = None) -> QuoteSummary:
    """
    Financial summary for a set of line items.

    Order is fixed: subtotal, discount (clamped to [0, subtotal]), tax on the
    discounted base, total (clamped at 0), down payment as a share of the
    post-tax total (clamped to [0, total]), remaining balance. Everything is
    carried at full precision and only the returned fields are rounded.
    """
    pricing = pricing or PricingConfig()

    subtotal = subtotal_of(line_items)

    discount = _adjustment(pricing.discountType, pricing.discountValue, subtotal)
    discount = _clamp(discount, ZERO, max(subtotal, ZERO))

    taxable = subtotal - discount
    tax = taxable * _dec(pricing.taxRate) / HUNDRED

    total = _clamp(taxable + tax, ZERO)

    down_payment = _adjustment(pricing.downPaymentType, pricing.downPaymentValue, total)
    down_payment = _clamp(down_payment, ZERO, total)

    remaining = total - down_payment

    return QuoteSummary(
        subtotal=money(subtotal),
        discountAmount=money(discount),
        taxableBase=money(taxable),
        taxAmount=money(tax),
        total=money(total),
        downPaymentAmount=money(down_payment),
        remainingBalance=money(remaining),
    )


def line_total(item: LineItem) -> Decimal:
    return money(Decimal(item.quantity) * _dec(item.unitPrice))
