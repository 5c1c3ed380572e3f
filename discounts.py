"""
Quantity-threshold discount resolution.

A product may carry one Discount made of threshold tiers (DiscountLine). A tier
qualifies once the line quantity reaches its minimum_purchase. Everything in
this module is a pure function of its arguments.
"""
from enum import Enum
from typing import Any, NamedTuple, Optional

from schemas import AppliedDiscount, DiscountLine, Product


class DiscountPolicy(str, Enum):
    FIRST_MATCH = "first_match"
    BEST_VALUE = "best_value"


class DiscountAmount(NamedTuple):
    discount_amount: float
    final_price: float


def parse_amount(value: Any) -> float:
    """Parse a marketplace numeric string, treating junk as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def has_any_discount(product: Optional[Product]) -> bool:
    return bool(product and product.discount and product.discount.lines)


def _snapshot(product: Product, line: DiscountLine) -> AppliedDiscount:
    return AppliedDiscount(
        discount_id=product.discount.id,
        discount_line_id=line.id,
        discount_name=product.discount.name,
        discount_value=line.discount_value,
        discount_type=line.discount_type,
    )


def _line_amount(subtotal: float, line: DiscountLine) -> float:
    value = parse_amount(line.discount_value)
    if line.is_percentage:
        return subtotal * value / 100
    return value


def resolve_discount(
    product: Optional[Product],
    quantity: int,
    policy: DiscountPolicy = DiscountPolicy.FIRST_MATCH,
) -> Optional[AppliedDiscount]:
    """
    Return the discount tier in effect for `quantity` units of `product`.

    FIRST_MATCH takes the first qualifying tier in stored order, which is not
    necessarily the largest one. BEST_VALUE takes the tier that removes the
    most money from this line; ties go to the earlier tier.
    """
    if not has_any_discount(product):
        return None

    qualifying = [
        line for line in product.discount.lines if line.minimum_purchase <= quantity
    ]
    if not qualifying:
        return None

    chosen = qualifying[0]
    if policy == DiscountPolicy.BEST_VALUE:
        subtotal = product.unit_price * quantity
        for line in qualifying[1:]:
            if _line_amount(subtotal, line) > _line_amount(subtotal, chosen):
                chosen = line

    return _snapshot(product, chosen)


def apply_discount_amount(
    subtotal: float, applied: Optional[AppliedDiscount]
) -> DiscountAmount:
    if applied is None:
        return DiscountAmount(0.0, round(subtotal, 2))

    value = parse_amount(applied.discount_value)
    if applied.discount_type == "percentage":
        amount = subtotal * value / 100
    else:
        amount = value
    amount = max(0.0, amount)

    final_price = max(0.0, subtotal - amount)
    return DiscountAmount(round(amount, 2), round(final_price, 2))


def discount_label(applied: Optional[AppliedDiscount]) -> str:
    """'10%' for percentage tiers, '$5.00' for fixed amounts."""
    if applied is None:
        return ""
    value = parse_amount(applied.discount_value)
    if applied.discount_type == "percentage":
        return f"{value:g}%"
    return f"${value:.2f}"


def discount_message(applied: Optional[AppliedDiscount]) -> str:
    if applied is None:
        return ""
    return f"Discount applied: {applied.discount_name} ({discount_label(applied)} off)"
