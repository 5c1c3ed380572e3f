"""
In-progress wholesale order: line items, discounts, totals and submission.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from discounts import DiscountPolicy, apply_discount_amount, discount_message, resolve_discount
from errors import (
    CapacityError,
    CatalogError,
    EmptyOrderError,
    InvalidPriceError,
    InvalidQuantityError,
    InvalidShippingFeeError,
    LineNotFoundError,
    MissingSelectionError,
    SubmissionError,
    SubmissionInProgressError,
)
from schemas import (
    AppliedDiscount,
    BusinessLocation,
    Customer,
    Flavor,
    OrderLine,
    OrderPayload,
    Product,
    Session,
    SubmissionResult,
    SubmittedLine,
    Totals,
)

logger = logging.getLogger(__name__)


def recompute_line(
    line: OrderLine,
    product: Product,
    policy: DiscountPolicy = DiscountPolicy.FIRST_MATCH,
) -> OrderLine:
    """Return a copy of `line` whose derived fields match its quantity."""
    subtotal = round(line.unit_price * line.quantity, 2)
    applied = resolve_discount(product, line.quantity, policy)
    amounts = apply_discount_amount(subtotal, applied)
    return line.model_copy(
        update={
            "subtotal": subtotal,
            "applied_discount": applied,
            "discount_amount": amounts.discount_amount,
            "final_price": amounts.final_price,
        }
    )


def compute_totals(lines: Sequence[OrderLine], shipping_fee: float) -> Totals:
    subtotal = sum(line.final_price for line in lines)
    discount_total = sum(line.discount_amount for line in lines)
    return Totals(
        subtotal=round(subtotal, 2),
        discount_total=round(discount_total, 2),
        shipping_fee=round(shipping_fee, 2),
        grand_total=round(subtotal + shipping_fee, 2),
    )


def build_submission(
    customer: Optional[Customer],
    lines: Sequence[OrderLine],
    shipping_fee: float,
    notes: str,
    ship_from: Optional[BusinessLocation],
) -> OrderPayload:
    """Assemble the order-service payload, validating before anything is sent."""
    if customer is None:
        raise MissingSelectionError("Please select a customer")
    if not lines:
        raise EmptyOrderError("Please add at least one product to the order")

    totals = compute_totals(lines, shipping_fee)
    ship_to = customer.ship_to_address.format()
    page_id = ship_from.page_id if ship_from else ""

    return OrderPayload(
        page_id=page_id,
        base_page_id=page_id,
        selected_page_id=customer.page_id or "",
        customer_id=customer.id,
        selected_customer_id=customer.id,
        contact_fname=customer.contact_first_name,
        contact_lname=customer.contact_last_name,
        contact_phone=customer.phone,
        contact_address=ship_to,
        contact_email=customer.email,
        shipping_to=ship_to,
        shipping_from=ship_from.format() if ship_from else "",
        order_items=[
            SubmittedLine(**line.model_dump(), discount_info=line.applied_discount)
            for line in lines
        ],
        subtotal=totals.subtotal,
        shipping_fee=totals.shipping_fee,
        order_total=totals.grand_total,
        order_notes=notes,
    )


@dataclass
class OrderComposer:
    """Holds one in-progress order for a single business session."""

    session: Session
    policy: DiscountPolicy = DiscountPolicy.FIRST_MATCH
    customer: Optional[Customer] = None
    lines: List[OrderLine] = field(default_factory=list)
    shipping_fee: float = 0.0
    notes: str = ""
    submitting: bool = False
    _products: Dict[str, Product] = field(default_factory=dict, repr=False)

    # Selection

    def select_customer(self, customer: Customer) -> None:
        self.customer = customer

    def clear_customer(self) -> None:
        self.customer = None

    def set_shipping_fee(self, fee: float) -> None:
        if fee < 0:
            raise InvalidShippingFeeError("Shipping fee cannot be negative")
        self.shipping_fee = float(fee)

    def set_notes(self, notes: str) -> None:
        self.notes = notes or ""

    def preview_discount(self, product: Product, quantity: int) -> Optional[AppliedDiscount]:
        if quantity < 1:
            return None
        return resolve_discount(product, quantity, self.policy)

    # Line items

    def add_line(
        self,
        product: Optional[Product],
        flavor: Optional[Flavor] = None,
        quantity: int = 1,
    ) -> OrderLine:
        if self.customer is None:
            raise MissingSelectionError("Please select a customer first")
        if product is None:
            raise MissingSelectionError("Please select a product")
        if quantity <= 0:
            raise InvalidQuantityError("Please enter a valid quantity")
        if quantity > product.on_hand:
            raise CapacityError(product.on_hand)
        unit_price = product.unit_price
        if unit_price <= 0:
            raise InvalidPriceError("Product price not available")

        flavor_id = flavor.flavor_id if flavor else None
        index = self._find_line(product.id, flavor_id)

        if index is not None:
            existing = self.lines[index]
            merged = existing.quantity + quantity
            if merged > product.on_hand:
                raise CapacityError(product.on_hand)
            line = recompute_line(
                existing.model_copy(update={"quantity": merged}), product, self.policy
            )
            self.lines[index] = line
            logger.info(
                "Merged %s x%d into line %d (now %d)",
                product.name, quantity, index, merged,
            )
        else:
            line = recompute_line(
                OrderLine(
                    product_id=product.id,
                    product_name=product.name,
                    cat_name=product.category_name,
                    flavor_id=flavor_id,
                    flavor_name=flavor.flavor_name if flavor else None,
                    unit_price=unit_price,
                    quantity=quantity,
                ),
                product,
                self.policy,
            )
            self.lines.append(line)
            logger.info("Added %s x%d to order", product.name, quantity)

        self._products[product.id] = product
        if line.applied_discount:
            logger.info(discount_message(line.applied_discount))
        return line

    def update_quantity(self, index: int, new_quantity: int) -> Optional[OrderLine]:
        line = self._line_at(index)
        if new_quantity <= 0:
            self.remove_line(index)
            return None

        product = self._products.get(line.product_id)
        available = product.on_hand if product else 0
        if new_quantity > available:
            raise CapacityError(available)

        updated = recompute_line(
            line.model_copy(update={"quantity": new_quantity}), product, self.policy
        )
        self.lines[index] = updated
        return updated

    def remove_line(self, index: int) -> OrderLine:
        self._line_at(index)
        removed = self.lines.pop(index)
        logger.info("Removed %s from order", removed.product_name)
        return removed

    def refresh_products(self, products: Sequence[Product]) -> None:
        """Replace stock snapshots for products already on the order."""
        for product in products:
            if product.id in self._products:
                self._products[product.id] = product

    # Totals and submission

    @property
    def totals(self) -> Totals:
        return compute_totals(self.lines, self.shipping_fee)

    def build_submission(self, ship_from: Optional[BusinessLocation] = None) -> OrderPayload:
        return build_submission(
            self.customer, self.lines, self.shipping_fee, self.notes, ship_from
        )

    async def submit(self, client, ship_from: Optional[BusinessLocation] = None) -> SubmissionResult:
        """
        Post the order through `client.submit_order`. The order is reset on
        success and left untouched on any failure so it can be resubmitted.
        """
        if self.submitting:
            raise SubmissionInProgressError("Order submission already in progress")
        payload = self.build_submission(ship_from)

        self.submitting = True
        try:
            result = await client.submit_order(self.session, payload)
        except CatalogError as e:
            logger.warning("Order submission failed for %s: %s", self.session.business_id, e)
            raise SubmissionError(str(e) or "Failed to place order") from e
        finally:
            self.submitting = False

        if not result.success:
            logger.warning(
                "Order service rejected order for %s: %s",
                self.session.business_id, result.message,
            )
            raise SubmissionError(result.message or "Failed to place order")

        logger.info(
            "Placed order for customer %s (%d lines, total %.2f)",
            payload.customer_id, len(payload.order_items), payload.order_total,
        )
        self.reset()
        return result

    def reset(self) -> None:
        self.customer = None
        self.lines = []
        self.shipping_fee = 0.0
        self.notes = ""
        self._products.clear()

    def _find_line(self, product_id: str, flavor_id: Optional[str]) -> Optional[int]:
        for index, line in enumerate(self.lines):
            if line.key == (product_id, flavor_id):
                return index
        return None

    def _line_at(self, index: int) -> OrderLine:
        if index < 0 or index >= len(self.lines):
            raise LineNotFoundError(index)
        return self.lines[index]
