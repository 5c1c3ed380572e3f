from schemas import Discount, DiscountLine, Product


def make_discount(*tiers, name="Pack Discount"):
    """tiers are (minimum_purchase, value, type) tuples, kept in order."""
    return Discount(
        id="d1",
        name=name,
        lines=[
            DiscountLine(id=f"l{i}", minimum_purchase=minimum, discount_value=value, discount_type=kind)
            for i, (minimum, value, kind) in enumerate(tiers, start=1)
        ],
    )


def make_product(product_id="p1", name="Blue Dream", price=45, on_hand=50, discount=None, **extra):
    return Product(
        id=product_id,
        name=name,
        base_price=price,
        on_hand=on_hand,
        discount=discount,
        **extra,
    )
