"""
Marketplace Schemas

Pydantic models for everything the wholesale order composer reads from or
sends to the marketplace API. Raw marketplace field names (i_onhand,
p_offer_price, locs_street, account_details...) are accepted as aliases and
normalized here so the rest of the code only sees one shape.
"""
from dataclasses import dataclass
from typing import Any, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)


class MarketplaceModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


_email_adapter = TypeAdapter(EmailStr)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# Session

@dataclass(frozen=True)
class Session:
    """The business page and user an in-progress order belongs to."""

    business_id: str
    user_id: Optional[str] = None


# Customers

class Address(MarketplaceModel):
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.street.strip()

    def format(self) -> str:
        return f"{self.street}, {self.city}, {self.state} {self.postal_code}"


class Customer(MarketplaceModel):
    """
    A billing/shipping contact from the business customer directory.
    The marketplace nests contact details under "account_details"; they are
    flattened on validation.
    """
    id: str = Field(..., alias="customer_id", description="Customer id")
    display_name: str = Field("", alias="account_name")
    company_name: str = Field("", alias="contact_company_name")
    contact_first_name: str = ""
    contact_last_name: str = ""
    email: Optional[EmailStr] = Field(None, alias="contact_email")
    phone: str = Field("", alias="contact_mobile")
    billing_address: Address = Field(default_factory=Address)
    shipping_address: Address = Field(default_factory=Address)
    page_id: Optional[str] = Field(None, alias="contact_page_id")

    @model_validator(mode="before")
    @classmethod
    def _flatten(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        details = data.pop("account_details", None) or {}
        for key, value in details.items():
            if value not in (None, "") or key not in data:
                data[key] = value
        if "billing_address" not in data:
            data["billing_address"] = {
                "street": data.get("billing_street") or "",
                "city": data.get("billing_city") or "",
                "state": data.get("billing_state") or "",
                "postal_code": data.get("billing_postal_code") or "",
            }
        if "shipping_address" not in data:
            data["shipping_address"] = {
                "street": data.get("shipping_street") or "",
                "city": data.get("shipping_city") or "",
                "state": data.get("shipping_state") or "",
                "postal_code": data.get("shipping_postal_code") or "",
            }
        if data.get("customer_id") is not None:
            data["customer_id"] = str(data["customer_id"])
        return data

    @field_validator("page_id", mode="before")
    @classmethod
    def _blank(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, value: Any) -> Any:
        # a malformed address must not drop the customer from the directory
        value = _blank_to_none(value)
        if value is None:
            return None
        try:
            return _email_adapter.validate_python(value)
        except ValidationError:
            return None

    @property
    def ship_to_address(self) -> Address:
        if self.shipping_address.is_empty:
            return self.billing_address
        return self.shipping_address


# Discounts

class DiscountLine(MarketplaceModel):
    """One threshold tier of a discount."""
    id: str
    minimum_purchase: float = Field(0, description="Minimum quantity for the tier")
    discount_value: str = Field("0", description="Numeric string, percent or amount")
    discount_type: str = Field("percentage", description="'percentage' or a fixed amount")
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("id", "discount_value", mode="before")
    @classmethod
    def _as_str(cls, value: Any) -> Any:
        return "" if value is None else str(value)

    @field_validator("minimum_purchase", mode="before")
    @classmethod
    def _minimum(cls, value: Any) -> Any:
        if _blank_to_none(value) is None:
            return 0
        try:
            return float(value)
        except (TypeError, ValueError):
            # an unreadable threshold never qualifies
            return float("inf")

    @property
    def is_percentage(self) -> bool:
        return self.discount_type == "percentage"


class Discount(MarketplaceModel):
    """A named promotion attached to one product or category."""
    id: str
    name: str = ""
    status: str = "active"
    applies_to_id: Optional[str] = None
    applies_to_type: Optional[str] = None
    lines: List[DiscountLine] = Field(default_factory=list)

    @field_validator("id", "applies_to_id", mode="before")
    @classmethod
    def _as_str(cls, value: Any) -> Any:
        return None if value is None else str(value)


class AppliedDiscount(MarketplaceModel):
    discount_id: str
    discount_line_id: str
    discount_name: str
    discount_value: str
    discount_type: str


# Catalog

class Flavor(MarketplaceModel):
    flavor_id: str
    flavor_name: str


class Product(MarketplaceModel):
    """
    A catalog item from the business inventory.
    """
    id: str = Field(..., alias="product_id")
    name: str
    category_id: Optional[str] = Field(None, alias="cat_id")
    category_name: Optional[str] = Field(None, alias="cat_name")
    on_hand: int = Field(0, ge=0, alias="i_onhand")
    base_price: float = Field(0, ge=0, alias="i_price")
    offer_price: Optional[float] = Field(None, ge=0, alias="p_offer_price")
    flavors: Optional[str] = Field(None, description="Comma separated flavor names")
    discount: Optional[Discount] = Field(None, alias="discounts")

    @field_validator("id", "category_id", mode="before")
    @classmethod
    def _as_str(cls, value: Any) -> Any:
        return None if value is None else str(value)

    @field_validator("on_hand", mode="before")
    @classmethod
    def _on_hand(cls, value: Any) -> Any:
        try:
            return max(0, int(float(value)))
        except (TypeError, ValueError):
            return 0

    @field_validator("base_price", mode="before")
    @classmethod
    def _base_price(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        return 0 if value is None else value

    @field_validator("offer_price", "flavors", mode="before")
    @classmethod
    def _blank(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("discount", mode="before")
    @classmethod
    def _no_discount(cls, value: Any) -> Any:
        # the marketplace sends false when nothing applies
        if value is False or value == [] or value == "":
            return None
        return value

    @property
    def unit_price(self) -> float:
        if self.offer_price is not None:
            return float(self.offer_price)
        return float(self.base_price or 0)

    def flavor_list(self) -> List[Flavor]:
        if not self.flavors:
            return []
        names = [name.strip() for name in self.flavors.split(",")]
        return [
            Flavor(flavor_id=f"flavor-{index}-{self.id}", flavor_name=name)
            for index, name in enumerate(names)
            if name
        ]

    def find_flavor(self, flavor_id: Optional[str]) -> Optional[Flavor]:
        if not flavor_id:
            return None
        for flavor in self.flavor_list():
            if flavor.flavor_id == flavor_id:
                return flavor
        return None


class BusinessLocation(MarketplaceModel):
    page_id: str = ""
    title: str = ""
    street: str = Field("", alias="locs_street")
    city: str = Field("", alias="locs_city")
    state: str = Field("", alias="locs_state")
    zip: str = Field("", alias="locs_zip")

    @field_validator("page_id", "title", "street", "city", "state", "zip", mode="before")
    @classmethod
    def _as_str(cls, value: Any) -> Any:
        return "" if value is None else str(value)

    def format(self) -> str:
        return f"{self.title}, {self.street}, {self.city}, {self.state} {self.zip}"


# Orders

class OrderLine(MarketplaceModel):
    product_id: str
    product_name: str
    cat_name: Optional[str] = None
    flavor_id: Optional[str] = None
    flavor_name: Optional[str] = None
    unit_price: float = Field(..., gt=0)
    quantity: int = Field(..., ge=1)
    subtotal: float = 0.0
    applied_discount: Optional[AppliedDiscount] = None
    discount_amount: float = Field(0.0, ge=0)
    final_price: float = Field(0.0, ge=0)

    @property
    def key(self) -> tuple:
        return (self.product_id, self.flavor_id)


class Totals(BaseModel):
    subtotal: float
    discount_total: float
    shipping_fee: float
    grand_total: float


class SubmittedLine(OrderLine):
    discount_info: Optional[AppliedDiscount] = None


class OrderPayload(BaseModel):
    """
    Body posted to the marketplace order service.
    """
    page_id: str = ""
    base_page_id: str = ""
    selected_page_id: str = ""
    customer_id: str
    selected_customer_id: str
    contact_fname: str = ""
    contact_lname: str = ""
    contact_phone: str = ""
    contact_address: str = ""
    contact_email: Optional[str] = None
    shipping_to: str = ""
    shipping_from: str = ""
    order_items: List[SubmittedLine]
    subtotal: float = Field(..., ge=0)
    shipping_fee: float = Field(..., ge=0)
    order_total: float = Field(..., ge=0)
    order_notes: str = ""


class SubmissionResult(BaseModel):
    success: bool
    message: str = ""
