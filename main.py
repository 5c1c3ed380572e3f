import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

import config
from catalog import CatalogClient, filter_products
from composer import OrderComposer
from discounts import DiscountPolicy, discount_label, discount_message
from errors import (
    CapacityError,
    CatalogError,
    LineNotFoundError,
    OrderError,
    OrderValidationError,
    SubmissionError,
    SubmissionInProgressError,
)
from schemas import BusinessLocation, Customer, Product, Session

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Wholesale Order Composer API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@dataclass
class SessionState:
    """Everything one business session needs to compose an order."""
    composer: OrderComposer
    customers: List[Customer] = field(default_factory=list)
    products: List[Product] = field(default_factory=list)
    location: Optional[BusinessLocation] = None

    def customer(self, customer_id: str) -> Customer:
        for customer in self.customers:
            if customer.id == customer_id:
                return customer
        raise HTTPException(status_code=404, detail=f"Customer not found: {customer_id}")

    def product(self, product_id: str) -> Product:
        for product in self.products:
            if product.id == product_id:
                return product
        raise HTTPException(status_code=404, detail=f"Product not found: {product_id}")


# In-memory state, one in-progress order per (business, user)
_sessions: Dict[Tuple[str, Optional[str]], SessionState] = {}


def get_catalog_client() -> CatalogClient:
    return CatalogClient()


def get_state(business: str, x_user_id: Optional[str] = Header(None)) -> SessionState:
    session = Session(business_id=business, user_id=x_user_id)
    key = (session.business_id, session.user_id)
    if key not in _sessions:
        _sessions[key] = SessionState(
            composer=OrderComposer(session=session, policy=DiscountPolicy(config.DISCOUNT_POLICY))
        )
    return _sessions[key]


def _status_for(exc: OrderError) -> int:
    if isinstance(exc, LineNotFoundError):
        return 404
    if isinstance(exc, (CapacityError, SubmissionInProgressError)):
        return 409
    if isinstance(exc, OrderValidationError):
        return 400
    if isinstance(exc, (SubmissionError, CatalogError)):
        return 502
    return 500


@app.exception_handler(OrderError)
async def order_error_handler(request: Request, exc: OrderError):
    return JSONResponse(status_code=_status_for(exc), content={"detail": str(exc)})


def _state_view(state: SessionState) -> dict:
    composer = state.composer
    return {
        "business": composer.session.business_id,
        "customer": composer.customer.model_dump(mode="json") if composer.customer else None,
        "lines": [line.model_dump(mode="json") for line in composer.lines],
        "shipping_fee": composer.shipping_fee,
        "notes": composer.notes,
        "totals": composer.totals.model_dump(),
        "ship_from": state.location.format() if state.location else "",
        "submitting": composer.submitting,
    }


@app.get("/")
def read_root():
    return {"message": "Wholesale Order Composer Running"}


@app.get("/test")
def test_config():
    """Simple configuration check"""
    return {
        "backend": "✅ Running",
        "marketplace_api": config.MARKETPLACE_API_URL,
        "discount_policy": config.DISCOUNT_POLICY,
        "sessions": len(_sessions),
    }


# ---------------------- Session ----------------------
@app.get("/api/composer/{business}")
def get_order(state: SessionState = Depends(get_state)):
    return _state_view(state)


@app.post("/api/composer/{business}/load")
async def load_session(
    state: SessionState = Depends(get_state),
    client: CatalogClient = Depends(get_catalog_client),
):
    session = state.composer.session
    location = await client.fetch_business_location(session)
    customers = await client.fetch_customers(session)
    products = await client.fetch_products(session)
    state.location, state.customers, state.products = location, customers, products
    state.composer.refresh_products(products)
    logger.info(
        "Loaded %d customers and %d products for %s",
        len(state.customers), len(state.products), session.business_id,
    )
    message = "" if state.customers else "No customers found. Please add customers first."
    return {
        "customers": len(state.customers),
        "products": len(state.products),
        "ship_from": state.location.format(),
        "message": message,
    }


@app.delete("/api/composer/{business}")
def discard_order(state: SessionState = Depends(get_state)):
    state.composer.reset()
    return _state_view(state)


# ---------------------- Lookups ----------------------
@app.get("/api/composer/{business}/customers")
def list_customers(state: SessionState = Depends(get_state)):
    return [c.model_dump(mode="json") for c in state.customers]


@app.get("/api/composer/{business}/products")
def list_products(
    q: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    state: SessionState = Depends(get_state),
):
    return [p.model_dump(mode="json") for p in filter_products(state.products, q or "", category)]


@app.get("/api/composer/{business}/products/{product_id}/flavors")
def list_flavors(product_id: str, state: SessionState = Depends(get_state)):
    return [f.model_dump() for f in state.product(product_id).flavor_list()]


@app.get("/api/composer/{business}/products/{product_id}/discount")
def preview_discount(
    product_id: str,
    quantity: int = Query(1),
    state: SessionState = Depends(get_state),
):
    applied = state.composer.preview_discount(state.product(product_id), quantity)
    return {
        "applied_discount": applied.model_dump() if applied else None,
        "label": discount_label(applied),
        "message": discount_message(applied),
    }


# ---------------------- Composition ----------------------
class CustomerSelection(BaseModel):
    customer_id: str


class LineRequest(BaseModel):
    product_id: Optional[str] = None
    flavor_id: Optional[str] = None
    quantity: int = 1


class QuantityUpdate(BaseModel):
    quantity: int


class ShippingUpdate(BaseModel):
    shipping_fee: float = Field(..., ge=0)


class NotesUpdate(BaseModel):
    notes: str = ""


@app.put("/api/composer/{business}/customer")
def select_customer(payload: CustomerSelection, state: SessionState = Depends(get_state)):
    state.composer.select_customer(state.customer(payload.customer_id))
    return _state_view(state)


@app.delete("/api/composer/{business}/customer")
def clear_customer(state: SessionState = Depends(get_state)):
    state.composer.clear_customer()
    return _state_view(state)


@app.post("/api/composer/{business}/lines")
def add_line(payload: LineRequest, state: SessionState = Depends(get_state)):
    product = state.product(payload.product_id) if payload.product_id else None
    flavor = None
    if product is not None and payload.flavor_id:
        flavor = product.find_flavor(payload.flavor_id)
        if flavor is None:
            raise HTTPException(status_code=404, detail=f"Flavor not found: {payload.flavor_id}")
    line = state.composer.add_line(product, flavor, payload.quantity)
    view = _state_view(state)
    view["message"] = discount_message(line.applied_discount) or "Product added to order"
    return view


@app.patch("/api/composer/{business}/lines/{index}")
def update_line(index: int, payload: QuantityUpdate, state: SessionState = Depends(get_state)):
    state.composer.update_quantity(index, payload.quantity)
    return _state_view(state)


@app.delete("/api/composer/{business}/lines/{index}")
def remove_line(index: int, state: SessionState = Depends(get_state)):
    state.composer.remove_line(index)
    return _state_view(state)


@app.put("/api/composer/{business}/shipping")
def set_shipping(payload: ShippingUpdate, state: SessionState = Depends(get_state)):
    state.composer.set_shipping_fee(payload.shipping_fee)
    return _state_view(state)


@app.put("/api/composer/{business}/notes")
def set_notes(payload: NotesUpdate, state: SessionState = Depends(get_state)):
    state.composer.set_notes(payload.notes)
    return _state_view(state)


# ---------------------- Submission ----------------------
@app.post("/api/composer/{business}/submit")
async def submit_order(
    state: SessionState = Depends(get_state),
    client: CatalogClient = Depends(get_catalog_client),
):
    result = await state.composer.submit(client, state.location)
    return {
        "status": "submitted",
        "message": result.message or "Order placed successfully",
        "order": _state_view(state),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
