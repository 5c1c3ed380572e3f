"""
Marketplace API client: customers, inventory, business location and the
wholesale order endpoint. Responses are validated into schemas here so the
composer never sees raw marketplace payloads.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional

import httpx
from pydantic import ValidationError

import config
from errors import CatalogError
from schemas import BusinessLocation, Customer, OrderPayload, Product, Session, SubmissionResult

logger = logging.getLogger(__name__)

CUSTOMER_LIMIT = 1000
PRODUCT_LIMIT = 10000


def filter_products(
    products: Iterable[Product],
    search: str = "",
    category: Optional[str] = None,
) -> List[Product]:
    """Search by name, optionally restrict to a category, drop duplicate ids."""
    term = (search or "").strip().lower()
    unique = {}
    for product in products:
        if not product.id or not product.name:
            continue
        if term and term not in product.name.lower():
            continue
        if category and category not in (product.category_id, product.category_name):
            continue
        unique[product.id] = product
    return list(unique.values())


def _message(body: Any, default: str) -> str:
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return default


def _rows(data: Any, key: str) -> list:
    # data is either the list itself or wrapped as {key: [...]}
    if isinstance(data, dict):
        return data.get(key) or []
    return data or []


def _is_success(status: Any) -> bool:
    if isinstance(status, str):
        return status.lower() in {"success", "true", "1", "ok"}
    return bool(status)


def _validate_rows(model, rows: list, id_key: str) -> list:
    valid = []
    for row in rows:
        try:
            valid.append(model.model_validate(row))
        except ValidationError as e:
            # one malformed row should not hide the rest
            row_id = row.get(id_key) if isinstance(row, dict) else row
            logger.warning("Skipping invalid %s %r: %s", model.__name__, row_id, e)
    return valid


class CatalogClient:
    """Async client for the marketplace business API."""

    def __init__(
        self,
        base_url: str = config.MARKETPLACE_API_URL,
        timeout: float = config.MARKETPLACE_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self.transport
        ) as client:
            try:
                resp = await client.request(method, path, **kwargs)
            except httpx.HTTPError as e:
                logger.warning("%s %s failed: %s", method, path, e)
                raise CatalogError(f"Could not reach marketplace API: {e}") from e
            try:
                body = resp.json()
            except ValueError:
                body = None
            if resp.is_error:
                logger.warning("%s %s returned %d", method, path, resp.status_code)
                raise CatalogError(_message(body, f"Marketplace API error {resp.status_code}"))
            return body

    async def _get_data(self, path: str, params: dict, what: str) -> Any:
        body = await self._request("GET", path, params=params)
        if not isinstance(body, dict) or body.get("status") != "success":
            raise CatalogError(_message(body, f"Failed to load {what}"))
        return body.get("data")

    async def fetch_business_location(self, session: Session) -> BusinessLocation:
        data = await self._get_data(
            "/api/business/", {"business": session.business_id}, "business"
        )
        try:
            return BusinessLocation.model_validate(data or {})
        except ValidationError as e:
            raise CatalogError(f"Invalid business data: {e}") from e

    async def fetch_customers(self, session: Session) -> List[Customer]:
        data = await self._get_data(
            "/api/business/customers",
            {"limit": CUSTOMER_LIMIT, "business": session.business_id},
            "customers",
        )
        return _validate_rows(Customer, _rows(data, "customers"), "customer_id")

    async def fetch_products(self, session: Session) -> List[Product]:
        data = await self._get_data(
            "/api/business/posinventory",
            {"business": session.business_id, "is_from": "product", "limit": PRODUCT_LIMIT},
            "products",
        )
        products = _validate_rows(Product, _rows(data, "products"), "product_id")
        return filter_products(products)

    async def submit_order(self, session: Session, payload: OrderPayload) -> SubmissionResult:
        logger.info(
            "Submitting wholesale order for %s (user %s)", session.business_id, session.user_id
        )
        body = await self._request(
            "POST", "/api/business/save-whole-sale-order", json=payload.model_dump(mode="json")
        )
        if not isinstance(body, dict):
            raise CatalogError("Unexpected response from order service")
        return SubmissionResult(
            success=_is_success(body.get("status")),
            message=str(body.get("message") or ""),
        )
