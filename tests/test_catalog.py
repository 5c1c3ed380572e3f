import asyncio

import httpx
import pytest

from catalog import CatalogClient, filter_products
from errors import CatalogError
from factories import make_product
from marketplace import Marketplace
from schemas import OrderPayload, Session

SESSION = Session(business_id="green-leaf", user_id="u1")


def _client(marketplace):
    return CatalogClient(base_url="http://marketplace.test", transport=marketplace.transport)


def test_fetch_products_normalizes_inventory():
    marketplace = Marketplace()
    products = asyncio.run(_client(marketplace).fetch_products(SESSION))

    assert [p.id for p in products] == ["6200", "6201"]
    blue_dream, kush = products
    assert blue_dream.on_hand == 50
    assert blue_dream.unit_price == 45.0
    assert blue_dream.category_name == "Flower"
    assert blue_dream.discount.lines[0].minimum_purchase == 5
    assert [f.flavor_name for f in blue_dream.flavor_list()] == ["Berry", "Citrus"]
    assert blue_dream.flavor_list()[1].flavor_id == "flavor-1-6200"
    assert kush.unit_price == 12.5
    assert kush.discount is None

    params = marketplace.requests[0].url.params
    assert params["business"] == "green-leaf"
    assert params["is_from"] == "product"


def test_fetch_customers_flattens_account_details():
    customers = asyncio.run(_client(Marketplace()).fetch_customers(SESSION))

    assert len(customers) == 1
    acme = customers[0]
    assert acme.display_name == "Acme Dispensary"
    assert acme.contact_last_name == "Lovelace"
    assert acme.phone == "555-0100"
    assert acme.page_id == "4410"
    assert acme.billing_address.format() == "1 Main St, Denver, CO 80202"


def test_fetch_business_location():
    location = asyncio.run(_client(Marketplace()).fetch_business_location(SESSION))
    assert location.page_id == "9398"
    assert location.format() == "Green Leaf Wholesale, 9 Mill Rd, Boulder, CO 80301"


def test_error_envelope_raises_catalog_error():
    def handler(request):
        return httpx.Response(200, json={"status": "error", "message": "Business not found"})

    client = CatalogClient(base_url="http://marketplace.test", transport=httpx.MockTransport(handler))
    with pytest.raises(CatalogError, match="Business not found"):
        asyncio.run(client.fetch_business_location(SESSION))


def test_transport_failure_raises_catalog_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = CatalogClient(base_url="http://marketplace.test", transport=httpx.MockTransport(handler))
    with pytest.raises(CatalogError):
        asyncio.run(client.fetch_customers(SESSION))


def _payload():
    return OrderPayload(
        customer_id="c1",
        selected_customer_id="c1",
        order_items=[],
        subtotal=10,
        shipping_fee=0,
        order_total=10,
    )


def test_submit_order_posts_payload():
    marketplace = Marketplace()
    result = asyncio.run(_client(marketplace).submit_order(SESSION, _payload()))

    assert result.success
    assert result.message == "Order placed successfully"
    assert marketplace.orders[0]["customer_id"] == "c1"
    assert marketplace.orders[0]["order_total"] == 10


def test_submit_order_reports_rejection():
    marketplace = Marketplace(order_response={"status": False, "message": "Rejected"})
    result = asyncio.run(_client(marketplace).submit_order(SESSION, _payload()))
    assert not result.success
    assert result.message == "Rejected"


def test_submit_order_http_error():
    marketplace = Marketplace(order_response={"message": "Server exploded"}, order_status=500)
    with pytest.raises(CatalogError, match="Server exploded"):
        asyncio.run(_client(marketplace).submit_order(SESSION, _payload()))


def test_filter_products():
    products = [
        make_product("1", "Blue Dream", category_name="Flower"),
        make_product("2", "Blue Cookies Vape", category_name="Vapes"),
        make_product("3", "OG Kush", category_name="Flower"),
        make_product("1", "Blue Dream", category_name="Flower"),
    ]

    assert [p.id for p in filter_products(products, "blue")] == ["1", "2"]
    assert [p.id for p in filter_products(products, category="Flower")] == ["1", "3"]
    assert [p.id for p in filter_products(products, "  KUSH ", "Flower")] == ["3"]


def test_malformed_customer_email_keeps_customer():
    def handler(request):
        return httpx.Response(
            200,
            json={
                "status": "success",
                "data": {
                    "customers": [
                        {"customer_id": "c9", "account_details": {"contact_email": "bob at shop"}}
                    ]
                },
            },
        )

    client = CatalogClient(base_url="http://marketplace.test", transport=httpx.MockTransport(handler))
    customers = asyncio.run(client.fetch_customers(SESSION))

    assert [c.id for c in customers] == ["c9"]
    assert customers[0].email is None
