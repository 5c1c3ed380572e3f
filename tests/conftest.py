import pytest

from composer import OrderComposer
from factories import make_discount, make_product
from schemas import Customer, Session


@pytest.fixture
def customer():
    return Customer.model_validate(
        {
            "customer_id": "c1",
            "account_name": "Acme Dispensary",
            "account_details": {
                "contact_first_name": "Ada",
                "contact_last_name": "Lovelace",
                "contact_email": "ada@acme.example.com",
                "contact_mobile": "555-0100",
                "billing_street": "1 Main St",
                "billing_city": "Denver",
                "billing_state": "CO",
                "billing_postal_code": "80202",
            },
        }
    )


@pytest.fixture
def blue_dream():
    return make_product(discount=make_discount((5, "10", "percentage")))


@pytest.fixture
def composer(customer):
    composer = OrderComposer(session=Session(business_id="green-leaf", user_id="u1"))
    composer.select_customer(customer)
    return composer
