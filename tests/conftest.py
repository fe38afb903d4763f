"""
Pytest configuration and fixtures for the POS back office.
"""

import json
from decimal import Decimal

import pytest


@pytest.fixture(autouse=True)
def local_timezone(settings):
    """Pin the store timezone so date grouping is predictable."""
    settings.TIME_ZONE = "Asia/Ho_Chi_Minh"


@pytest.fixture
def post_json(client):
    """POST/PUT a JSON body through the Django test client."""

    def _send(url, data, method="post"):
        sender = getattr(client, method)
        return sender(url, data=json.dumps(data), content_type="application/json")

    return _send


@pytest.fixture
def category(db):
    from inventory.models import Category

    return Category.objects.create(name="Coffee", icon="coffee")


@pytest.fixture
def product(db, category):
    """A tracked product with 10% tax and 20 units in stock."""
    from inventory.models import Product

    return Product.objects.create(
        name="Black coffee",
        sku="COFFEE-001",
        category=category,
        price=Decimal("25000"),
        tax_rate=Decimal("10.00"),
        stock=20,
    )


@pytest.fixture
def untracked_product(db, category):
    from inventory.models import Product

    return Product.objects.create(
        name="Iced tea",
        sku="TEA-001",
        category=category,
        price=Decimal("10000"),
        tax_rate=Decimal("0"),
        stock=0,
        track_inventory=False,
    )


@pytest.fixture
def employee(db):
    from staff.models import Employee

    return Employee.objects.create(employee_id="EMP-001", name="Lan Nguyen", role="cashier")


@pytest.fixture
def customer(db):
    from sales.models import Customer

    return Customer.objects.create(customer_id="KH-001", name="Minh Tran", phone="0901234567", tax_code="0101234567")


@pytest.fixture
def paid_order(db, product, employee, customer):
    """A paid tax-exclusive order: 2 x 25,000 less 5,000 discount, 10% tax."""
    from sales.services import place_order

    return place_order({
        "items": [{"product_id": product.id, "quantity": 2}],
        "discount": "5000",
        "employee_id": employee.id,
        "customer_id": customer.id,
        "status": "paid",
        "price_include_tax": False,
    })
