"""
Tests for checkout, order lifecycle and invoicing.
"""

from decimal import Decimal

import pytest

from inventory.models import StockMovement
from profiles.models import InvoiceTemplate, StoreProfile
from sales.models import Customer, Invoice, Order, PointTransaction


@pytest.mark.django_db
class TestOrderTotals:
    def test_tax_exclusive_order(self, paid_order):
        assert paid_order.subtotal == Decimal("50000.00")
        assert paid_order.discount == Decimal("5000")
        assert paid_order.tax == Decimal("4500.00")
        assert paid_order.total == Decimal("49500.00")

    def test_tax_inclusive_order(self, product):
        from sales.services import place_order

        order = place_order({
            "items": [{"product_id": product.id, "quantity": 2, "unit_price": "55000"}],
            "discount": "0",
            "price_include_tax": True,
            "status": "paid",
        })

        # 110,000 already contains 10% tax
        assert order.subtotal == Decimal("110000.00")
        assert order.tax == Decimal("10000.00")
        assert order.total == Decimal("110000.00")

    def test_record_matches_report_shape(self, paid_order):
        record = paid_order.as_record()

        assert record["subtotal"] == "50000.00"
        assert record["price_include_tax"] is False
        assert record["employee_name"] == "Lan Nguyen"
        assert record["customer_name"] == "Minh Tran"
        assert record["paid_at"] is not None
        assert record["order_number"].startswith("ORD-")


@pytest.mark.django_db
class TestCheckout:
    def test_checkout_decrements_stock(self, post_json, product, untracked_product, employee):
        response = post_json("/api/orders", {
            "items": [
                {"product_id": product.id, "quantity": 3},
                {"product_id": untracked_product.id, "quantity": 2},
            ],
            "employee_id": employee.id,
            "table_id": 4,
        })

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "pending"
        assert len(body["items"]) == 2
        product.refresh_from_db()
        assert product.stock == 17
        movement = StockMovement.objects.get(product=product)
        assert movement.qty_change == -3
        assert movement.reason == "sale"

    def test_insufficient_stock_rolls_back(self, post_json, product):
        response = post_json("/api/orders", {
            "items": [
                {"product_id": product.id, "quantity": 15},
                {"product_id": product.id, "quantity": 10},
            ],
        })

        assert response.status_code == 400
        assert response.json()["error"] == "Insufficient stock for Black coffee. Available: 20"
        assert not Order.objects.exists()
        product.refresh_from_db()
        assert product.stock == 20

    def test_empty_cart(self, post_json):
        response = post_json("/api/orders", {"items": []})

        assert response.status_code == 400
        assert response.json()["error"] == "No items in cart"

    def test_unknown_product(self, post_json):
        response = post_json("/api/orders", {"items": [{"product_id": 999, "quantity": 1}]})

        assert response.status_code == 400

    def test_store_default_pricing_mode(self, post_json, product):
        profile = StoreProfile.get_store_profile()
        profile.price_include_tax = True
        profile.save()

        response = post_json("/api/orders", {"items": [{"product_id": product.id, "quantity": 1}]})

        assert response.json()["price_include_tax"] is True

    def test_order_numbers_are_unique(self, post_json, product):
        first = post_json("/api/orders", {"items": [{"product_id": product.id, "quantity": 1}]}).json()
        second = post_json("/api/orders", {"items": [{"product_id": product.id, "quantity": 1}]}).json()

        assert first["order_number"] != second["order_number"]


@pytest.mark.django_db
class TestOrderLifecycle:
    def test_mark_paid_sets_paid_at(self, post_json, product):
        order = post_json("/api/orders", {"items": [{"product_id": product.id, "quantity": 1}]}).json()

        response = post_json(f"/api/orders/{order['id']}", {"status": "paid", "payment_method": "momo"}, method="put")

        body = response.json()
        assert body["status"] == "paid"
        assert body["payment_method"] == "momo"
        assert body["paid_at"] is not None

    def test_cancel_returns_stock(self, post_json, paid_order, product):
        response = post_json(f"/api/orders/{paid_order.id}", {"status": "cancelled"}, method="put")

        assert response.status_code == 200
        product.refresh_from_db()
        assert product.stock == 20

    def test_cancelled_order_cannot_reopen(self, post_json, paid_order):
        post_json(f"/api/orders/{paid_order.id}", {"status": "cancelled"}, method="put")

        response = post_json(f"/api/orders/{paid_order.id}", {"status": "paid"}, method="put")

        assert response.status_code == 409

    def test_invalid_status(self, post_json, paid_order):
        response = post_json(f"/api/orders/{paid_order.id}", {"status": "eaten"}, method="put")

        assert response.status_code == 400

    def test_status_must_be_a_string(self, post_json, paid_order, product):
        update = post_json(f"/api/orders/{paid_order.id}", {"status": ["paid"]}, method="put")
        checkout = post_json("/api/orders", {
            "items": [{"product_id": product.id, "quantity": 1}],
            "status": ["paid"],
        })
        method = post_json(f"/api/orders/{paid_order.id}", {"payment_method": {"cash": 1}}, method="put")

        assert update.status_code == 400
        assert "status" in update.json()["errors"]
        assert checkout.status_code == 400
        assert method.status_code == 400
        assert Order.objects.count() == 1

    def test_status_filter(self, client, paid_order, post_json, product):
        post_json("/api/orders", {"items": [{"product_id": product.id, "quantity": 1}]})

        response = client.get("/api/orders", {"status": "paid"})

        assert [o["id"] for o in response.json()] == [paid_order.id]

    def test_date_range_endpoints(self, client, paid_order):
        orders = client.get("/api/orders/date-range/2000-01-01/2100-01-01").json()
        items = client.get(f"/api/order-items/{paid_order.id}").json()
        ranged_items = client.get("/api/order-items/2000-01-01/2100-01-01").json()
        earlier = client.get("/api/orders/date-range/2000-01-01/2000-01-31").json()

        assert [o["id"] for o in orders] == [paid_order.id]
        assert items[0]["quantity"] == 2
        assert ranged_items == items
        assert earlier == []

    def test_date_range_rejects_bad_dates(self, client):
        response = client.get("/api/orders/date-range/2024-13-01/2024-12-31")

        assert response.status_code == 400


@pytest.mark.django_db
class TestCustomers:
    def test_create_and_search(self, post_json, client):
        response = post_json("/api/customers", {"customer_id": "KH-9", "name": "Thu Ha", "phone": "0909"})
        assert response.status_code == 201

        found = client.get("/api/customers", {"search": "thu"}).json()
        assert [c["customer_id"] for c in found] == ["KH-9"]

    def test_duplicate_code(self, post_json, customer):
        response = post_json("/api/customers", {"customer_id": "KH-001", "name": "Someone"})

        assert response.status_code == 409

    def test_name_required(self, post_json):
        response = post_json("/api/customers", {"phone": "0909"})

        assert response.status_code == 400

    def test_next_id(self, client, customer):
        Customer.objects.create(customer_id="CUST007", name="An")
        Customer.objects.create(customer_id="CUST-OLD", name="Binh")

        response = client.get("/api/customers/next-id")

        assert response.json() == {"next_id": "CUST008"}

    def test_next_id_when_empty(self, client, db):
        assert client.get("/api/customers/next-id").json()["next_id"] == "CUST001"

    def test_update_customer(self, post_json, customer):
        response = post_json(f"/api/customers/{customer.id}", {
            "phone": "0988",
            "membership_level": "gold",
        }, method="put")

        assert response.status_code == 200
        customer.refresh_from_db()
        assert customer.phone == "0988"
        assert customer.membership_level == "gold"
        assert customer.name == "Minh Tran"

    def test_update_to_taken_code(self, post_json, customer):
        other = Customer.objects.create(customer_id="KH-002", name="An")

        response = post_json(f"/api/customers/{other.id}", {"customer_id": "KH-001"}, method="put")

        assert response.status_code == 409

    def test_delete_customer_keeps_orders(self, client, paid_order, customer):
        response = client.delete(f"/api/customers/{customer.id}")

        assert response.status_code == 200
        paid_order.refresh_from_db()
        assert paid_order.customer is None
        assert client.get(f"/api/customers/{customer.id}").status_code == 404


@pytest.mark.django_db
class TestCustomerPoints:
    def test_adjust_points_records_history(self, post_json, client, customer):
        response = post_json("/api/customers/adjust-points", {
            "customer_id": customer.id,
            "points": 150,
            "type": "earned",
            "description": "Birthday bonus",
        })

        assert response.status_code == 200
        assert response.json()["customer"]["points"] == 150
        history = client.get("/api/point-transactions", {"customer_id": customer.id}).json()
        assert [(h["points"], h["type"], h["balance_after"]) for h in history] == [(150, "earned", 150)]

    def test_adjust_needs_reason(self, post_json, customer):
        response = post_json("/api/customers/adjust-points", {"customer_id": customer.id, "points": 10})

        assert response.status_code == 400
        assert "description" in response.json()["errors"]

    def test_adjust_cannot_go_negative(self, post_json, customer):
        response = post_json("/api/customers/adjust-points", {
            "customer_id": customer.id,
            "points": -5,
            "type": "adjusted",
            "description": "Correction",
        })

        assert response.status_code == 409
        customer.refresh_from_db()
        assert customer.points == 0

    def test_redeem_points(self, post_json, customer):
        customer.adjust_points(100, "earned", "Opening balance")

        response = post_json("/api/customers/redeem-points", {"customer_id": customer.id, "points": 40})

        assert response.status_code == 200
        assert response.json()["transaction"]["points"] == -40
        customer.refresh_from_db()
        assert customer.points == 60
        assert PointTransaction.objects.filter(customer=customer, transaction_type="redeemed").count() == 1

    def test_redeem_more_than_balance(self, post_json, customer):
        customer.adjust_points(30, "earned", "Opening balance")

        response = post_json("/api/customers/redeem-points", {"customer_id": customer.id, "points": 31})

        assert response.status_code == 409
        assert response.json()["error"] == "Insufficient points. Available: 30"

    def test_unknown_customer(self, post_json, db):
        response = post_json("/api/customers/redeem-points", {"customer_id": 999, "points": 1})

        assert response.status_code == 400


@pytest.mark.django_db
class TestInvoices:
    def test_invoice_from_order(self, post_json, paid_order):
        InvoiceTemplate.objects.create(name="Main", template_number="1C25", symbol="TYY", is_default=True)

        response = post_json("/api/invoices", {"order_id": paid_order.id})

        assert response.status_code == 201
        body = response.json()
        assert body["invoice_number"] == "INV0001"
        assert body["trade_number"] == paid_order.order_number
        assert body["template_number"] == "1C25"
        assert body["symbol"] == "TYY"
        assert body["customer_name"] == "Minh Tran"
        assert body["customer_tax_code"] == "0101234567"
        assert body["subtotal"] == 45000.0
        assert body["tax"] == 4500.0
        assert body["total"] == 49500.0
        assert body["status"] == "draft"
        assert body["einvoice_status_name"] == "Not issued"

        line = Invoice.objects.get(pk=body["id"]).items.get()
        assert line.quantity == 2
        assert line.total == Decimal("45000.00")
        assert line.unit_price == Decimal("22500.00")

    def test_tax_inclusive_invoice_lines_exclude_tax(self, product):
        from sales.services import place_order

        order = place_order({
            "items": [{"product_id": product.id, "quantity": 1, "unit_price": "110000"}],
            "price_include_tax": True,
            "status": "paid",
        })

        invoice = Invoice.from_order(order)

        assert invoice.subtotal == Decimal("100000.00")
        assert invoice.items.get().total == Decimal("100000.00")

    def test_second_invoice_conflicts(self, post_json, paid_order):
        post_json("/api/invoices", {"order_id": paid_order.id})

        response = post_json("/api/invoices", {"order_id": paid_order.id})

        assert response.status_code == 409

    def test_invoice_detail_and_items(self, post_json, client, paid_order):
        invoice_id = post_json("/api/invoices", {"order_id": paid_order.id}).json()["id"]

        detail = client.get(f"/api/invoices/{invoice_id}").json()
        items = client.get(f"/api/invoice-items/{invoice_id}").json()

        assert detail["items"] == items
        assert items[0]["product_name"] == "Black coffee"
        assert items[0]["tax_rate"] == 10.0

    def test_missing_order(self, post_json):
        response = post_json("/api/invoices", {"order_id": 12345})

        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}
