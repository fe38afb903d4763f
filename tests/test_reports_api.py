"""
Tests for the report endpoints and their Excel exports.
"""

import io
from datetime import datetime

from django.utils import timezone

import openpyxl
import pytest

from inventory.spreadsheets import XLSX_CONTENT_TYPE
from profiles.models import StoreProfile
from sales.models import Order
from staff.models import AttendanceRecord


@pytest.mark.django_db
class TestReportData:
    def test_daily_sales_defaults_to_current_month(self, client, paid_order):
        response = client.get("/api/reports/daily-sales")

        assert response.status_code == 200
        rows = response.json()
        assert len(rows) == 1
        assert rows[0]["date"] == timezone.localdate().isoformat()
        assert rows[0]["gross"] == 50000.0
        assert rows[0]["revenue"] == 45000.0
        assert rows[0]["total_money"] == 49500.0

    def test_dashboard(self, client, paid_order, product, post_json):
        post_json("/api/orders", {"items": [{"product_id": product.id, "quantity": 1}]})

        stats = client.get("/api/reports/dashboard").json()

        assert stats["period_revenue"] == 50000.0
        assert stats["order_count"] == 1
        assert stats["active_orders"] == 1
        assert stats["unique_customers"] == 1

    def test_explicit_range_excludes_orders(self, client, paid_order):
        response = client.get("/api/reports/daily-sales", {"start_date": "2001-01-01", "end_date": "2001-01-31"})

        assert response.json() == []

    def test_invalid_dates(self, client):
        bad = client.get("/api/reports/daily-sales", {"start_date": "2024-02-30"})
        reversed_range = client.get(
            "/api/reports/daily-sales", {"start_date": "2024-02-10", "end_date": "2024-02-01"}
        )

        assert bad.status_code == 400
        assert bad.json()["error"] == "Invalid start_date: expected YYYY-MM-DD"
        assert reversed_range.status_code == 400

    def test_unknown_report(self, client):
        response = client.get("/api/reports/profit-forecast")

        assert response.status_code == 404

    def test_employee_and_product_sales(self, client, paid_order):
        employees = client.get("/api/reports/employee-sales").json()
        products = client.get("/api/reports/product-sales").json()

        assert employees[0]["employee_name"] == "Lan Nguyen"
        assert employees[0]["payment_methods"] == {"cash": 49500.0}
        assert products[0]["product_name"] == "Black coffee"
        assert products[0]["quantity"] == 2.0
        assert products[0]["order_count"] == 1

    def test_customer_filter(self, client, paid_order):
        vip = client.get("/api/reports/customer-sales", {"status": "vip"}).json()
        new = client.get("/api/reports/customer-sales", {"status": "new"}).json()
        bad = client.get("/api/reports/customer-sales", {"status": "bogus"})

        assert vip == []
        assert [row["customer_name"] for row in new] == ["Minh Tran"]
        assert bad.status_code == 400

    def test_sales_channels_and_hours(self, client, paid_order):
        channels = client.get("/api/reports/sales-channels").json()
        hours = client.get("/api/reports/hourly-sales").json()

        assert channels[1]["channel"] == "takeaway"
        assert channels[1]["completed_count"] == 1
        assert sum(row["order_count"] for row in hours) == 1

    def test_table_sales(self, client, paid_order, product, post_json):
        post_json("/api/orders", {
            "items": [{"product_id": product.id, "quantity": 3}],
            "table_id": 7,
            "customer_count": 2,
            "status": "paid",
            "price_include_tax": False,
        })

        rows = client.get("/api/reports/table-sales").json()

        assert len(rows) == 1
        assert rows[0]["table_id"] == 7
        assert rows[0]["customers"] == 2
        assert rows[0]["items_sold"] == 3.0
        assert rows[0]["total_money"] == 82500.0

    def test_inventory_and_menu(self, client, paid_order, untracked_product):
        inventory = client.get("/api/reports/inventory").json()
        menu = client.get("/api/reports/menu-analysis").json()

        assert inventory["product_count"] == 2
        assert inventory["total_stock"] == 18
        assert menu["category_stats"][0]["category_name"] == "Coffee"
        assert menu["total_quantity"] == 2.0

    def test_attendance(self, client, employee):
        AttendanceRecord.objects.create(
            employee=employee,
            clock_in=timezone.make_aware(datetime(2024, 3, 4, 8, 0)),
            total_hours="8.00",
            status="present",
        )

        result = client.get("/api/reports/attendance", {"month": "2024-03"}).json()

        assert result["summary"]["total_attendance"] == 1
        assert result["summary"]["attendance_rate"] == 100.0
        assert result["employees"][0]["total_hours"] == 8.0

    def test_branch_store_reports_by_update_time(self, client, paid_order):
        Order.objects.filter(pk=paid_order.pk).update(ordered_at=timezone.make_aware(datetime(2020, 1, 1, 9, 0)))

        assert client.get("/api/reports/daily-sales").json() == []

        profile = StoreProfile.get_store_profile()
        profile.store_code = "CH-001"
        profile.save()

        rows = client.get("/api/reports/daily-sales").json()
        assert len(rows) == 1
        assert rows[0]["date"] == timezone.localdate().isoformat()


@pytest.mark.django_db
class TestReportExport:
    def test_daily_sales_workbook(self, client, paid_order):
        response = client.get("/api/reports/daily-sales/export")

        assert response.status_code == 200
        assert response["Content-Type"] == XLSX_CONTENT_TYPE
        ws = openpyxl.load_workbook(io.BytesIO(response.content)).active
        assert ws.cell(row=1, column=1).value.startswith("Daily sales")
        assert ws.cell(row=3, column=1).value == "Date"
        assert ws.cell(row=3, column=1).font.bold
        assert ws.cell(row=4, column=1).value == timezone.localdate().isoformat()
        assert ws.cell(row=5, column=1).value == "Total"
        # Revenue column
        assert ws.cell(row=5, column=6).value == 45000

    def test_employee_export_flattens_payment_methods(self, client, paid_order):
        response = client.get("/api/reports/employee-sales/export")

        ws = openpyxl.load_workbook(io.BytesIO(response.content)).active
        assert ws.cell(row=4, column=8).value == "cash: 49500.0"

    def test_dashboard_has_no_export(self, client):
        response = client.get("/api/reports/dashboard/export")

        assert response.status_code == 404
