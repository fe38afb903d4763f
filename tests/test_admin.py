"""
Smoke tests for the admin registrations.
"""

import pytest


@pytest.mark.django_db
class TestAdminPages:
    @pytest.mark.parametrize(
        "url",
        [
            "/admin/profiles/storeprofile/",
            "/admin/profiles/printerconfig/",
            "/admin/profiles/invoicetemplate/",
            "/admin/inventory/category/",
            "/admin/inventory/product/",
            "/admin/inventory/stockmovement/",
            "/admin/staff/employee/",
            "/admin/staff/attendancerecord/",
            "/admin/sales/customer/",
            "/admin/sales/pointtransaction/",
            "/admin/sales/order/",
            "/admin/sales/invoice/",
        ],
    )
    def test_changelist_loads(self, admin_client, url):
        response = admin_client.get(url)

        assert response.status_code == 200

    def test_order_change_page(self, admin_client, paid_order):
        response = admin_client.get(f"/admin/sales/order/{paid_order.id}/change/")

        assert response.status_code == 200
        assert paid_order.order_number in response.content.decode()
