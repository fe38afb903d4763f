"""
Tests for product Excel import and export.
"""

import io
from decimal import Decimal

import openpyxl
import pytest

from inventory.spreadsheets import (
    EXPORT_HEADERS,
    IMPORT_HEADERS,
    SpreadsheetError,
    build_import_error_report,
    build_import_template,
    build_product_export,
    read_import_rows,
    workbook_bytes,
)


def upload(rows, headers=IMPORT_HEADERS):
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.append(headers)
    for row in rows:
        ws.append(row)
    return io.BytesIO(workbook_bytes(wb))


class TestImportTemplate:
    def test_template_has_header_and_samples(self):
        wb = build_import_template()
        ws = wb.active

        assert ws.title == "Template"
        assert [c.value for c in ws[1]] == IMPORT_HEADERS
        assert ws[1][0].font.bold
        assert ws.max_row == 3

    def test_template_rows_are_importable(self):
        rows, errors = read_import_rows(io.BytesIO(workbook_bytes(build_import_template())))

        assert errors == []
        assert [row["sku"] for row in rows] == ["COFFEE-001", "FOOD-001"]


class TestReadImportRows:
    def test_valid_row(self):
        rows, errors = read_import_rows(upload([["Latte", "latte-01", "35.000", "8", 12, 3, "http://img/latte.png"]]))

        assert errors == []
        assert rows == [{
            "name": "Latte",
            "sku": "LATTE-01",
            "price": "35000",
            "tax_rate": "8",
            "stock": 12,
            "category_id": 3,
            "image_url": "http://img/latte.png",
        }]

    def test_blank_rows_are_ignored(self):
        rows, errors = read_import_rows(upload([
            [None, None, None, None, None, None, None],
            ["Latte", "L-01", "35000", "8", 1, 1, None],
        ]))

        assert len(rows) == 1
        assert errors == []

    def test_missing_information(self):
        rows, errors = read_import_rows(upload([["Latte", "", "35000", "8", 1, 1, None]]))

        assert rows == []
        assert errors == ["Row 2: missing required information"]

    def test_blank_tax_defaults_to_eight_percent(self):
        rows, errors = read_import_rows(upload([["Latte", "L-01", "35000", None, 5, 1, None]]))

        assert errors == []
        assert rows[0]["tax_rate"] == "8.00"

    def test_workbook_is_closed_when_a_row_fails(self, monkeypatch):
        class BrokenSheet:
            def iter_rows(self, **kwargs):
                yield ("Latte", "L-01", "35000", "8", 1, 1, None)
                raise OSError("truncated archive")

        class Workbook:
            closed = False
            worksheets = [BrokenSheet()]

            def close(self):
                self.closed = True

        wb = Workbook()
        monkeypatch.setattr(openpyxl, "load_workbook", lambda *args, **kwargs: wb)

        with pytest.raises(OSError):
            read_import_rows(io.BytesIO(b""))

        assert wb.closed is True

    def test_invalid_values_are_reported_with_row_number(self):
        rows, errors = read_import_rows(upload([
            ["Latte", "L-01", "35000", "8", 1, 1, None],
            ["Mocha", "M-01", "abc", "8", 1, 1, None],
            ["Tea", "T-01", "15000", "8", 1, "x", None],
            ["Cake", "K-01", "15000", "150", 1, 1, None],
        ]))

        assert [row["sku"] for row in rows] == ["L-01"]
        assert errors == [
            "Row 3: invalid price",
            "Row 4: invalid category ID",
            "Row 5: invalid tax rate",
        ]

    def test_duplicate_sku_in_file(self):
        rows, errors = read_import_rows(upload([
            ["Latte", "L-01", "35000", "8", 1, 1, None],
            ["Latte 2", "l-01", "36000", "8", 1, 1, None],
        ]))

        assert len(rows) == 1
        assert errors == ['Row 3: SKU "L-01" is duplicated in the file']

    def test_row_limit(self, settings):
        settings.POS_IMPORT_MAX_ROWS = 2
        rows, errors = read_import_rows(upload([
            [f"Item {n}", f"SKU-{n}", "1000", "8", 1, 1, None] for n in range(4)
        ]))

        assert len(rows) == 2
        assert errors == ["Row 4: import is limited to 2 rows"]

    def test_unreadable_file(self):
        with pytest.raises(SpreadsheetError):
            read_import_rows(io.BytesIO(b"this is not a workbook"))


@pytest.mark.django_db
class TestExports:
    def test_product_export(self, product):
        wb = openpyxl.load_workbook(io.BytesIO(workbook_bytes(build_product_export([product]))))
        ws = wb.active

        assert ws.title == "Products"
        assert [c.value for c in ws[1]] == EXPORT_HEADERS
        assert [c.value for c in ws[2]][:7] == [1, "Black coffee", "COFFEE-001", "Coffee", 25000, 10, 20]

    def test_error_report_lists_failed_rows_only(self):
        results = [
            {"success": True, "data": {"name": "Ok", "sku": "OK-1"}},
            {"success": False, "data": {"name": "Bad", "sku": "BAD-1", "price": Decimal("0")},
             "error": "Price must be a valid positive number and less than 100,000,000"},
        ]

        ws = build_import_error_report(results).active

        assert ws.title == "Import errors"
        assert ws.max_row == 2
        assert ws.cell(row=2, column=2).value == "BAD-1"
        assert ws.cell(row=2, column=8).value.startswith("Price must be")
