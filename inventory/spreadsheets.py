"""
Excel import and export for the product catalog.
"""

import io
import logging

import openpyxl
from django.conf import settings
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from .validators import parse_amount, parse_int

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

IMPORT_HEADERS = ['Product name', 'SKU', 'Price', 'Tax %', 'Stock', 'Category ID', 'Image (URL)']
IMPORT_WIDTHS = [20, 15, 10, 10, 10, 12, 30]
EXPORT_HEADERS = ['No.', 'Product name', 'SKU', 'Category', 'Price', 'Tax %', 'Stock', 'Image (URL)']
EXPORT_WIDTHS = [5, 25, 15, 15, 12, 10, 10, 30]

DEFAULT_IMPORT_TAX_RATE = '8.00'


class SpreadsheetError(Exception):
    """The uploaded file could not be read as a workbook"""


def _style_header(ws, headers, widths, fill_color=None, row=1):
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=row, column=col, value=header)
        cell.font = Font(bold=True, color='FFFFFF' if fill_color else None)
        cell.alignment = Alignment(horizontal='center')
        if fill_color:
            cell.fill = PatternFill(start_color=fill_color, end_color=fill_color, fill_type='solid')
    for col, width in enumerate(widths, 1):
        ws.column_dimensions[get_column_letter(col)].width = width


def workbook_bytes(wb):
    """Serialize a workbook to bytes"""
    buffer = io.BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer.getvalue()


def build_import_template():
    """Workbook with the import header and two sample rows"""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Template"
    _style_header(ws, IMPORT_HEADERS, IMPORT_WIDTHS)
    ws.append(['Black coffee', 'COFFEE-001', '25000', '8.00', 100, 1, ''])
    ws.append(['Baguette', 'FOOD-001', '15000', '8.00', 50, 2, ''])
    return wb


def _cell_text(value):
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def read_import_rows(file_obj):
    """
    Read product rows from the first sheet of an uploaded workbook.

    The header row is skipped. Returns ``(valid_rows, errors)`` where errors
    are human readable messages carrying the 1-based sheet row number.
    """
    try:
        wb = openpyxl.load_workbook(file_obj, read_only=True, data_only=True)
    except Exception as e:
        logger.warning("Cannot read import workbook: %s", e)
        raise SpreadsheetError('Cannot read file. Please upload a valid .xlsx workbook.')

    valid_rows = []
    errors = []
    seen_skus = set()
    max_rows = settings.POS_IMPORT_MAX_ROWS

    try:
        ws = wb.worksheets[0]
        for row_number, row in enumerate(ws.iter_rows(min_row=2, values_only=True), start=2):
            cells = [_cell_text(v) for v in list(row) + [None] * (7 - len(row))]
            if not any(cells):
                continue
            if len(valid_rows) + len(errors) >= max_rows:
                errors.append(f'Row {row_number}: import is limited to {max_rows} rows')
                break

            name, sku, price, tax_rate, stock, category_id, image_url = cells[:7]
            if not name or not sku or not price or not stock or not category_id:
                errors.append(f'Row {row_number}: missing required information')
                continue

            row_errors = []
            amount = parse_amount(price)
            if amount is None:
                row_errors.append(f'Row {row_number}: invalid price')
            category = parse_int(category_id) or 0
            if category <= 0:
                row_errors.append(f'Row {row_number}: invalid category ID')
            rate = parse_amount(tax_rate or DEFAULT_IMPORT_TAX_RATE)
            if rate is None or rate < 0 or rate > 100:
                row_errors.append(f'Row {row_number}: invalid tax rate')
            sku = sku.upper()
            if sku in seen_skus:
                row_errors.append(f'Row {row_number}: SKU "{sku}" is duplicated in the file')

            if row_errors:
                errors.extend(row_errors)
                continue

            seen_skus.add(sku)
            valid_rows.append({
                'name': name,
                'sku': sku,
                'price': str(amount),
                'tax_rate': str(rate),
                'stock': parse_int(stock, default=0) or 0,
                'category_id': category,
                'image_url': image_url,
            })
    finally:
        wb.close()

    logger.info("Read %d importable rows with %d errors", len(valid_rows), len(errors))
    return valid_rows, errors


def build_product_export(products):
    """Workbook listing products, one row per product"""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Products"
    _style_header(ws, EXPORT_HEADERS, EXPORT_WIDTHS, fill_color='059669')

    for index, product in enumerate(products, 1):
        ws.append([
            index,
            product.name,
            product.sku,
            product.category.name if product.category_id else '',
            float(product.price),
            float(product.tax_rate),
            product.stock,
            product.image_url or '',
        ])
    return wb


def build_import_error_report(results):
    """Workbook of failed import rows with the failure reason"""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Import errors"
    _style_header(ws, IMPORT_HEADERS + ['Error detail'], IMPORT_WIDTHS + [40], fill_color='DC2626')

    for result in results:
        if result.get('success') or not result.get('data'):
            continue
        data = result['data']
        ws.append([
            data.get('name', ''),
            data.get('sku', ''),
            str(data.get('price', '')),
            str(data.get('tax_rate', '')),
            data.get('stock', ''),
            data.get('category_id', ''),
            data.get('image_url', '') or '',
            result.get('error') or 'Unknown error',
        ])
    return wb
