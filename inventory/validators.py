"""
Product form validation.

Shared by the product API, the bulk create endpoint and the spreadsheet
importer so that every path into the catalog applies the same rules.
"""

import re
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.core.exceptions import ValidationError

THOUSANDS_GROUPED = re.compile(r'^\d{1,3}(\.\d{3})+$')


def parse_amount(value):
    """
    Parse a money value into a Decimal.

    Strings such as ``"25.000"`` use dots as thousands separators and are
    read as 25000. Returns None for blanks and anything unparsable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return None
        return amount if amount.is_finite() else None
    text = str(value).strip().replace(' ', '')
    if not text:
        return None
    if THOUSANDS_GROUPED.match(text):
        text = text.replace('.', '')
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def parse_int(value, default=None):
    if value is None or value == '' or isinstance(value, bool):
        return default
    try:
        return int(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError):
        return None


def parse_bool(value, default=False):
    if value is None or value == '':
        return default
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def validate_price(value, field_label='Price'):
    """Return the price as a Decimal or raise ValidationError"""
    max_price = settings.POS_MAX_PRODUCT_PRICE
    amount = parse_amount(value)
    if amount is None or amount <= 0 or amount >= max_price:
        raise ValidationError(
            f'{field_label} must be a valid positive number and less than {max_price:,.0f}'
        )
    return amount


def validate_tax_rate(value):
    rate = parse_amount(value)
    if rate is None or rate < 0 or rate > 100:
        raise ValidationError('Tax rate must be between 0 and 100')
    return rate


def validate_product_data(data, partial=False):
    """
    Validate a product payload and return cleaned values.

    With ``partial=True`` only the keys present in ``data`` are checked, which
    is what the update endpoint needs. Raises ValidationError with a
    field -> messages mapping when anything is wrong.
    """
    errors = {}
    cleaned = {}

    def present(key):
        return not partial or key in data

    if present('name'):
        name = str(data.get('name') or '').strip()
        if not name:
            errors['name'] = ['Product name is required']
        cleaned['name'] = name

    if present('sku'):
        sku = str(data.get('sku') or '').strip().upper()
        if not sku:
            errors['sku'] = ['SKU is required']
        cleaned['sku'] = sku

    if present('price'):
        if data.get('price') in (None, ''):
            errors['price'] = ['Price is required']
        else:
            try:
                cleaned['price'] = validate_price(data.get('price'))
            except ValidationError as e:
                errors['price'] = e.messages

    if present('category_id'):
        category_id = parse_int(data.get('category_id'))
        if not category_id or category_id < 1:
            errors['category_id'] = ['Category is required']
        cleaned['category_id'] = category_id

    if present('tax_rate'):
        tax_rate = data.get('tax_rate')
        if tax_rate in (None, ''):
            errors['tax_rate'] = ['Tax rate is required']
        else:
            try:
                cleaned['tax_rate'] = validate_tax_rate(tax_rate)
            except ValidationError as e:
                errors['tax_rate'] = e.messages

    if 'stock' in data or not partial:
        stock = parse_int(data.get('stock'), default=0)
        if stock is None or stock < 0:
            errors['stock'] = ['Stock must be 0 or greater']
        cleaned['stock'] = stock

    if 'after_tax_price' in data:
        after_tax = data.get('after_tax_price')
        if after_tax in (None, ''):
            cleaned['after_tax_price'] = None
        else:
            try:
                cleaned['after_tax_price'] = validate_price(after_tax, 'After tax price')
            except ValidationError as e:
                errors['after_tax_price'] = e.messages

    if 'product_type' in data or not partial:
        product_type = parse_int(data.get('product_type'), default=1)
        if product_type not in (1, 2, 3):
            errors['product_type'] = ['Product type is required']
        cleaned['product_type'] = product_type

    if 'track_inventory' in data or not partial:
        cleaned['track_inventory'] = parse_bool(data.get('track_inventory'), default=True)
    if 'price_includes_tax' in data or not partial:
        cleaned['price_includes_tax'] = parse_bool(data.get('price_includes_tax'))
    if 'is_active' in data:
        cleaned['is_active'] = parse_bool(data.get('is_active'), default=True)
    if 'image_url' in data or not partial:
        cleaned['image_url'] = str(data.get('image_url') or '').strip() or None

    if errors:
        raise ValidationError(errors)
    return cleaned
