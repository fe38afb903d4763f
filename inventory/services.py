import logging

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from .models import Category, Product
from .validators import validate_product_data

logger = logging.getLogger(__name__)


def _resolve_category(category_id):
    try:
        return Category.objects.get(pk=category_id)
    except Category.DoesNotExist:
        raise ValidationError({'category_id': [f'Category {category_id} does not exist']})


def _check_sku_free(sku, exclude_pk=None):
    existing = Product.objects.filter(sku=sku)
    if exclude_pk is not None:
        existing = existing.exclude(pk=exclude_pk)
    if existing.exists():
        raise ValidationError({'sku': ValidationError(f'SKU "{sku}" already exists', code='conflict')})


def create_product(data):
    """Validate a payload and create the product"""
    cleaned = validate_product_data(data)
    category = _resolve_category(cleaned.pop('category_id'))
    _check_sku_free(cleaned['sku'])
    try:
        with transaction.atomic():
            return Product.objects.create(category=category, **cleaned)
    except IntegrityError:
        # Lost a race against a concurrent insert of the same SKU
        raise ValidationError({'sku': ValidationError(f'SKU "{cleaned["sku"]}" already exists', code='conflict')})


def update_product(product, data):
    """Apply a partial payload to an existing product"""
    cleaned = validate_product_data(data, partial=True)
    if 'category_id' in cleaned:
        product.category = _resolve_category(cleaned.pop('category_id'))
    if 'sku' in cleaned:
        _check_sku_free(cleaned['sku'], exclude_pk=product.pk)
    for field, value in cleaned.items():
        setattr(product, field, value)
    product.save()
    return product


def _first_message(exc):
    if hasattr(exc, 'error_dict'):
        return next(iter(exc.message_dict.values()))[0]
    return exc.messages[0]


def bulk_create_products(rows):
    """
    Create products row by row.

    Each row is created in its own savepoint so a bad row does not undo the
    good ones. Returns a summary with one result per input row.
    """
    results = []
    success = 0

    for row in rows:
        try:
            with transaction.atomic():
                product = create_product(row)
        except ValidationError as e:
            results.append({'success': False, 'data': row, 'error': _first_message(e)})
        else:
            success += 1
            results.append({'success': True, 'data': row, 'product': product.to_dict()})

    errors = len(results) - success
    logger.info("Bulk product import: %d created, %d failed", success, errors)
    return {
        'success': success,
        'errors': errors,
        'results': results,
        'message': f'{success} products imported, {errors} failed',
    }
