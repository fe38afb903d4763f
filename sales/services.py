import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from inventory.models import Product
from inventory.validators import parse_amount, parse_bool, parse_int
from profiles.models import StoreProfile
from staff.models import Employee
from .models import Customer, Order, OrderItem, PointTransaction

logger = logging.getLogger(__name__)

# Statuses an order may still move out of
OPEN_STATUSES = {'pending', 'in_progress', 'confirmed', 'preparing', 'ready', 'served'}
PAID_STATUSES = {'paid', 'completed'}

CUSTOMER_CODE_PREFIX = 'CUST'


def generate_order_number(now=None):
    """Daily sequence such as ORD-20240115-0003"""
    now = timezone.localtime(now)
    prefix = f"ORD-{now:%Y%m%d}-"
    sequence = Order.objects.filter(order_number__startswith=prefix).count() + 1
    while Order.objects.filter(order_number=f"{prefix}{sequence:04d}").exists():
        sequence += 1
    return f"{prefix}{sequence:04d}"


def _optional(model, pk, field):
    if pk in (None, ''):
        return None
    try:
        return model.objects.get(pk=pk)
    except (model.DoesNotExist, ValueError, TypeError):
        raise ValidationError({field: [f'{model._meta.verbose_name} {pk} does not exist']})


def _is_choice(value, choices):
    return isinstance(value, str) and value in dict(choices)


def _clean_item(item_data):
    if not isinstance(item_data, dict):
        raise ValidationError({'items': ['Each item must be an object']})
    product = _optional(Product, item_data.get('product_id'), 'items')
    if product is None:
        raise ValidationError({'items': ['Each item needs a product_id']})
    if not product.is_active:
        raise ValidationError({'items': [f'{product.name} is not available for sale']})

    quantity = parse_int(item_data.get('quantity'), default=1)
    if not quantity or quantity < 1:
        raise ValidationError({'items': [f'Invalid quantity for {product.name}']})

    unit_price = product.price
    if item_data.get('unit_price') not in (None, ''):
        unit_price = parse_amount(item_data['unit_price'])
        if unit_price is None or unit_price < 0:
            raise ValidationError({'items': [f'Invalid unit price for {product.name}']})

    discount = parse_amount(item_data.get('discount', 0)) or 0
    return {
        'product': product,
        'product_name': product.name,
        'quantity': quantity,
        'unit_price': unit_price,
        'tax_rate': product.tax_rate,
        'discount': discount,
        'notes': item_data.get('notes') or None,
    }


def place_order(data):
    """
    Create an order with its items and take the sold quantities out of stock.

    Everything happens in one transaction: a single unavailable line rolls
    back the whole order.
    """
    items = data.get('items') or []
    if not isinstance(items, list) or not items:
        raise ValidationError({'items': ['No items in cart']})

    status = data.get('status', 'pending')
    if not _is_choice(status, Order.STATUS_CHOICES) or status == 'cancelled':
        raise ValidationError({'status': [f'Invalid status: {status}']})
    payment_method = data.get('payment_method', 'cash')
    if not _is_choice(payment_method, Order.PAYMENT_METHODS):
        raise ValidationError({'payment_method': [f'Unknown payment method: {payment_method}']})
    discount = parse_amount(data.get('discount', 0))
    if discount is None or discount < 0:
        raise ValidationError({'discount': ['Discount must be 0 or greater']})

    profile = StoreProfile.get_store_profile()
    price_include_tax = parse_bool(data.get('price_include_tax'), default=profile.price_include_tax)

    with transaction.atomic():
        employee = _optional(Employee, data.get('employee_id'), 'employee_id')
        customer = _optional(Customer, data.get('customer_id'), 'customer_id')
        cleaned_items = [_clean_item(item) for item in items]

        # Lock tracked products and check the combined quantity per product
        wanted = {}
        for item in cleaned_items:
            wanted[item['product'].pk] = wanted.get(item['product'].pk, 0) + item['quantity']
        locked = Product.objects.select_for_update().in_bulk(list(wanted))
        for product_id, quantity in wanted.items():
            product = locked[product_id]
            if not product.can_sell(quantity):
                raise ValidationError({'items': [
                    f'Insufficient stock for {product.name}. Available: {product.stock}'
                ]})

        now = timezone.now()
        order = Order.objects.create(
            order_number=data.get('order_number') or generate_order_number(now),
            table_id=parse_int(data.get('table_id')),
            employee=employee,
            customer=customer,
            customer_name=str(data.get('customer_name') or '').strip() or None,
            customer_count=parse_int(data.get('customer_count'), default=1) or 1,
            status=status,
            discount=discount,
            price_include_tax=price_include_tax,
            payment_method=payment_method,
            sales_channel=data.get('sales_channel') or 'pos',
            notes=data.get('notes') or None,
            ordered_at=now,
            paid_at=now if status in PAID_STATUSES else None,
        )
        for item in cleaned_items:
            OrderItem.objects.create(order=order, **item)
            locked[item['product'].pk].adjust_stock(
                -item['quantity'],
                reason='sale',
                reference=f"Order {order.order_number}"
            )
        order.recalculate_totals()

    logger.info("Order %s placed: %s items, total %s", order.order_number, len(cleaned_items), order.total)
    return order


def update_order(order, data):
    """Move an order through its lifecycle; cancelling returns stock"""
    status = data.get('status')
    if status is not None:
        if not _is_choice(status, Order.STATUS_CHOICES):
            raise ValidationError({'status': [f'Invalid status: {status}']})
        if order.status == 'cancelled' and status != 'cancelled':
            raise ValidationError({'status': ValidationError('Cancelled orders cannot be reopened', code='conflict')})

    payment_method = data.get('payment_method')
    if payment_method is not None and not _is_choice(payment_method, Order.PAYMENT_METHODS):
        raise ValidationError({'payment_method': [f'Unknown payment method: {payment_method}']})

    with transaction.atomic():
        if status == 'cancelled' and order.status != 'cancelled':
            order.restock_items()
            logger.info("Order %s cancelled, stock returned", order.order_number)
        if status is not None:
            if status in PAID_STATUSES and order.paid_at is None:
                order.paid_at = timezone.now()
            order.status = status
        if payment_method is not None:
            order.payment_method = payment_method
        if 'table_id' in data:
            order.table_id = parse_int(data.get('table_id'))
        if 'notes' in data:
            order.notes = data.get('notes') or None
        order.save()
    return order


def next_customer_code():
    """Next free code in the CUST001, CUST002, ... sequence"""
    codes = Customer.objects.filter(customer_id__startswith=CUSTOMER_CODE_PREFIX).values_list('customer_id', flat=True)
    numbers = [
        int(code[len(CUSTOMER_CODE_PREFIX):]) for code in codes
        if code[len(CUSTOMER_CODE_PREFIX):].isdigit()
    ]
    return f"{CUSTOMER_CODE_PREFIX}{max(numbers, default=0) + 1:03d}"


def _locked_customer(pk):
    if pk in (None, ''):
        raise ValidationError({'customer_id': ['customer_id is required']})
    try:
        return Customer.objects.select_for_update().get(pk=pk)
    except (Customer.DoesNotExist, ValueError, TypeError):
        raise ValidationError({'customer_id': [f'Customer {pk} does not exist']})


def adjust_points(data):
    """Add or take points from a customer with a reason; the balance never goes below zero"""
    points = parse_int(data.get('points'))
    if not points:
        raise ValidationError({'points': ['Points must be a non-zero whole number']})
    transaction_type = data.get('type', 'adjusted')
    if not _is_choice(transaction_type, PointTransaction.TRANSACTION_TYPES):
        raise ValidationError({'type': [f'Unknown point transaction type: {transaction_type}']})
    description = str(data.get('description') or '').strip()
    if not description:
        raise ValidationError({'description': ['A reason is required']})

    with transaction.atomic():
        customer = _locked_customer(data.get('customer_id'))
        if customer.points + points < 0:
            raise ValidationError({'points': ValidationError(
                f'Insufficient points. Available: {customer.points}', code='conflict'
            )})
        entry = customer.adjust_points(points, transaction_type, description)

    logger.info("Points %+d for customer %s (%s)", points, customer.name, transaction_type)
    return entry


def redeem_points(data):
    """Pay with points: takes ``points`` off the balance as a redemption"""
    points = parse_int(data.get('points'))
    if not points or points < 1:
        raise ValidationError({'points': ['Points must be at least 1']})

    with transaction.atomic():
        customer = _locked_customer(data.get('customer_id'))
        if points > customer.points:
            raise ValidationError({'points': ValidationError(
                f'Insufficient points. Available: {customer.points}', code='conflict'
            )})
        entry = customer.adjust_points(
            -points, 'redeemed', str(data.get('description') or '').strip() or 'Points payment'
        )

    logger.info("Customer %s redeemed %d points", customer.name, points)
    return entry


def save_customer(customer, data):
    """Create or update a customer from request data; only the keys present are applied"""
    creating = customer.pk is None
    if creating or 'name' in data:
        name = str(data.get('name') or '').strip()
        if not name:
            raise ValidationError({'name': ['Customer name is required']})
        customer.name = name
    if 'customer_id' in data:
        code = str(data.get('customer_id') or '').strip() or None
        if code and Customer.objects.filter(customer_id=code).exclude(pk=customer.pk).exists():
            raise ValidationError({'customer_id': ValidationError(
                f'Customer code "{code}" already exists', code='conflict'
            )})
        customer.customer_id = code
    if 'membership_level' in data or creating:
        level = data.get('membership_level', 'silver')
        if not _is_choice(level, Customer.MEMBERSHIP_LEVELS):
            raise ValidationError({'membership_level': [f'Unknown membership level: {level}']})
        customer.membership_level = level
    for field in ('phone', 'email', 'address', 'tax_code'):
        if field in data:
            setattr(customer, field, str(data.get(field) or '').strip() or None)

    customer.full_clean(exclude=['points'])
    customer.save()
    return customer
