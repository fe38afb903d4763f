"""
Sales, inventory and attendance rollups.

Every function here works on plain record dicts in the shape produced by
``Order.as_record()``, ``OrderItem.as_record()``, ``Product.to_dict()``,
``Employee.to_dict()`` and ``AttendanceRecord.as_record()``, so the same
code runs over query results and over records posted by a client.

A record whose amounts or dates cannot be read is logged and skipped; the
rest of the batch is still aggregated.
"""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

logger = logging.getLogger(__name__)

ZERO = Decimal('0')
CENT = Decimal('0.01')

COMPLETED_STATUSES = ('paid', 'completed')
ACTIVE_STATUSES = ('pending', 'in_progress', 'confirmed', 'preparing', 'ready', 'served')
GUEST_KEY = 'guest'
UNKNOWN_EMPLOYEE_KEY = 'unknown'
DEFAULT_PEAK_HOUR = 12


class InvalidRecord(ValueError):
    """A record carries an amount or date that cannot be parsed"""


def to_decimal(value):
    """Read an amount; None and blank strings count as zero"""
    if value is None or value == '':
        return ZERO
    if isinstance(value, bool):
        raise InvalidRecord(f'Invalid amount: {value!r}')
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidRecord(f'Invalid amount: {value!r}')
    if not amount.is_finite():
        raise InvalidRecord(f'Invalid amount: {value!r}')
    return amount


def to_local_datetime(value):
    """
    Read a datetime, date or ISO string as an aware local datetime.

    Naive values (including bare ``YYYY-MM-DD`` dates) are taken to be in
    the store timezone.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value:
        try:
            parsed = parse_datetime(value)
            if parsed is None:
                day = parse_date(value)
                parsed = datetime(day.year, day.month, day.day) if day else None
        except ValueError:
            parsed = None
    else:
        parsed = None
    if parsed is None:
        raise InvalidRecord(f'Invalid date: {value!r}')
    if timezone.is_naive(parsed):
        return timezone.make_aware(parsed)
    return timezone.localtime(parsed)


def to_count(value, default=1):
    """Read a head count such as ``customer_count``; blank means ``default``"""
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        raise InvalidRecord(f'Invalid count: {value!r}')
    try:
        return int(str(value).strip())
    except ValueError:
        raise InvalidRecord(f'Invalid count: {value!r}')


def _is_true(value):
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes')
    return bool(value)


def _money(value):
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _valid(records, reader, label):
    """Yield ``(record, reader(record))`` for every record the reader accepts"""
    for record in records:
        try:
            yield record, reader(record)
        except InvalidRecord as e:
            logger.warning("Skipping %s %s: %s", label, record.get('id', '?'), e)


def order_amounts(record):
    """
    Money figures for one order record.

    Tax-inclusive orders store the discounted amount as subtotal, so the
    gross is rebuilt by adding the discount back. Tax-exclusive orders store
    the undiscounted amount and revenue is what is left after the discount.
    """
    subtotal = to_decimal(record.get('subtotal'))
    discount = to_decimal(record.get('discount'))
    tax = to_decimal(record.get('tax'))
    total = to_decimal(record.get('total'))

    if _is_true(record.get('price_include_tax')):
        gross = subtotal + discount
        revenue = subtotal
        total_money = total
    else:
        gross = subtotal
        revenue = max(ZERO, subtotal - discount)
        total_money = revenue + tax

    return {
        'gross': gross,
        'revenue': revenue,
        'total_money': total_money,
        'discount': discount,
        'tax': tax,
    }


def completed_orders(records):
    return [r for r in records if r.get('status') in COMPLETED_STATUSES]


def in_date_range(records, start, end, field='ordered_at'):
    """Records whose ``field`` falls on a local day between start and end, inclusive"""
    return [
        record for record, moment in _valid(records, lambda r: to_local_datetime(r.get(field)), 'order')
        if start <= moment.date() <= end
    ]


def _empty_sums():
    return {
        'order_count': 0,
        'gross': ZERO,
        'revenue': ZERO,
        'discount': ZERO,
        'tax': ZERO,
        'total_money': ZERO,
    }


def _add(row, amounts):
    row['order_count'] += 1
    for key in ('gross', 'revenue', 'discount', 'tax', 'total_money'):
        row[key] += amounts[key]


def daily_sales(records, date_field='ordered_at'):
    """One row per local day, newest day first"""
    def read(record):
        return (
            to_local_datetime(record.get(date_field)),
            order_amounts(record),
            to_count(record.get('customer_count')) or 1,
        )

    days = {}
    for record, (moment, amounts, customers) in _valid(records, read, 'order'):
        key = moment.strftime('%Y-%m-%d')
        row = days.setdefault(key, dict(date=key, customers=0, **_empty_sums()))
        _add(row, amounts)
        row['customers'] += customers

    return sorted(days.values(), key=lambda row: row['date'], reverse=True)


def employee_sales(records):
    """One row per employee with a breakdown of total money by payment method"""
    employees = {}
    for record, amounts in _valid(records, order_amounts, 'order'):
        key = record.get('employee_id') or UNKNOWN_EMPLOYEE_KEY
        row = employees.get(key)
        if row is None:
            row = employees[key] = dict(
                employee_id=key,
                employee_name=record.get('employee_name') or 'Unknown',
                payment_methods={},
                **_empty_sums()
            )
        _add(row, amounts)
        method = record.get('payment_method') or 'cash'
        row['payment_methods'][method] = row['payment_methods'].get(method, ZERO) + amounts['total_money']

    return sorted(employees.values(), key=lambda row: row['total_money'], reverse=True)


def customer_sales(records, status_filter=None, now=None):
    """
    One row per customer; walk-in orders without a registered customer are
    pooled under ``guest``.

    ``status_filter`` narrows the registered customers to ``active`` or
    ``inactive`` (ordered within ``POS_ACTIVE_CUSTOMER_DAYS``), ``vip``
    (spent at least ``POS_VIP_ORDER_TOTAL``) or ``new`` (registered).
    """
    def read(record):
        return to_local_datetime(record.get('ordered_at')), order_amounts(record)

    customers = {}
    for record, (moment, amounts) in _valid(records, read, 'order'):
        key = record.get('customer_id') or GUEST_KEY
        row = customers.get(key)
        if row is None:
            row = customers[key] = dict(
                customer_id=key,
                customer_name=record.get('customer_name') if key != GUEST_KEY else 'Walk-in Customer',
                last_order_at=moment,
                **_empty_sums()
            )
        _add(row, amounts)
        row['last_order_at'] = max(row['last_order_at'], moment)

    rows = list(customers.values())
    if status_filter:
        now = to_local_datetime(now or timezone.now())
        active_days = settings.POS_ACTIVE_CUSTOMER_DAYS
        vip_total = settings.POS_VIP_ORDER_TOTAL
        registered = [row for row in rows if row['customer_id'] != GUEST_KEY]

        if status_filter == 'active':
            rows = [row for row in registered if (now - row['last_order_at']).days <= active_days]
        elif status_filter == 'inactive':
            rows = [row for row in registered if (now - row['last_order_at']).days > active_days]
        elif status_filter == 'vip':
            rows = [row for row in registered if row['total_money'] >= vip_total]
        elif status_filter == 'new':
            rows = registered
        else:
            raise ValueError(f'Unknown customer filter: {status_filter}')

    for row in rows:
        row['last_order_at'] = row['last_order_at'].isoformat()
    return sorted(rows, key=lambda row: row['total_money'], reverse=True)


def product_sales(item_records, order_records):
    """One row per product over the items of completed orders, best revenue first"""
    completed_ids = {r.get('id') for r in completed_orders(order_records)}

    def read(item):
        quantity = to_decimal(item.get('quantity'))
        gross = to_decimal(item.get('unit_price')) * quantity
        discount = to_decimal(item.get('discount'))
        return {
            'quantity': quantity,
            'gross': gross,
            'discount': discount,
            'revenue': max(ZERO, gross - discount),
            'tax': to_decimal(item.get('tax')),
        }

    products = {}
    items = [item for item in item_records if item.get('order_id') in completed_ids]
    for item, amounts in _valid(items, read, 'order item'):
        key = item.get('product_id')
        row = products.get(key)
        if row is None:
            row = products[key] = {
                'product_id': key,
                'product_name': item.get('product_name'),
                'category_id': item.get('category_id'),
                'quantity': ZERO,
                'gross': ZERO,
                'discount': ZERO,
                'revenue': ZERO,
                'tax': ZERO,
                'orders': set(),
            }
        for field in ('quantity', 'gross', 'discount', 'revenue', 'tax'):
            row[field] += amounts[field]
        row['orders'].add(item.get('order_id'))

    rows = []
    for row in products.values():
        row['order_count'] = len(row.pop('orders'))
        rows.append(row)
    return sorted(rows, key=lambda row: row['revenue'], reverse=True)


def payment_method_sales(records):
    methods = {}
    for record, amounts in _valid(records, order_amounts, 'order'):
        key = record.get('payment_method') or 'cash'
        row = methods.setdefault(key, dict(payment_method=key, **_empty_sums()))
        _add(row, amounts)
    return sorted(methods.values(), key=lambda row: row['total_money'], reverse=True)


def sales_channel_sales(records):
    """Dine-in (order has a table) against takeaway"""
    channels = {
        channel: {
            'channel': channel,
            'order_count': 0,
            'completed_count': 0,
            'cancelled_count': 0,
            'revenue': ZERO,
        }
        for channel in ('dine_in', 'takeaway')
    }
    for record, subtotal in _valid(records, lambda r: to_decimal(r.get('subtotal')), 'order'):
        row = channels['dine_in' if record.get('table_id') else 'takeaway']
        row['order_count'] += 1
        if record.get('status') in COMPLETED_STATUSES:
            row['completed_count'] += 1
            row['revenue'] += subtotal
        elif record.get('status') == 'cancelled':
            row['cancelled_count'] += 1
    return list(channels.values())


def hourly_sales(records, date_field='ordered_at'):
    """Orders and money for each hour of the day, 0 to 23"""
    hours = [dict(hour=hour, **_empty_sums()) for hour in range(24)]

    def read(record):
        return to_local_datetime(record.get(date_field)), order_amounts(record)

    for record, (moment, amounts) in _valid(records, read, 'order'):
        _add(hours[moment.hour], amounts)
    return hours


def table_sales(records, item_records, days=1, date_field='ordered_at'):
    """
    One row per dining table over completed dine-in orders.

    ``days`` is the length of the reporting period and turns the order count
    into a daily turnover rate. Rows are sorted by total money, busiest
    table first, then by table id.
    """
    completed = [r for r in completed_orders(records) if r.get('table_id')]
    order_ids = {r.get('id') for r in completed}

    items_per_order = {}
    items = [item for item in item_records if item.get('order_id') in order_ids]
    for item, quantity in _valid(items, lambda i: to_decimal(i.get('quantity')), 'order item'):
        key = item.get('order_id')
        items_per_order[key] = items_per_order.get(key, ZERO) + quantity

    def read(record):
        return (
            to_local_datetime(record.get(date_field)),
            order_amounts(record),
            to_count(record.get('customer_count')) or 1,
        )

    tables = {}
    for record, (moment, amounts, customers) in _valid(completed, read, 'order'):
        key = record['table_id']
        row = tables.get(key)
        if row is None:
            row = tables[key] = dict(table_id=key, customers=0, items_sold=ZERO, hours={}, **_empty_sums())
        _add(row, amounts)
        row['customers'] += customers
        row['items_sold'] += items_per_order.get(record.get('id'), ZERO)
        row['hours'][moment.hour] = row['hours'].get(moment.hour, 0) + 1

    rows = []
    for row in tables.values():
        hours = row.pop('hours')
        row['average_order_value'] = _money(row['total_money'] / row['order_count'])
        row['turnover_rate'] = _money(Decimal(row['order_count']) / max(days, 1))
        row['peak_hour'] = min(hours, key=lambda hour: (-hours[hour], hour))
        rows.append(row)
    return sorted(rows, key=lambda row: (-row['total_money'], row['table_id']))


def _customer_key(record):
    if record.get('customer_id'):
        return ('customer', record['customer_id'])
    name = (record.get('customer_name') or '').strip()
    if name:
        return ('name', name)
    return ('order', record.get('id'))


def dashboard_stats(records, start, end, date_field='ordered_at'):
    """Headline figures for the orders placed between start and end"""
    records = in_date_range(records, start, end, date_field)
    completed = completed_orders(records)

    revenue = ZERO
    counted = []
    for record, subtotal in _valid(completed, lambda r: to_decimal(r.get('subtotal')), 'order'):
        revenue += subtotal
        counted.append(record)

    order_count = len(counted)
    days = (end - start).days + 1
    hours = hourly_sales(counted, date_field)
    busiest = max(hours, key=lambda row: row['order_count'])

    return {
        'start_date': start.isoformat(),
        'end_date': end.isoformat(),
        'period_revenue': revenue,
        'order_count': order_count,
        'unique_customers': len({_customer_key(r) for r in counted}),
        'daily_average_revenue': _money(revenue / days) if days > 0 else ZERO,
        'average_order_value': _money(revenue / order_count) if order_count else ZERO,
        'active_orders': sum(1 for r in records if r.get('status') in ACTIVE_STATUSES),
        'cancelled_orders': sum(1 for r in records if r.get('status') == 'cancelled'),
        'peak_hour': busiest['hour'] if busiest['order_count'] else DEFAULT_PEAK_HOUR,
    }


def inventory_summary(products):
    """Stock value per product, low stock flags and totals"""
    threshold = settings.POS_LOW_STOCK_THRESHOLD

    def read(product):
        return to_decimal(product.get('price')), int(to_decimal(product.get('stock')))

    rows = []
    for product, (price, stock) in _valid(products, read, 'product'):
        tracked = product.get('track_inventory', True)
        rows.append({
            'product_id': product.get('id'),
            'name': product.get('name'),
            'sku': product.get('sku'),
            'category_name': product.get('category_name'),
            'price': price,
            'stock': stock,
            'stock_value': price * stock,
            'low_stock': bool(tracked) and stock < threshold,
            'out_of_stock': bool(tracked) and stock <= 0,
        })

    rows.sort(key=lambda row: (row['stock'], row['name'] or ''))
    return {
        'products': rows,
        'product_count': len(rows),
        'total_stock': sum(row['stock'] for row in rows),
        'total_value': sum((row['stock_value'] for row in rows), ZERO),
        'low_stock_count': sum(1 for row in rows if row['low_stock']),
        'out_of_stock_count': sum(1 for row in rows if row['out_of_stock']),
    }


def menu_analysis(item_records, order_records, products, top=5):
    """Category and product performance of the menu"""
    catalog = {p.get('id'): p for p in products}
    product_rows = product_sales(item_records, order_records)

    categories = {}
    for row in product_rows:
        product = catalog.get(row['product_id'], {})
        category_id = product.get('category_id', row.get('category_id'))
        category = categories.get(category_id)
        if category is None:
            category = categories[category_id] = {
                'category_id': category_id,
                'category_name': product.get('category_name') or 'Uncategorized',
                'total_quantity': ZERO,
                'total_revenue': ZERO,
                'product_count': 0,
            }
        category['total_quantity'] += row['quantity']
        category['total_revenue'] += row['revenue']
        category['product_count'] += 1

    product_stats = [
        {
            'product_id': row['product_id'],
            'product_name': row['product_name'],
            'category_id': catalog.get(row['product_id'], {}).get('category_id', row.get('category_id')),
            'total_quantity': row['quantity'],
            'total_revenue': row['revenue'],
            'order_count': row['order_count'],
        }
        for row in product_rows
    ]

    return {
        'total_revenue': sum((row['total_revenue'] for row in product_stats), ZERO),
        'total_quantity': sum((row['total_quantity'] for row in product_stats), ZERO),
        'category_stats': sorted(categories.values(), key=lambda row: row['total_revenue'], reverse=True),
        'product_stats': product_stats,
        'top_selling_products': sorted(product_stats, key=lambda row: row['total_quantity'], reverse=True)[:top],
        'top_revenue_products': product_stats[:top],
    }


def attendance_stats(records, employees, month):
    """
    Monthly attendance totals and one row per employee.

    ``month`` is ``YYYY-MM``; records clocked in during other months are
    ignored.
    """
    def read(record):
        return (
            to_local_datetime(record.get('clock_in')),
            to_decimal(record.get('total_hours')),
            to_decimal(record.get('overtime')),
        )

    month_records = [
        (record, values) for record, values in _valid(records, read, 'attendance record')
        if values[0].strftime('%Y-%m') == month
    ]

    working_days = len({values[0].date() for _, values in month_records})
    total_attendance = len(month_records)
    total_hours = sum((values[1] for _, values in month_records), ZERO)
    total_overtime = sum((values[2] for _, values in month_records), ZERO)
    employee_count = len(employees)

    summary = {
        'month': month,
        'total_working_days': working_days,
        'total_employees': employee_count,
        'total_attendance': total_attendance,
        'total_working_hours': total_hours,
        'total_overtime': total_overtime,
        'average_working_hours': _money(total_hours / total_attendance) if total_attendance else ZERO,
        'attendance_rate': (
            _money(Decimal(total_attendance * 100) / (employee_count * working_days))
            if working_days and employee_count else ZERO
        ),
    }

    rows = []
    for employee in employees:
        own = [(r, v) for r, v in month_records if r.get('employee_id') == employee.get('id')]
        absent = sum(1 for r, _ in own if r.get('status') == 'absent')
        rows.append({
            'employee_id': employee.get('id'),
            'employee_code': employee.get('employee_id'),
            'employee_name': employee.get('name'),
            'total_days': len(own),
            'total_hours': sum((v[1] for _, v in own), ZERO),
            'overtime_hours': sum((v[2] for _, v in own), ZERO),
            'late_count': sum(1 for r, _ in own if r.get('status') == 'late'),
            'absent_count': absent,
            'attendance_rate': _money(Decimal((len(own) - absent) * 100) / len(own)) if own else ZERO,
        })

    return {'summary': summary, 'employees': rows}
