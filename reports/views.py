import calendar
import logging
from decimal import Decimal

from django.http import HttpResponse, JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from config.api import BadRequest, error_response, parse_date
from inventory.models import Product
from inventory.spreadsheets import XLSX_CONTENT_TYPE, workbook_bytes
from profiles.models import StoreProfile
from sales.models import Order, OrderItem
from staff.models import AttendanceRecord, Employee
from . import aggregation
from .exports import build_report_workbook

logger = logging.getLogger(__name__)


def _jsonable(value):
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def _date_range(request):
    """start_date / end_date query parameters, defaulting to the current month"""
    today = timezone.localdate()
    start = request.GET.get('start_date')
    end = request.GET.get('end_date')
    start_date = parse_date(start, 'start_date') if start else today.replace(day=1)
    end_date = parse_date(end, 'end_date') if end else today.replace(
        day=calendar.monthrange(today.year, today.month)[1]
    )
    if start_date > end_date:
        raise BadRequest('start_date must not be after end_date')
    return start_date, end_date


class ReportContext:
    """Records for one report request, loaded on first use"""

    def __init__(self, request, start, end):
        self.request = request
        self.start = start
        self.end = end
        self.date_field = 'updated_at' if StoreProfile.get_store_profile().reports_by_update_time else 'ordered_at'
        self._orders = None

    @property
    def orders(self):
        if self._orders is None:
            lookup = {
                f'{self.date_field}__date__gte': self.start,
                f'{self.date_field}__date__lte': self.end,
            }
            queryset = Order.objects.select_related('employee', 'customer').filter(**lookup)
            self._orders = aggregation.in_date_range(
                [order.as_record() for order in queryset], self.start, self.end, self.date_field
            )
        return self._orders

    @property
    def completed(self):
        return aggregation.completed_orders(self.orders)

    @property
    def items(self):
        order_ids = [record['id'] for record in self.orders]
        queryset = OrderItem.objects.select_related('product').filter(order_id__in=order_ids)
        return [item.as_record() for item in queryset]

    @property
    def products(self):
        return [product.to_dict() for product in Product.objects.select_related('category')]

    @property
    def month(self):
        return self.request.GET.get('month') or self.start.strftime('%Y-%m')


def _attendance(ctx):
    try:
        year, month = (int(part) for part in ctx.month.split('-'))
    except ValueError:
        raise BadRequest('Invalid month: expected YYYY-MM')
    records = AttendanceRecord.objects.filter(clock_in__year=year, clock_in__month=month)
    employees = Employee.objects.filter(is_active=True)
    return aggregation.attendance_stats(
        [r.as_record() for r in records], [e.to_dict() for e in employees], ctx.month
    )


def _customer_sales(ctx):
    status_filter = ctx.request.GET.get('status') or None
    try:
        return aggregation.customer_sales(ctx.completed, status_filter=status_filter)
    except ValueError as e:
        raise BadRequest(str(e))


SALES_COLUMNS = [
    ('Orders', 'order_count', True),
    ('Gross', 'gross', True),
    ('Discount', 'discount', True),
    ('Revenue', 'revenue', True),
    ('Tax', 'tax', True),
    ('Total', 'total_money', True),
]

# name -> (title, builder, rows for export, export columns)
REPORTS = {
    'dashboard': (
        'Dashboard',
        lambda ctx: aggregation.dashboard_stats(ctx.orders, ctx.start, ctx.end, ctx.date_field),
        None,
        None,
    ),
    'daily-sales': (
        'Daily sales',
        lambda ctx: aggregation.daily_sales(ctx.completed, ctx.date_field),
        lambda data: data,
        [('Date', 'date', False), ('Customers', 'customers', True)] + SALES_COLUMNS,
    ),
    'employee-sales': (
        'Employee sales',
        lambda ctx: aggregation.employee_sales(ctx.completed),
        lambda data: data,
        [('Employee', 'employee_name', False)] + SALES_COLUMNS + [('By payment method', 'payment_methods', False)],
    ),
    'customer-sales': (
        'Customer sales',
        _customer_sales,
        lambda data: data,
        [('Customer', 'customer_name', False), ('Customer ID', 'customer_id', False)] + SALES_COLUMNS
        + [('Last order', 'last_order_at', False)],
    ),
    'product-sales': (
        'Product sales',
        lambda ctx: aggregation.product_sales(ctx.items, ctx.orders),
        lambda data: data,
        [
            ('Product', 'product_name', False),
            ('Quantity', 'quantity', True),
            ('Gross', 'gross', True),
            ('Discount', 'discount', True),
            ('Revenue', 'revenue', True),
            ('Tax', 'tax', True),
            ('Orders', 'order_count', True),
        ],
    ),
    'payment-methods': (
        'Payment methods',
        lambda ctx: aggregation.payment_method_sales(ctx.completed),
        lambda data: data,
        [('Payment method', 'payment_method', False)] + SALES_COLUMNS,
    ),
    'sales-channels': (
        'Sales channels',
        lambda ctx: aggregation.sales_channel_sales(ctx.orders),
        lambda data: data,
        [
            ('Channel', 'channel', False),
            ('Orders', 'order_count', True),
            ('Completed', 'completed_count', True),
            ('Cancelled', 'cancelled_count', True),
            ('Revenue', 'revenue', True),
        ],
    ),
    'table-sales': (
        'Table sales',
        lambda ctx: aggregation.table_sales(ctx.completed, ctx.items, (ctx.end - ctx.start).days + 1, ctx.date_field),
        lambda data: data,
        [
            ('Table', 'table_id', False),
            ('Customers', 'customers', True),
            ('Items sold', 'items_sold', True),
        ] + SALES_COLUMNS + [
            ('Average order', 'average_order_value', False),
            ('Orders per day', 'turnover_rate', False),
            ('Peak hour', 'peak_hour', False),
        ],
    ),
    'hourly-sales': (
        'Hourly sales',
        lambda ctx: aggregation.hourly_sales(ctx.completed, ctx.date_field),
        lambda data: data,
        [('Hour', 'hour', False)] + SALES_COLUMNS,
    ),
    'inventory': (
        'Inventory',
        lambda ctx: aggregation.inventory_summary(ctx.products),
        lambda data: data['products'],
        [
            ('Product', 'name', False),
            ('SKU', 'sku', False),
            ('Category', 'category_name', False),
            ('Price', 'price', False),
            ('Stock', 'stock', True),
            ('Stock value', 'stock_value', True),
            ('Low stock', 'low_stock', False),
        ],
    ),
    'menu-analysis': (
        'Menu analysis',
        lambda ctx: aggregation.menu_analysis(ctx.items, ctx.orders, ctx.products),
        lambda data: data['product_stats'],
        [
            ('Product', 'product_name', False),
            ('Quantity', 'total_quantity', True),
            ('Revenue', 'total_revenue', True),
            ('Orders', 'order_count', True),
        ],
    ),
    'attendance': (
        'Attendance',
        _attendance,
        lambda data: data['employees'],
        [
            ('Employee', 'employee_name', False),
            ('Code', 'employee_code', False),
            ('Days', 'total_days', True),
            ('Hours', 'total_hours', True),
            ('Overtime', 'overtime_hours', True),
            ('Late', 'late_count', True),
            ('Absent', 'absent_count', True),
            ('Attendance %', 'attendance_rate', False),
        ],
    ),
}


def _build(request, report):
    start, end = _date_range(request)
    builder = REPORTS[report][1]
    return builder(ReportContext(request, start, end)), start, end


@require_http_methods(["GET"])
def report_data(request, report):
    if report not in REPORTS:
        return error_response(f'Unknown report: {report}', status=404)
    try:
        data, _start, _end = _build(request, report)
    except BadRequest as e:
        return error_response(str(e))
    return JsonResponse(_jsonable(data), safe=False)


@require_http_methods(["GET"])
def report_export(request, report):
    """Export a report to Excel"""
    if report not in REPORTS:
        return error_response(f'Unknown report: {report}', status=404)
    title, _builder, export_rows, columns = REPORTS[report]
    if export_rows is None:
        return error_response(f'Report {report} cannot be exported', status=404)
    try:
        data, start, end = _build(request, report)
    except BadRequest as e:
        return error_response(str(e))

    period = f"{start:%d/%m/%Y} - {end:%d/%m/%Y}"
    wb = build_report_workbook(title, columns, export_rows(data), period=period)
    logger.info("Exported %s report for %s", report, period)

    response = HttpResponse(workbook_bytes(wb), content_type=XLSX_CONTENT_TYPE)
    response['Content-Disposition'] = f'attachment; filename="{report}_{start:%Y%m%d}_{end:%Y%m%d}.xlsx"'
    return response
