import logging

from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from config.api import BadRequest, error_response, parse_date, parse_json_body, validation_or_conflict_response
from inventory.validators import parse_int
from profiles.models import InvoiceTemplate
from .models import Customer, Invoice, Order, OrderItem, PointTransaction
from .services import (
    adjust_points, next_customer_code, place_order, redeem_points, save_customer, update_order,
)

logger = logging.getLogger(__name__)


def _order_payload(order):
    payload = order.as_record()
    payload['items'] = [item.as_record() for item in order.items.select_related('product')]
    return payload


@csrf_exempt
@require_http_methods(["GET", "POST"])
def order_list(request):
    """List orders or check out a new one"""
    if request.method == 'GET':
        orders = Order.objects.select_related('employee', 'customer')
        status = request.GET.get('status')
        if status:
            orders = orders.filter(status__in=status.split(','))
        return JsonResponse([o.as_record() for o in orders], safe=False)

    try:
        data = parse_json_body(request)
        order = place_order(data)
    except BadRequest as e:
        return error_response(str(e))
    except ValidationError as e:
        return validation_or_conflict_response(e)
    except Exception:
        logger.exception("Checkout failed")
        return error_response('Checkout failed', status=500)
    return JsonResponse(_order_payload(order), status=201)


@require_http_methods(["GET"])
def order_date_range(request, start, end):
    try:
        start_date = parse_date(start, 'start date')
        end_date = parse_date(end, 'end date')
    except BadRequest as e:
        return error_response(str(e))

    orders = Order.objects.select_related('employee', 'customer').filter(
        ordered_at__date__gte=start_date,
        ordered_at__date__lte=end_date,
    )
    return JsonResponse([o.as_record() for o in orders], safe=False)


@csrf_exempt
@require_http_methods(["GET", "PUT"])
def order_detail(request, order_id):
    order = get_object_or_404(Order.objects.select_related('employee', 'customer'), id=order_id)
    if request.method == 'GET':
        return JsonResponse(_order_payload(order))

    try:
        data = parse_json_body(request)
        update_order(order, data)
    except BadRequest as e:
        return error_response(str(e))
    except ValidationError as e:
        return validation_or_conflict_response(e)
    return JsonResponse(_order_payload(order))


@require_http_methods(["GET"])
def order_items(request, order_id):
    order = get_object_or_404(Order, id=order_id)
    return JsonResponse([item.as_record() for item in order.items.select_related('product')], safe=False)


@require_http_methods(["GET"])
def order_items_date_range(request, start, end):
    """Items of every order placed within the range"""
    try:
        start_date = parse_date(start, 'start date')
        end_date = parse_date(end, 'end date')
    except BadRequest as e:
        return error_response(str(e))

    items = OrderItem.objects.select_related('product').filter(
        order__ordered_at__date__gte=start_date,
        order__ordered_at__date__lte=end_date,
    )
    return JsonResponse([item.as_record() for item in items], safe=False)


@csrf_exempt
@require_http_methods(["GET", "POST"])
def customer_list(request):
    if request.method == 'GET':
        customers = Customer.objects.all()
        search = request.GET.get('search', '').strip()
        if search:
            customers = customers.filter(
                models.Q(name__icontains=search) |
                models.Q(phone__icontains=search) |
                models.Q(customer_id__icontains=search)
            )
        return JsonResponse([c.to_dict() for c in customers], safe=False)

    try:
        data = parse_json_body(request)
        customer = save_customer(Customer(), data)
    except BadRequest as e:
        return error_response(str(e))
    except ValidationError as e:
        return validation_or_conflict_response(e)
    return JsonResponse(customer.to_dict(), status=201)


@require_http_methods(["GET"])
def customer_next_id(request):
    """Suggested code for the next new customer"""
    return JsonResponse({'next_id': next_customer_code()})


@csrf_exempt
@require_http_methods(["GET", "PUT", "DELETE"])
def customer_detail(request, customer_id):
    customer = get_object_or_404(Customer, id=customer_id)

    if request.method == 'GET':
        return JsonResponse(customer.to_dict())

    if request.method == 'DELETE':
        customer.delete()
        logger.info("Customer %s deleted", customer.name)
        return JsonResponse({'success': True})

    try:
        data = parse_json_body(request)
        save_customer(customer, data)
    except BadRequest as e:
        return error_response(str(e))
    except ValidationError as e:
        return validation_or_conflict_response(e)
    return JsonResponse(customer.to_dict())


@csrf_exempt
@require_http_methods(["POST"])
def customer_adjust_points(request):
    """Add, take or correct a customer's points with a reason"""
    try:
        data = parse_json_body(request)
        entry = adjust_points(data)
    except BadRequest as e:
        return error_response(str(e))
    except ValidationError as e:
        return validation_or_conflict_response(e)
    return JsonResponse({'customer': entry.customer.to_dict(), 'transaction': entry.to_dict()})


@csrf_exempt
@require_http_methods(["POST"])
def customer_redeem_points(request):
    try:
        data = parse_json_body(request)
        entry = redeem_points(data)
    except BadRequest as e:
        return error_response(str(e))
    except ValidationError as e:
        return validation_or_conflict_response(e)
    return JsonResponse({'customer': entry.customer.to_dict(), 'transaction': entry.to_dict()})


@require_http_methods(["GET"])
def point_transaction_list(request):
    """Point history, newest first; ``customer_id`` narrows it to one customer"""
    entries = PointTransaction.objects.select_related('customer')
    customer_id = parse_int(request.GET.get('customer_id'))
    if customer_id:
        entries = entries.filter(customer_id=customer_id)
    return JsonResponse([e.to_dict() for e in entries[:500]], safe=False)


@csrf_exempt
@require_http_methods(["GET", "POST"])
def invoice_list(request):
    """List invoices or issue a draft invoice for an order"""
    if request.method == 'GET':
        invoices = Invoice.objects.all()
        status = request.GET.get('status')
        if status:
            invoices = invoices.filter(status=status)
        return JsonResponse([i.to_dict() for i in invoices], safe=False)

    try:
        data = parse_json_body(request)
    except BadRequest as e:
        return error_response(str(e))

    order = get_object_or_404(Order, id=data.get('order_id') or 0)
    if order.status == 'cancelled':
        return error_response('Cannot invoice a cancelled order', status=409)
    if order.invoices.exclude(status='cancelled').exists():
        return error_response(f'Order {order.order_number} already has an invoice', status=409)

    if data.get('template_id'):
        template = get_object_or_404(InvoiceTemplate, id=data['template_id'])
    else:
        template = InvoiceTemplate.get_default()

    with transaction.atomic():
        invoice = Invoice.from_order(order, template)
        if data.get('notes'):
            invoice.notes = data['notes']
            invoice.save(update_fields=['notes', 'updated_at'])
    logger.info("Invoice %s created for order %s", invoice.invoice_number, order.order_number)
    return JsonResponse(invoice.to_dict(), status=201)


@require_http_methods(["GET"])
def invoice_detail(request, invoice_id):
    invoice = get_object_or_404(Invoice, id=invoice_id)
    payload = invoice.to_dict()
    payload['items'] = [item.to_dict() for item in invoice.items.all()]
    return JsonResponse(payload)


@require_http_methods(["GET"])
def invoice_items(request, invoice_id):
    invoice = get_object_or_404(Invoice, id=invoice_id)
    return JsonResponse([item.to_dict() for item in invoice.items.all()], safe=False)
