import logging

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import ProtectedError
from django.http import HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from config.api import (
    BadRequest, error_response, locked_response, manager_locked, parse_json_body,
    validation_or_conflict_response,
)
from .models import Category, Product, StockMovement
from .services import bulk_create_products, create_product, update_product
from .spreadsheets import (
    XLSX_CONTENT_TYPE, SpreadsheetError, build_import_error_report, build_import_template,
    build_product_export, read_import_rows, workbook_bytes,
)
from .validators import parse_amount, parse_int

logger = logging.getLogger(__name__)


def _xlsx_response(wb, filename):
    response = HttpResponse(workbook_bytes(wb), content_type=XLSX_CONTENT_TYPE)
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


def _filtered_products(request):
    products = Product.objects.select_related('category').order_by('name')
    search = request.GET.get('search', '').strip()
    if search:
        products = products.filter(
            models.Q(name__icontains=search) |
            models.Q(sku__icontains=search)
        )
    category_id = parse_int(request.GET.get('category_id'))
    if category_id:
        products = products.filter(category_id=category_id)
    if request.GET.get('active') in ('1', 'true'):
        products = products.filter(is_active=True)
    return products


@csrf_exempt
@require_http_methods(["GET", "POST"])
def product_list(request):
    """List products or create one"""
    if request.method == 'GET':
        return JsonResponse([p.to_dict() for p in _filtered_products(request)], safe=False)

    if manager_locked(request):
        return locked_response()
    try:
        data = parse_json_body(request)
        product = create_product(data)
    except BadRequest as e:
        return error_response(str(e))
    except ValidationError as e:
        return validation_or_conflict_response(e)

    logger.info("Product created: %s", product)
    return JsonResponse(product.to_dict(), status=201)


@csrf_exempt
@require_http_methods(["GET", "PUT", "DELETE"])
def product_detail(request, product_id):
    product = get_object_or_404(Product.objects.select_related('category'), id=product_id)

    if request.method == 'GET':
        return JsonResponse(product.to_dict())

    if manager_locked(request):
        return locked_response()

    if request.method == 'DELETE':
        try:
            product.delete()
        except ProtectedError:
            # Sold products keep their history; hide them instead
            product.is_active = False
            product.save(update_fields=['is_active', 'updated_at'])
            return JsonResponse({'success': True, 'deactivated': True})
        return JsonResponse({'success': True})

    try:
        data = parse_json_body(request)
        update_product(product, data)
    except BadRequest as e:
        return error_response(str(e))
    except ValidationError as e:
        return validation_or_conflict_response(e)
    return JsonResponse(product.to_dict())


@csrf_exempt
@require_http_methods(["POST"])
def product_bulk_create(request):
    """API to create many products at once"""
    if manager_locked(request):
        return locked_response()
    try:
        data = parse_json_body(request)
    except BadRequest as e:
        return error_response(str(e))

    rows = data.get('products')
    if not isinstance(rows, list) or not rows:
        return error_response('No products provided')

    try:
        summary = bulk_create_products(rows)
    except Exception:
        logger.exception("Bulk product create failed")
        return error_response('Failed to bulk create products', status=500)
    return JsonResponse(summary)


@csrf_exempt
@require_http_methods(["POST"])
def product_import(request):
    """Read an uploaded workbook; with ?commit=1 also create the valid rows"""
    commit = request.GET.get('commit') in ('1', 'true')
    if commit and manager_locked(request):
        return locked_response()
    upload = request.FILES.get('file')
    if upload is None:
        return error_response('No file uploaded')

    try:
        rows, errors = read_import_rows(upload)
    except SpreadsheetError as e:
        return error_response(str(e))

    payload = {'preview': rows, 'errors': errors}
    if commit and rows:
        payload['result'] = bulk_create_products(rows)
    return JsonResponse(payload)


@require_http_methods(["GET"])
def product_export(request):
    """Export products to Excel"""
    products = list(_filtered_products(request))
    timestamp = timezone.localtime().strftime('%Y-%m-%dT%H-%M-%S')
    return _xlsx_response(build_product_export(products), f'products_{timestamp}.xlsx')


@require_http_methods(["GET"])
def product_import_template(request):
    return _xlsx_response(build_import_template(), 'product_import_template.xlsx')


@csrf_exempt
@require_http_methods(["POST"])
def product_import_errors(request):
    """Turn bulk create results into a downloadable error report"""
    try:
        data = parse_json_body(request)
    except BadRequest as e:
        return error_response(str(e))

    results = data.get('results')
    if not isinstance(results, list):
        return error_response('No results provided')

    timestamp = timezone.localtime().strftime('%Y-%m-%dT%H-%M-%S')
    return _xlsx_response(build_import_error_report(results), f'product_import_errors_{timestamp}.xlsx')


@csrf_exempt
@require_http_methods(["GET", "POST"])
def category_list(request):
    if request.method == 'GET':
        return JsonResponse([c.to_dict() for c in Category.objects.all()], safe=False)

    if manager_locked(request):
        return locked_response()
    try:
        data = parse_json_body(request)
    except BadRequest as e:
        return error_response(str(e))

    name = str(data.get('name') or '').strip()
    if not name:
        return error_response('Category name is required', errors={'name': ['Category name is required']})
    category, created = Category.objects.get_or_create(
        name=name, defaults={'icon': str(data.get('icon') or '')}
    )
    if not created:
        return error_response(f'Category "{name}" already exists', status=409)
    return JsonResponse(category.to_dict(), status=201)


@csrf_exempt
@require_http_methods(["GET", "POST"])
def stock_movement_list(request):
    """List stock movements or record a purchase / adjustment"""
    if request.method == 'GET':
        movements = StockMovement.objects.select_related('product').order_by('-timestamp')
        product_id = parse_int(request.GET.get('product_id'))
        if product_id:
            movements = movements.filter(product_id=product_id)
        return JsonResponse([m.to_dict() for m in movements[:200]], safe=False)

    if manager_locked(request):
        return locked_response()
    try:
        data = parse_json_body(request)
    except BadRequest as e:
        return error_response(str(e))

    product = get_object_or_404(Product, id=parse_int(data.get('product_id')) or 0)
    qty_change = parse_int(data.get('qty_change'))
    reason = data.get('reason', 'adjustment')
    if not qty_change:
        return error_response('Quantity change must be a non-zero integer')
    if reason not in dict(StockMovement.MOVEMENT_REASONS):
        return error_response(f'Unknown reason: {reason}')
    if not product.track_inventory:
        return error_response(f'{product.name} does not track inventory')
    if product.stock + qty_change < 0:
        return error_response(f'Insufficient stock for {product.name}. Available: {product.stock}')

    movement = product.adjust_stock(
        qty_change,
        reason=reason,
        reference=data.get('reference'),
        unit_cost=parse_amount(data.get('unit_cost')),
    )
    return JsonResponse(movement.to_dict(), status=201)
