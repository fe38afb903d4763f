import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from config.api import (
    UNLOCKED_SESSION_KEY, BadRequest, error_response, locked_response, manager_locked,
    parse_json_body, validation_or_conflict_response,
)
from inventory.validators import parse_bool, validate_tax_rate
from .models import StoreProfile, PrinterConfig, InvoiceTemplate

logger = logging.getLogger(__name__)

PRINTER_FIELDS = (
    'name', 'printer_type', 'connection_type', 'ip_address', 'port', 'mac_address',
    'paper_width', 'print_speed', 'is_employee', 'is_kitchen', 'is_active',
)
TEMPLATE_FIELDS = ('name', 'template_number', 'symbol', 'usage', 'notes', 'is_default')


@csrf_exempt
@require_http_methods(["GET", "PUT"])
def store_settings(request):
    """View or update the store profile"""
    profile = StoreProfile.get_store_profile()

    if request.method == 'PUT':
        if manager_locked(request):
            return locked_response()
        try:
            data = parse_json_body(request)
        except BadRequest as e:
            return error_response(str(e))

        for field in ('store_name', 'store_code', 'tax_code', 'phone', 'address', 'invoice_prefix'):
            if field in data:
                value = '' if data[field] is None else str(data[field]).strip()
                setattr(profile, field, value or None)
        if not profile.store_name:
            return error_response('Store name is required', errors={'store_name': ['Store name is required']})
        if not profile.invoice_prefix:
            profile.invoice_prefix = 'INV'
        if 'default_tax_rate' in data:
            try:
                profile.default_tax_rate = validate_tax_rate(data['default_tax_rate'])
            except ValidationError as e:
                return error_response(e.messages[0], errors={'default_tax_rate': e.messages})
        if 'price_include_tax' in data:
            profile.price_include_tax = parse_bool(data['price_include_tax'])

        profile.save()
        logger.info("Store profile updated: %s", profile.store_name)

    return JsonResponse(profile.to_dict())


@csrf_exempt
@require_http_methods(["POST"])
def set_pin(request):
    """Set manager PIN; changing an existing PIN needs an unlocked session"""
    if manager_locked(request):
        return locked_response()
    try:
        data = parse_json_body(request)
    except BadRequest as e:
        return error_response(str(e))

    pin = str(data.get('pin', '')).strip()
    confirm_pin = str(data.get('confirm_pin', '')).strip()

    if pin != confirm_pin:
        return error_response('PINs do not match')
    if len(pin) < 4:
        return error_response('PIN must be at least 4 characters long')

    profile = StoreProfile.get_store_profile()
    profile.set_pin(pin)
    profile.save()
    return JsonResponse({'success': True})


@csrf_exempt
@require_http_methods(["POST"])
def pin_auth(request):
    """Unlock the back office with the manager PIN"""
    try:
        data = parse_json_body(request)
    except BadRequest as e:
        return error_response(str(e))

    profile = StoreProfile.get_store_profile()
    if profile.check_pin(str(data.get('pin', ''))):
        request.session[UNLOCKED_SESSION_KEY] = True
        return JsonResponse({'success': True})

    logger.warning("Rejected PIN login attempt")
    return error_response('Invalid PIN', status=401)


@csrf_exempt
@require_http_methods(["POST"])
def pin_logout(request):
    """Lock the back office again"""
    request.session.pop(UNLOCKED_SESSION_KEY, None)
    return JsonResponse({'success': True})


def _apply_fields(instance, data, fields):
    for field in fields:
        if field in data:
            value = data[field]
            if isinstance(value, str):
                value = value.strip() or None
            setattr(instance, field, value)


@csrf_exempt
@require_http_methods(["GET", "POST"])
def printer_config_list(request):
    """List or create printer configurations"""
    if request.method == 'GET':
        configs = PrinterConfig.objects.all()
        return JsonResponse([c.to_dict() for c in configs], safe=False)

    if manager_locked(request):
        return locked_response()
    try:
        data = parse_json_body(request)
    except BadRequest as e:
        return error_response(str(e))

    config = PrinterConfig()
    _apply_fields(config, data, PRINTER_FIELDS)
    try:
        with transaction.atomic():
            config.full_clean()
            config.check_active_role()
            config.save()
    except ValidationError as e:
        return validation_or_conflict_response(e)

    logger.info("Printer config created: %s", config)
    return JsonResponse(config.to_dict(), status=201)


@csrf_exempt
@require_http_methods(["GET", "PUT", "DELETE"])
def printer_config_detail(request, config_id):
    config = get_object_or_404(PrinterConfig, id=config_id)

    if request.method == 'GET':
        return JsonResponse(config.to_dict())

    if manager_locked(request):
        return locked_response()

    if request.method == 'DELETE':
        config.delete()
        return JsonResponse({'success': True})

    try:
        data = parse_json_body(request)
    except BadRequest as e:
        return error_response(str(e))

    _apply_fields(config, data, PRINTER_FIELDS)
    try:
        with transaction.atomic():
            config.full_clean()
            config.check_active_role()
            config.save()
    except ValidationError as e:
        return validation_or_conflict_response(e)
    return JsonResponse(config.to_dict())


@csrf_exempt
@require_http_methods(["POST"])
def printer_config_toggle(request, config_id):
    """Turn a printer on or off, switching off any printer holding the same role"""
    if manager_locked(request):
        return locked_response()
    config = get_object_or_404(PrinterConfig, id=config_id)
    try:
        data = parse_json_body(request)
    except BadRequest as e:
        return error_response(str(e))

    active = parse_bool(data.get('is_active'), default=not config.is_active)
    switched_off = config.toggle(active)
    for printer in switched_off:
        logger.info("Printer %s switched off in favour of %s", printer.name, config.name)

    return JsonResponse({
        'printer': config.to_dict(),
        'switched_off': [p.to_dict() for p in switched_off],
    })


@csrf_exempt
@require_http_methods(["GET", "POST"])
def invoice_template_list(request):
    if request.method == 'GET':
        return JsonResponse([t.to_dict() for t in InvoiceTemplate.objects.all()], safe=False)

    if manager_locked(request):
        return locked_response()
    try:
        data = parse_json_body(request)
    except BadRequest as e:
        return error_response(str(e))

    template = InvoiceTemplate()
    _apply_fields(template, data, TEMPLATE_FIELDS)
    template.usage = template.usage or ''
    try:
        template.full_clean()
    except ValidationError as e:
        return validation_or_conflict_response(e)
    template.save()
    return JsonResponse(template.to_dict(), status=201)


@csrf_exempt
@require_http_methods(["PUT", "DELETE"])
def invoice_template_detail(request, template_id):
    if manager_locked(request):
        return locked_response()
    template = get_object_or_404(InvoiceTemplate, id=template_id)

    if request.method == 'DELETE':
        template.delete()
        return JsonResponse({'success': True})

    try:
        data = parse_json_body(request)
    except BadRequest as e:
        return error_response(str(e))

    _apply_fields(template, data, TEMPLATE_FIELDS)
    template.usage = template.usage or ''
    try:
        template.full_clean()
    except ValidationError as e:
        return validation_or_conflict_response(e)
    template.save()
    return JsonResponse(template.to_dict())
