"""Helpers shared by the JSON API views."""

import json
import logging
from datetime import datetime

from django.core.exceptions import ValidationError
from django.http import JsonResponse

from profiles.models import StoreProfile

logger = logging.getLogger(__name__)

UNLOCKED_SESSION_KEY = 'pos_authenticated'


class BadRequest(Exception):
    """Raised for malformed request input; rendered as a 400 response."""


def parse_json_body(request):
    """Decode a JSON object from the request body"""
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        raise BadRequest('Request body is not valid JSON')
    if not isinstance(data, dict):
        raise BadRequest('Request body must be a JSON object')
    return data


def parse_date(value, field='date'):
    """Parse a YYYY-MM-DD string, raising BadRequest on failure"""
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise BadRequest(f'Invalid {field}: expected YYYY-MM-DD')


def error_response(message, status=400, **extra):
    payload = {'error': message}
    payload.update(extra)
    return JsonResponse(payload, status=status)


def validation_error_response(exc, status=400):
    """Render a django ValidationError as a JSON error"""
    if hasattr(exc, 'error_dict'):
        errors = {field: [str(m) for m in messages] for field, messages in exc.message_dict.items()}
        first = next(iter(errors.values()))[0]
    else:
        errors = {'__all__': list(exc.messages)}
        first = exc.messages[0] if exc.messages else 'Invalid data'
    return error_response(first, status=status, errors=errors)


def is_conflict(exc):
    """True when a ValidationError reports a business-rule conflict"""
    groups = exc.error_dict.values() if hasattr(exc, 'error_dict') else [exc.error_list]
    return any(error.code == 'conflict' for errors in groups for error in errors)


def validation_or_conflict_response(exc):
    return validation_error_response(exc, status=409 if is_conflict(exc) else 400)


def page_not_found(request, exception=None):
    return error_response('Not found', status=404)


def server_error(request):
    logger.error("Unhandled error on %s %s", request.method, request.path)
    return error_response('Internal server error', status=500)


def manager_locked(request):
    """True when a manager PIN is set and this session has not entered it"""
    return bool(StoreProfile.get_store_profile().pin_hash) and not request.session.get(UNLOCKED_SESSION_KEY)


def locked_response():
    return error_response('Manager PIN required', status=401)
