import logging

from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from config.api import BadRequest, error_response, parse_json_body
from .models import AttendanceRecord, Employee

logger = logging.getLogger(__name__)


@csrf_exempt
@require_http_methods(["GET", "POST"])
def employee_list(request):
    if request.method == 'GET':
        employees = Employee.objects.all()
        if request.GET.get('active') in ('1', 'true'):
            employees = employees.filter(is_active=True)
        return JsonResponse([e.to_dict() for e in employees], safe=False)

    try:
        data = parse_json_body(request)
    except BadRequest as e:
        return error_response(str(e))

    employee_id = str(data.get('employee_id') or '').strip()
    name = str(data.get('name') or '').strip()
    if not employee_id or not name:
        return error_response('Employee code and name are required')
    if Employee.objects.filter(employee_id=employee_id).exists():
        return error_response(f'Employee code "{employee_id}" already exists', status=409)
    role = data.get('role', 'cashier')
    if role not in dict(Employee.ROLE_CHOICES):
        return error_response(f'Unknown role: {role}')

    employee = Employee.objects.create(
        employee_id=employee_id,
        name=name,
        role=role,
        phone=str(data.get('phone') or '').strip() or None,
        email=str(data.get('email') or '').strip() or None,
    )
    return JsonResponse(employee.to_dict(), status=201)


@require_http_methods(["GET"])
def attendance_list(request):
    """Attendance records, optionally filtered by month (YYYY-MM) and employee"""
    records = AttendanceRecord.objects.select_related('employee')
    month = request.GET.get('month')
    if month:
        try:
            year, month_number = (int(part) for part in month.split('-'))
        except ValueError:
            return error_response('Invalid month: expected YYYY-MM')
        records = records.filter(clock_in__year=year, clock_in__month=month_number)
    employee_id = request.GET.get('employee_id')
    if employee_id:
        records = records.filter(employee_id=employee_id)
    return JsonResponse([r.as_record() for r in records], safe=False)


@csrf_exempt
@require_http_methods(["POST"])
def clock_in(request):
    try:
        data = parse_json_body(request)
    except BadRequest as e:
        return error_response(str(e))

    employee = get_object_or_404(Employee, id=data.get('employee_id') or 0, is_active=True)
    if employee.attendance_records.filter(clock_out__isnull=True).exists():
        return error_response(f'{employee.name} is already clocked in', status=409)

    status = data.get('status', 'present')
    if status not in dict(AttendanceRecord.STATUS_CHOICES):
        return error_response(f'Unknown status: {status}')

    record = AttendanceRecord.objects.create(
        employee=employee,
        clock_in=timezone.now(),
        status=status,
        notes=data.get('notes'),
    )
    logger.info("%s clocked in", employee.name)
    return JsonResponse(record.as_record(), status=201)


@csrf_exempt
@require_http_methods(["POST"])
def clock_out(request):
    try:
        data = parse_json_body(request)
    except BadRequest as e:
        return error_response(str(e))

    employee = get_object_or_404(Employee, id=data.get('employee_id') or 0)
    record = employee.attendance_records.filter(clock_out__isnull=True).order_by('-clock_in').first()
    if record is None:
        return error_response(f'{employee.name} is not clocked in', status=409)

    record.close()
    logger.info("%s clocked out after %s hours", employee.name, record.total_hours)
    return JsonResponse(record.as_record())
