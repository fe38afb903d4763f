from django.contrib import admin
from .models import Employee, AttendanceRecord


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display = ('employee_id', 'name', 'role', 'phone', 'is_active', 'hire_date')
    list_filter = ('role', 'is_active')
    search_fields = ('employee_id', 'name', 'phone', 'email')
    ordering = ('name',)


@admin.register(AttendanceRecord)
class AttendanceRecordAdmin(admin.ModelAdmin):
    list_display = ('employee', 'clock_in', 'clock_out', 'total_hours', 'overtime', 'status')
    list_filter = ('status', 'clock_in')
    search_fields = ('employee__name', 'employee__employee_id', 'notes')
    ordering = ('-clock_in',)
    readonly_fields = ('total_hours', 'overtime')
