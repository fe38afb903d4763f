from decimal import Decimal, ROUND_HALF_UP

from django.db import models
from django.utils import timezone

STANDARD_SHIFT_HOURS = Decimal('8')


class Employee(models.Model):
    ROLE_CHOICES = [
        ('manager', 'Manager'),
        ('cashier', 'Cashier'),
        ('waiter', 'Waiter'),
        ('kitchen', 'Kitchen'),
    ]

    employee_id = models.CharField(max_length=20, unique=True, help_text="Employee code, e.g. EMP-001")
    name = models.CharField(max_length=200)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='cashier')
    phone = models.CharField(max_length=20, blank=True, null=True)
    email = models.EmailField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    hire_date = models.DateField(default=timezone.localdate)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']
        verbose_name = "Employee"
        verbose_name_plural = "Employees"

    def __str__(self):
        return f"{self.name} ({self.employee_id})"

    def to_dict(self):
        return {
            'id': self.pk,
            'employee_id': self.employee_id,
            'name': self.name,
            'role': self.role,
            'phone': self.phone,
            'email': self.email,
            'is_active': self.is_active,
            'hire_date': self.hire_date.isoformat(),
        }


class AttendanceRecord(models.Model):
    STATUS_CHOICES = [
        ('present', 'Present'),
        ('late', 'Late'),
        ('absent', 'Absent'),
        ('half_day', 'Half day'),
    ]

    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name='attendance_records')
    clock_in = models.DateTimeField()
    clock_out = models.DateTimeField(blank=True, null=True)
    total_hours = models.DecimalField(max_digits=5, decimal_places=2, blank=True, null=True)
    overtime = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0'))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='present')
    notes = models.TextField(blank=True, null=True)

    class Meta:
        ordering = ['-clock_in']
        verbose_name = "Attendance Record"
        verbose_name_plural = "Attendance Records"

    def __str__(self):
        return f"{self.employee.name} - {self.clock_in:%Y-%m-%d} ({self.status})"

    def close(self, clock_out=None):
        """Record clock-out and compute worked hours and overtime"""
        self.clock_out = clock_out or timezone.now()
        seconds = max(0, (self.clock_out - self.clock_in).total_seconds())
        hours = (Decimal(seconds) / Decimal(3600)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
        self.total_hours = hours
        self.overtime = max(Decimal('0'), hours - STANDARD_SHIFT_HOURS)
        self.save()
        return self

    def as_record(self):
        return {
            'id': self.pk,
            'employee_id': self.employee_id,
            'clock_in': self.clock_in.isoformat(),
            'clock_out': self.clock_out.isoformat() if self.clock_out else None,
            'total_hours': str(self.total_hours) if self.total_hours is not None else None,
            'overtime': str(self.overtime),
            'status': self.status,
            'notes': self.notes,
        }
