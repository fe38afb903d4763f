from decimal import Decimal

from django.conf import settings
from django.contrib.auth.hashers import make_password, check_password
from django.core.exceptions import ValidationError
from django.db import models, transaction


class StoreProfile(models.Model):
    store_name = models.CharField(max_length=200, default="My Store")
    store_code = models.CharField(max_length=20, blank=True, null=True, help_text="Branch code, e.g. CH-001")
    tax_code = models.CharField(max_length=20, blank=True, null=True, help_text="Store tax identification number")
    phone = models.CharField(max_length=20, blank=True, null=True)
    address = models.TextField(blank=True, null=True)
    logo = models.ImageField(upload_to='store_logos/', blank=True, null=True)
    default_tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('8.00'))
    price_include_tax = models.BooleanField(default=False, help_text="Whether new orders are priced tax-inclusive")
    invoice_prefix = models.CharField(max_length=10, default="INV", help_text="Prefix for invoice numbers")
    last_invoice_number = models.IntegerField(default=0, help_text="Last generated invoice number")
    pin_hash = models.CharField(max_length=128, blank=True, null=True, help_text="Manager PIN for back office access")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Store Profile"
        verbose_name_plural = "Store Profiles"

    def __str__(self):
        return self.store_name

    def set_pin(self, pin):
        """Set hashed PIN for back office access"""
        if pin:
            self.pin_hash = make_password(pin)
        else:
            self.pin_hash = None

    def check_pin(self, pin):
        """Check if provided PIN matches the stored one"""
        if not self.pin_hash:
            return True  # No PIN set, allow access
        return check_password(pin, self.pin_hash)

    @property
    def reports_by_update_time(self):
        """Branch stores (CH- codes) close orders late and report by update time"""
        return bool(self.store_code and self.store_code.startswith('CH-'))

    @classmethod
    def get_store_profile(cls):
        """Get or create the store profile (singleton pattern)"""
        profile, created = cls.objects.get_or_create(
            pk=1, defaults={'default_tax_rate': settings.POS_DEFAULT_TAX_RATE}
        )
        return profile

    @classmethod
    def next_invoice_number(cls):
        """Generate next invoice number atomically"""
        with transaction.atomic():
            cls.get_store_profile()
            profile = cls.objects.select_for_update().get(pk=1)
            profile.last_invoice_number += 1
            profile.save(update_fields=['last_invoice_number', 'updated_at'])
            return f"{profile.invoice_prefix}{profile.last_invoice_number:04d}"

    def to_dict(self):
        return {
            'id': self.pk,
            'store_name': self.store_name,
            'store_code': self.store_code,
            'tax_code': self.tax_code,
            'phone': self.phone,
            'address': self.address,
            'logo': self.logo.url if self.logo else None,
            'default_tax_rate': float(self.default_tax_rate),
            'price_include_tax': self.price_include_tax,
            'invoice_prefix': self.invoice_prefix,
            'last_invoice_number': self.last_invoice_number,
            'has_pin': bool(self.pin_hash),
        }


class PrinterConfig(models.Model):
    PRINTER_TYPES = [
        ('thermal', 'Thermal'),
        ('inkjet', 'Inkjet'),
        ('laser', 'Laser'),
    ]
    CONNECTION_TYPES = [
        ('usb', 'USB'),
        ('network', 'Network'),
        ('bluetooth', 'Bluetooth'),
    ]

    name = models.CharField(max_length=100)
    printer_type = models.CharField(max_length=20, choices=PRINTER_TYPES, default='thermal')
    connection_type = models.CharField(max_length=20, choices=CONNECTION_TYPES, default='usb')
    ip_address = models.GenericIPAddressField(blank=True, null=True)
    port = models.PositiveIntegerField(blank=True, null=True, default=9100)
    mac_address = models.CharField(max_length=17, blank=True, null=True)
    paper_width = models.PositiveIntegerField(default=80, help_text="Paper width in millimeters")
    print_speed = models.PositiveIntegerField(default=100, help_text="Print speed in mm/s")
    is_employee = models.BooleanField(default=False, help_text="Prints receipts at the cashier")
    is_kitchen = models.BooleanField(default=False, help_text="Prints kitchen tickets")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        verbose_name = "Printer Configuration"
        verbose_name_plural = "Printer Configurations"

    def __str__(self):
        return f"{self.name} ({self.get_connection_type_display()})"

    def conflicting_printers(self):
        """Other active printers sharing the employee or kitchen role"""
        if not (self.is_employee or self.is_kitchen):
            return PrinterConfig.objects.none()
        role = models.Q()
        if self.is_employee:
            role |= models.Q(is_employee=True)
        if self.is_kitchen:
            role |= models.Q(is_kitchen=True)
        return PrinterConfig.objects.filter(role, is_active=True).exclude(pk=self.pk)

    def clean(self):
        errors = {}
        if self.connection_type == 'network' and not self.ip_address:
            errors['ip_address'] = ['IP address is required for network printers']
        if errors:
            raise ValidationError(errors)

    def check_active_role(self):
        """Only one printer may be active per role"""
        if not self.is_active:
            return
        conflict = self.conflicting_printers().first()
        if conflict is None:
            return
        role = 'employee' if self.is_employee and conflict.is_employee else 'kitchen'
        raise ValidationError({'is_active': ValidationError(
            f'An active {role} printer already exists: {conflict.name}. Turn it off first.',
            code='conflict',
        )})

    def toggle(self, active):
        """Switch printer on or off; turning on switches off conflicting printers"""
        switched_off = []
        with transaction.atomic():
            if active:
                switched_off = list(self.conflicting_printers())
                PrinterConfig.objects.filter(pk__in=[p.pk for p in switched_off]).update(is_active=False)
            self.is_active = active
            self.save(update_fields=['is_active', 'updated_at'])
        return switched_off

    def to_dict(self):
        return {
            'id': self.pk,
            'name': self.name,
            'printer_type': self.printer_type,
            'connection_type': self.connection_type,
            'ip_address': self.ip_address,
            'port': self.port,
            'mac_address': self.mac_address,
            'paper_width': self.paper_width,
            'print_speed': self.print_speed,
            'is_employee': self.is_employee,
            'is_kitchen': self.is_kitchen,
            'is_active': self.is_active,
        }


class InvoiceTemplate(models.Model):
    """E-invoice template (form number and series symbol)"""
    name = models.CharField(max_length=100)
    template_number = models.CharField(max_length=20, help_text="Invoice form number, e.g. 1C25")
    symbol = models.CharField(max_length=20, help_text="Invoice series symbol, e.g. TYY")
    usage = models.CharField(max_length=100, blank=True, default='')
    notes = models.TextField(blank=True, null=True)
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']
        verbose_name = "Invoice Template"
        verbose_name_plural = "Invoice Templates"

    def __str__(self):
        return f"{self.name} ({self.template_number}/{self.symbol})"

    def save(self, *args, **kwargs):
        with transaction.atomic():
            super().save(*args, **kwargs)
            if self.is_default:
                # Ensure only one default template
                InvoiceTemplate.objects.exclude(pk=self.pk).update(is_default=False)

    @classmethod
    def get_default(cls):
        return cls.objects.filter(is_default=True).first()

    def to_dict(self):
        return {
            'id': self.pk,
            'name': self.name,
            'template_number': self.template_number,
            'symbol': self.symbol,
            'usage': self.usage,
            'notes': self.notes,
            'is_default': self.is_default,
        }
