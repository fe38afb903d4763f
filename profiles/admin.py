from django.contrib import admin
from .models import StoreProfile, PrinterConfig, InvoiceTemplate


@admin.register(StoreProfile)
class StoreProfileAdmin(admin.ModelAdmin):
    list_display = ('store_name', 'store_code', 'tax_code', 'phone', 'default_tax_rate', 'invoice_prefix', 'last_invoice_number')
    fieldsets = (
        ('Basic Information', {
            'fields': ('store_name', 'store_code', 'phone', 'address', 'logo')
        }),
        ('Tax & Invoice Settings', {
            'fields': ('tax_code', 'default_tax_rate', 'price_include_tax', 'invoice_prefix', 'last_invoice_number')
        }),
        ('Security', {
            'fields': ('pin_hash',),
            'description': 'Use the store settings API to set the PIN securely.'
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        })
    )
    readonly_fields = ('created_at', 'updated_at', 'pin_hash')

    def has_delete_permission(self, request, obj=None):
        # Prevent deletion of store profile
        return False

    def has_add_permission(self, request):
        # Only allow one store profile
        return not StoreProfile.objects.exists()


@admin.register(PrinterConfig)
class PrinterConfigAdmin(admin.ModelAdmin):
    list_display = ('name', 'printer_type', 'connection_type', 'ip_address', 'is_employee', 'is_kitchen', 'is_active')
    list_filter = ('printer_type', 'connection_type', 'is_active')
    search_fields = ('name', 'ip_address', 'mac_address')

    fieldsets = (
        ('Printer', {
            'fields': ('name', 'printer_type', 'paper_width', 'print_speed')
        }),
        ('Connection', {
            'fields': ('connection_type', 'ip_address', 'port', 'mac_address')
        }),
        ('Roles', {
            'fields': ('is_employee', 'is_kitchen', 'is_active')
        })
    )

    def save_model(self, request, obj, form, change):
        if obj.is_active:
            # Keep a single active printer per role
            obj.conflicting_printers().update(is_active=False)
        super().save_model(request, obj, form, change)


@admin.register(InvoiceTemplate)
class InvoiceTemplateAdmin(admin.ModelAdmin):
    list_display = ('name', 'template_number', 'symbol', 'usage', 'is_default')
    list_filter = ('is_default',)
    search_fields = ('name', 'template_number', 'symbol')
