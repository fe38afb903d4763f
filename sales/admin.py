from django.contrib import admin
from django.utils.html import format_html
from .models import Customer, PointTransaction, Order, OrderItem, Invoice, InvoiceItem


class PointTransactionInline(admin.TabularInline):
    model = PointTransaction
    extra = 0
    fields = ('created_at', 'transaction_type', 'points', 'balance_after', 'description')
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    inlines = [PointTransactionInline]
    list_display = ('name', 'customer_id', 'phone', 'email', 'membership_level', 'points', 'created_at')
    list_filter = ('membership_level',)
    search_fields = ('name', 'customer_id', 'phone', 'email', 'tax_code')
    ordering = ('name',)

    fieldsets = (
        ('Customer Information', {
            'fields': ('customer_id', 'name', 'phone', 'email')
        }),
        ('Address & Tax', {
            'fields': ('address', 'tax_code')
        }),
        ('Loyalty', {
            'fields': ('points', 'membership_level')
        })
    )

    # Points only change through PointTransaction entries
    readonly_fields = ('points', 'created_at', 'updated_at')


@admin.register(PointTransaction)
class PointTransactionAdmin(admin.ModelAdmin):
    list_display = ('customer', 'transaction_type', 'points', 'balance_after', 'description', 'created_at')
    list_filter = ('transaction_type', 'created_at')
    search_fields = ('customer__name', 'customer__customer_id', 'description')
    readonly_fields = ('customer', 'points', 'transaction_type', 'balance_after', 'created_at')


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = ('product', 'product_name', 'quantity', 'unit_price', 'tax_rate', 'discount', 'tax', 'total')
    readonly_fields = ('tax', 'total')


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ('order_number', 'ordered_at', 'get_customer_name', 'employee', 'total', 'colored_status', 'payment_method')
    list_filter = ('status', 'payment_method', 'price_include_tax', 'ordered_at')
    search_fields = ('order_number', 'customer__name', 'customer_name', 'notes')
    ordering = ('-ordered_at',)

    fieldsets = (
        ('Order Details', {
            'fields': ('order_number', 'ordered_at', 'status', 'table_id', 'employee', 'customer', 'customer_name', 'customer_count')
        }),
        ('Totals', {
            'fields': ('price_include_tax', 'subtotal', 'discount', 'tax', 'total'),
            'classes': ('collapse',)
        }),
        ('Payment', {
            'fields': ('payment_method', 'sales_channel', 'paid_at')
        }),
        ('Additional Information', {
            'fields': ('notes',)
        })
    )

    readonly_fields = ('subtotal', 'tax', 'total', 'updated_at')
    inlines = [OrderItemInline]

    def get_customer_name(self, obj):
        return obj.get_customer_display_name()
    get_customer_name.short_description = 'Customer'

    def colored_status(self, obj):
        if obj.status == 'cancelled':
            return format_html('<span style="color: red;">{}</span>', obj.get_status_display())
        if obj.status in ('paid', 'completed'):
            return format_html('<span style="color: green;">{}</span>', obj.get_status_display())
        return obj.get_status_display()
    colored_status.short_description = 'Status'

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        # Recalculate totals after saving items
        form.instance.recalculate_totals()


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    fields = ('product', 'product_name', 'quantity', 'unit_price', 'tax_rate', 'total')


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ('invoice_number', 'invoice_date', 'customer_name', 'total', 'status', 'einvoice_status')
    list_filter = ('status', 'einvoice_status', 'payment_method', 'invoice_date')
    search_fields = ('invoice_number', 'trade_number', 'customer_name', 'customer_tax_code', 'notes')
    ordering = ('-created_at',)

    fieldsets = (
        ('Invoice Details', {
            'fields': ('invoice_number', 'trade_number', 'template_number', 'symbol', 'invoice_date', 'order')
        }),
        ('Customer', {
            'fields': ('customer_name', 'customer_tax_code', 'customer_address', 'customer_phone', 'customer_email')
        }),
        ('Totals', {
            'fields': ('subtotal', 'tax', 'total'),
            'classes': ('collapse',)
        }),
        ('Status', {
            'fields': ('payment_method', 'status', 'einvoice_status', 'notes')
        })
    )

    readonly_fields = ('subtotal', 'tax', 'total', 'created_at', 'updated_at')
    inlines = [InvoiceItemInline]

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        form.instance.calculate_totals()
