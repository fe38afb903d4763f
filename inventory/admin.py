from django.contrib import admin
from .models import Category, Product, StockMovement


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ('name', 'icon', 'created_at')
    search_fields = ('name',)


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ('name', 'sku', 'category', 'price', 'tax_rate', 'price_includes_tax', 'stock', 'track_inventory', 'is_active')
    list_filter = ('track_inventory', 'price_includes_tax', 'is_active', 'category', 'product_type')
    search_fields = ('name', 'sku')
    ordering = ('name',)

    fieldsets = (
        ('Basic Information', {
            'fields': ('name', 'sku', 'category', 'product_type', 'image_url', 'is_active')
        }),
        ('Pricing', {
            'fields': ('price', 'tax_rate', 'price_includes_tax', 'after_tax_price')
        }),
        ('Inventory', {
            'fields': ('track_inventory', 'stock')
        })
    )

    readonly_fields = ('created_at', 'updated_at')


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ('product', 'qty_change', 'reason', 'unit_cost', 'reference', 'timestamp')
    list_filter = ('reason', 'timestamp')
    search_fields = ('product__name', 'product__sku', 'reference', 'notes')
    ordering = ('-timestamp',)

    fieldsets = (
        ('Movement Details', {
            'fields': ('product', 'qty_change', 'reason', 'unit_cost')
        }),
        ('Reference & Notes', {
            'fields': ('reference', 'notes')
        })
    )

    readonly_fields = ('timestamp',)

    def get_readonly_fields(self, request, obj=None):
        readonly = list(self.readonly_fields)
        if obj:  # Editing existing movement - make most fields readonly
            readonly.extend(['product', 'qty_change', 'reason', 'unit_cost'])
        return readonly
