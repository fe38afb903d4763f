from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator
from decimal import Decimal, ROUND_HALF_UP


class Category(models.Model):
    name = models.CharField(max_length=100, unique=True)
    icon = models.CharField(max_length=50, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']
        verbose_name = 'Category'
        verbose_name_plural = 'Categories'

    def __str__(self):
        return self.name

    def to_dict(self):
        return {
            'id': self.pk,
            'name': self.name,
            'icon': self.icon,
            'product_count': self.products.count(),
        }


class Product(models.Model):
    PRODUCT_TYPES = [
        (1, 'Goods'),
        (2, 'Material'),
        (3, 'Finished product'),
    ]

    name = models.CharField(max_length=200)
    sku = models.CharField(max_length=50, unique=True, help_text="Stock Keeping Unit")
    category = models.ForeignKey('Category', on_delete=models.PROTECT, related_name='products')
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))],
        help_text="Selling price"
    )
    tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('8.00'),
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))],
        help_text="Tax rate percentage"
    )
    price_includes_tax = models.BooleanField(default=False, help_text="Whether price already includes tax")
    after_tax_price = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    stock = models.IntegerField(default=0, validators=[MinValueValidator(0)], help_text="Current stock quantity")
    track_inventory = models.BooleanField(default=True, help_text="Whether to track stock for this product")
    product_type = models.PositiveSmallIntegerField(choices=PRODUCT_TYPES, default=1)
    image_url = models.TextField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        verbose_name = "Product"
        verbose_name_plural = "Products"

    def __str__(self):
        return f"{self.name} ({self.sku})"

    def can_sell(self, quantity=1):
        """Check if we can sell the specified quantity"""
        if not self.track_inventory:
            return True
        return self.stock >= quantity

    def adjust_stock(self, quantity_change, reason="adjustment", reference=None, unit_cost=None):
        """Adjust stock quantity and create stock movement record"""
        if not self.track_inventory:
            return None
        self.stock = models.F('stock') + quantity_change
        self.save(update_fields=['stock', 'updated_at'])
        self.refresh_from_db(fields=['stock'])

        return StockMovement.objects.create(
            product=self,
            qty_change=quantity_change,
            reason=reason,
            unit_cost=unit_cost,
            reference=reference
        )

    def save(self, *args, **kwargs):
        if self.sku:
            self.sku = self.sku.strip().upper()
        return super().save(*args, **kwargs)

    def to_dict(self):
        return {
            'id': self.pk,
            'name': self.name,
            'sku': self.sku,
            'category_id': self.category_id,
            'category_name': self.category.name if self.category_id else None,
            'price': float(self.price),
            'tax_rate': float(self.tax_rate),
            'price_includes_tax': self.price_includes_tax,
            'after_tax_price': float(self.after_tax_price) if self.after_tax_price is not None else None,
            'stock': self.stock,
            'track_inventory': self.track_inventory,
            'product_type': self.product_type,
            'image_url': self.image_url,
            'is_active': self.is_active,
            'can_sell': self.can_sell(1),
        }


class StockMovement(models.Model):
    MOVEMENT_REASONS = [
        ('purchase', 'Purchase'),
        ('sale', 'Sale'),
        ('adjustment', 'Stock Adjustment'),
        ('return', 'Return'),
        ('damage', 'Damage/Loss'),
    ]

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='stock_movements')
    qty_change = models.IntegerField(help_text="Positive for stock in, negative for stock out")
    reason = models.CharField(max_length=20, choices=MOVEMENT_REASONS, default='adjustment')
    unit_cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        blank=True,
        null=True,
        validators=[MinValueValidator(Decimal('0'))],
        help_text="Unit cost for purchases"
    )
    reference = models.CharField(max_length=100, blank=True, null=True, help_text="Reference like order number")
    notes = models.TextField(blank=True, null=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-timestamp']
        verbose_name = "Stock Movement"
        verbose_name_plural = "Stock Movements"

    def __str__(self):
        direction = "IN" if self.qty_change > 0 else "OUT"
        return f"{self.product.name} - {abs(self.qty_change)} {direction} ({self.reason})"

    @property
    def total_cost(self):
        """Calculate total cost for this movement"""
        if self.unit_cost and self.qty_change > 0:
            return (self.unit_cost * self.qty_change).quantize(
                Decimal('0.01'), rounding=ROUND_HALF_UP
            )
        return None

    def to_dict(self):
        return {
            'id': self.pk,
            'product_id': self.product_id,
            'product_name': self.product.name,
            'qty_change': self.qty_change,
            'reason': self.reason,
            'unit_cost': float(self.unit_cost) if self.unit_cost is not None else None,
            'reference': self.reference,
            'notes': self.notes,
            'timestamp': self.timestamp.isoformat(),
        }
