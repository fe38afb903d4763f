from decimal import Decimal, ROUND_HALF_UP

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from inventory.models import Product
from staff.models import Employee

CENT = Decimal('0.01')
ZERO = Decimal('0')


def _money(value):
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _iso(value):
    return value.isoformat() if value else None


class Customer(models.Model):
    MEMBERSHIP_LEVELS = [
        ('silver', 'Silver'),
        ('gold', 'Gold'),
        ('vip', 'VIP'),
    ]

    customer_id = models.CharField(max_length=20, unique=True, blank=True, null=True, help_text="Customer code")
    name = models.CharField(max_length=200)
    phone = models.CharField(max_length=20, blank=True, null=True)
    email = models.EmailField(blank=True, null=True)
    address = models.TextField(blank=True, null=True)
    tax_code = models.CharField(max_length=20, blank=True, null=True, help_text="Customer tax code")
    points = models.IntegerField(default=0)
    membership_level = models.CharField(max_length=10, choices=MEMBERSHIP_LEVELS, default='silver')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        verbose_name = "Customer"
        verbose_name_plural = "Customers"

    def __str__(self):
        return self.name

    def to_dict(self):
        return {
            'id': self.pk,
            'customer_id': self.customer_id,
            'name': self.name,
            'phone': self.phone,
            'email': self.email,
            'address': self.address,
            'tax_code': self.tax_code,
            'points': self.points,
            'membership_level': self.membership_level,
        }

    def adjust_points(self, points_change, transaction_type='adjusted', description=''):
        """Change the point balance and record a point transaction"""
        self.points = models.F('points') + points_change
        self.save(update_fields=['points', 'updated_at'])
        self.refresh_from_db(fields=['points'])

        return PointTransaction.objects.create(
            customer=self,
            points=points_change,
            transaction_type=transaction_type,
            description=description,
            balance_after=self.points,
        )


class PointTransaction(models.Model):
    TRANSACTION_TYPES = [
        ('earned', 'Earned'),
        ('redeemed', 'Redeemed'),
        ('adjusted', 'Adjusted'),
        ('expired', 'Expired'),
    ]

    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name='point_transactions')
    points = models.IntegerField(help_text="Positive when points are added, negative when taken")
    transaction_type = models.CharField(max_length=10, choices=TRANSACTION_TYPES, default='adjusted')
    description = models.CharField(max_length=200, blank=True)
    balance_after = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        verbose_name = "Point Transaction"
        verbose_name_plural = "Point Transactions"

    def __str__(self):
        return f"{self.customer.name} {self.points:+d} ({self.transaction_type})"

    def to_dict(self):
        return {
            'id': self.pk,
            'customer_id': self.customer_id,
            'customer_name': self.customer.name,
            'points': self.points,
            'type': self.transaction_type,
            'description': self.description,
            'balance_after': self.balance_after,
            'created_at': _iso(self.created_at),
        }


class Order(models.Model):
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('in_progress', 'In progress'),
        ('confirmed', 'Confirmed'),
        ('preparing', 'Preparing'),
        ('ready', 'Ready'),
        ('served', 'Served'),
        ('paid', 'Paid'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]
    PAYMENT_METHODS = [
        ('cash', 'Cash'),
        ('creditCard', 'Credit card'),
        ('debitCard', 'Debit card'),
        ('card', 'Bank transfer'),
        ('momo', 'MoMo'),
        ('zalopay', 'ZaloPay'),
        ('vnpay', 'VNPay'),
        ('qrCode', 'QR code'),
        ('shopeepay', 'ShopeePay'),
        ('grabpay', 'GrabPay'),
    ]

    order_number = models.CharField(max_length=50, unique=True)
    table_id = models.IntegerField(blank=True, null=True, help_text="Empty for takeaway orders")
    employee = models.ForeignKey(Employee, on_delete=models.SET_NULL, blank=True, null=True, related_name='orders')
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, blank=True, null=True, related_name='orders')
    customer_name = models.CharField(max_length=200, blank=True, null=True, help_text="Customer name for walk-in customers")
    customer_count = models.PositiveIntegerField(default=1)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')

    # Totals
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    discount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=ZERO,
        validators=[MinValueValidator(ZERO)],
    )
    tax = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    total = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    price_include_tax = models.BooleanField(default=False, help_text="Item prices already include tax")

    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHODS, default='cash')
    sales_channel = models.CharField(max_length=20, default='pos')
    notes = models.TextField(blank=True, null=True)
    ordered_at = models.DateTimeField(default=timezone.now)
    paid_at = models.DateTimeField(blank=True, null=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-ordered_at']
        verbose_name = "Order"
        verbose_name_plural = "Orders"

    def __str__(self):
        return f"Order {self.order_number} - {self.get_customer_display_name()}"

    def get_customer_display_name(self):
        """Get customer name for display"""
        if self.customer:
            return self.customer.name
        return self.customer_name or "Walk-in Customer"

    def recalculate_totals(self):
        """
        Recalculate subtotal, tax and total from the items.

        Tax-inclusive orders store the discounted amount as subtotal and
        extract the tax already contained in it; tax-exclusive orders store
        the undiscounted amount as subtotal and add tax on top of the
        discounted amount.
        """
        items = list(self.items.all())
        items_amount = sum((item.line_amount for item in items), ZERO)
        discount = min(self.discount, items_amount)
        share = self.discount_share(items_amount)

        tax = ZERO
        for item in items:
            net_line = item.line_amount * share
            if self.price_include_tax:
                item_tax = net_line - net_line / (1 + item.tax_rate / 100)
            else:
                item_tax = net_line * item.tax_rate / 100
            item.tax = _money(item_tax)
            item.total = _money(item.line_amount)
            item.save(update_fields=['tax', 'total'])
            tax += item.tax

        if self.price_include_tax:
            self.subtotal = _money(items_amount - discount)
            self.tax = tax
            self.total = self.subtotal
        else:
            self.subtotal = _money(items_amount)
            self.tax = tax
            self.total = _money(items_amount - discount + tax)
        self.save(update_fields=['subtotal', 'tax', 'total', 'updated_at'])

    def discount_share(self, items_amount=None):
        """Fraction of each line amount left after the order discount"""
        if items_amount is None:
            items_amount = sum((item.line_amount for item in self.items.all()), ZERO)
        if not items_amount:
            return ZERO
        return (items_amount - min(self.discount, items_amount)) / items_amount

    def restock_items(self):
        """Return stock for every tracked product on this order"""
        for item in self.items.select_related('product'):
            if item.product and item.product.track_inventory:
                item.product.adjust_stock(
                    item.quantity,
                    reason='return',
                    reference=f"Order {self.order_number} (cancelled)"
                )

    def as_record(self):
        """Flat record consumed by the reporting layer"""
        return {
            'id': self.pk,
            'order_number': self.order_number,
            'status': self.status,
            'table_id': self.table_id,
            'employee_id': self.employee_id,
            'employee_name': self.employee.name if self.employee else None,
            'customer_id': self.customer_id,
            'customer_name': self.customer.name if self.customer else self.customer_name,
            'customer_count': self.customer_count,
            'subtotal': str(self.subtotal),
            'discount': str(self.discount),
            'tax': str(self.tax),
            'total': str(self.total),
            'price_include_tax': self.price_include_tax,
            'payment_method': self.payment_method,
            'sales_channel': self.sales_channel,
            'notes': self.notes,
            'ordered_at': _iso(self.ordered_at),
            'paid_at': _iso(self.paid_at),
            'updated_at': _iso(self.updated_at),
        }


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, blank=True, null=True, related_name='order_items')
    product_name = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(ZERO)])
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=ZERO)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    total = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    notes = models.CharField(max_length=255, blank=True, null=True)

    class Meta:
        verbose_name = "Order Item"
        verbose_name_plural = "Order Items"

    def __str__(self):
        return f"{self.product_name} (Qty: {self.quantity})"

    @property
    def line_amount(self):
        """Unit price times quantity, less the line discount"""
        return max(ZERO, self.unit_price * self.quantity - self.discount)

    def save(self, *args, **kwargs):
        if self.product and not self.product_name:
            self.product_name = self.product.name
        super().save(*args, **kwargs)

    def as_record(self):
        return {
            'id': self.pk,
            'order_id': self.order_id,
            'product_id': self.product_id,
            'product_name': self.product_name,
            'category_id': self.product.category_id if self.product else None,
            'quantity': self.quantity,
            'unit_price': str(self.unit_price),
            'tax_rate': str(self.tax_rate),
            'discount': str(self.discount),
            'tax': str(self.tax),
            'total': str(self.total),
            'notes': self.notes,
        }


class Invoice(models.Model):
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('published', 'Published'),
        ('cancelled', 'Cancelled'),
    ]
    EINVOICE_STATUS_CHOICES = [
        (0, 'Not issued'),
        (1, 'Issued'),
        (2, 'Draft created'),
        (3, 'Approved'),
        (4, 'Replaced'),
        (5, 'Temporary replacement'),
        (6, 'Replacement'),
        (7, 'Adjusted'),
        (8, 'Temporary adjustment'),
        (9, 'Adjustment'),
        (10, 'Cancelled'),
    ]
    PAYMENT_METHODS = [
        ('1', 'Cash'),
        ('2', 'Bank transfer'),
        ('3', 'Cash / bank transfer'),
        ('4', 'Debt offset'),
    ]

    invoice_number = models.CharField(max_length=50, unique=True)
    trade_number = models.CharField(max_length=50, blank=True, default='')
    template_number = models.CharField(max_length=20, blank=True, null=True)
    symbol = models.CharField(max_length=20, blank=True, null=True)
    order = models.ForeignKey(Order, on_delete=models.SET_NULL, blank=True, null=True, related_name='invoices')

    customer_name = models.CharField(max_length=200, default="Walk-in Customer")
    customer_tax_code = models.CharField(max_length=20, blank=True, null=True)
    customer_address = models.TextField(blank=True, null=True)
    customer_phone = models.CharField(max_length=20, blank=True, null=True)
    customer_email = models.EmailField(blank=True, null=True)

    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    tax = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    total = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)

    payment_method = models.CharField(max_length=2, choices=PAYMENT_METHODS, default='1')
    invoice_date = models.DateTimeField(default=timezone.now)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    einvoice_status = models.PositiveSmallIntegerField(choices=EINVOICE_STATUS_CHOICES, default=0)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = "Invoice"
        verbose_name_plural = "Invoices"

    def __str__(self):
        return f"Invoice {self.invoice_number} - {self.customer_name}"

    def calculate_totals(self):
        """Calculate invoice totals from items"""
        subtotal = ZERO
        tax = ZERO
        for item in self.items.all():
            subtotal += item.total
            tax += _money(item.total * item.tax_rate / 100)
        self.subtotal = subtotal
        self.tax = tax
        self.total = subtotal + tax
        self.save(update_fields=['subtotal', 'tax', 'total', 'updated_at'])

    @classmethod
    def from_order(cls, order, template=None, number=None):
        """Copy an order into a draft invoice"""
        from profiles.models import StoreProfile

        customer = order.customer
        invoice = cls.objects.create(
            invoice_number=number or StoreProfile.next_invoice_number(),
            trade_number=order.order_number,
            template_number=template.template_number if template else None,
            symbol=template.symbol if template else None,
            order=order,
            customer_name=order.get_customer_display_name(),
            customer_tax_code=customer.tax_code if customer else None,
            customer_address=customer.address if customer else None,
            customer_phone=customer.phone if customer else None,
            customer_email=customer.email if customer else None,
            subtotal=order.total - order.tax,
            tax=order.tax,
            total=order.total,
            payment_method='1' if order.payment_method == 'cash' else '2',
        )
        share = order.discount_share()
        for item in order.items.all():
            line_total = item.line_amount * share
            if order.price_include_tax:
                line_total -= item.tax
            InvoiceItem.objects.create(
                invoice=invoice,
                product=item.product,
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price=_money(line_total / item.quantity),
                total=_money(line_total),
                tax_rate=item.tax_rate,
            )
        return invoice

    def to_dict(self):
        return {
            'id': self.pk,
            'invoice_number': self.invoice_number,
            'trade_number': self.trade_number,
            'template_number': self.template_number,
            'symbol': self.symbol,
            'order_id': self.order_id,
            'customer_name': self.customer_name,
            'customer_tax_code': self.customer_tax_code,
            'customer_address': self.customer_address,
            'customer_phone': self.customer_phone,
            'customer_email': self.customer_email,
            'subtotal': float(self.subtotal),
            'tax': float(self.tax),
            'total': float(self.total),
            'payment_method': self.payment_method,
            'payment_method_name': self.get_payment_method_display(),
            'invoice_date': _iso(self.invoice_date),
            'status': self.status,
            'einvoice_status': self.einvoice_status,
            'einvoice_status_name': self.get_einvoice_status_display(),
            'notes': self.notes,
            'created_at': _iso(self.created_at),
        }


class InvoiceItem(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, blank=True, null=True)
    product_name = models.CharField(max_length=300)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, help_text="Unit price excluding tax")
    total = models.DecimalField(max_digits=14, decimal_places=2, help_text="Line amount excluding tax")
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=ZERO, help_text="Tax rate percentage")

    class Meta:
        verbose_name = "Invoice Item"
        verbose_name_plural = "Invoice Items"

    def __str__(self):
        return f"{self.product_name} (Qty: {self.quantity})"

    def to_dict(self):
        return {
            'id': self.pk,
            'invoice_id': self.invoice_id,
            'product_id': self.product_id,
            'product_name': self.product_name,
            'quantity': self.quantity,
            'unit_price': float(self.unit_price),
            'total': float(self.total),
            'tax_rate': float(self.tax_rate),
        }
