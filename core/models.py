from django.db import models
from django.db.models import Q
from django.contrib.auth.models import User
from django.contrib.auth.hashers import make_password, check_password
from django.core.validators import MinValueValidator
from django.core.exceptions import ValidationError
from decimal import Decimal
import uuid
from datetime import date


class Store(models.Model):
    BUSINESS_TYPES = [
        ('HARDWARE', 'Hardware'),
        ('WINES', 'Wines & Spirits'),
        ('SALON', 'Salon'),
        ('CHEMIST', 'Chemist'),
        ('COSMETICS', 'Cosmetics'),
        ('BROKERAGE', 'Brokerage'),
        ('WHOLESALER', 'Wholesaler'),
        ('BOUTIQUE', 'Boutique'),
        ('PHARMACY', 'Pharmacy'),
        ('GENERAL', 'General Shop'),
        ('OTHER', 'Other'),
    ]

    TIER_CHOICES = [
        ('BASIC', 'Basic'),
        ('PREMIUM', 'Premium'),
    ]

    name = models.CharField(max_length=200)
    location = models.CharField(max_length=200, blank=True)
    business_type = models.CharField(max_length=20, choices=BUSINESS_TYPES, default='GENERAL')
    access_code = models.CharField(max_length=20, unique=True)
    owner_pin = models.CharField(max_length=128, blank=True)
    owner = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='owned_stores')
    tier = models.CharField(max_length=10, choices=TIER_CHOICES, blank=True)
    phone = models.CharField(max_length=15, blank=True)
    email = models.EmailField(blank=True)
    currency = models.CharField(max_length=3, default='KES')
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    theme_color = models.CharField(max_length=20, blank=True)
    is_demo = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    is_suspended = models.BooleanField(default=False)
    suspension_reason = models.CharField(max_length=200, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.access_code})"

    def save(self, *args, **kwargs):
        self.access_code = (self.access_code or '').strip().upper()
        if not self.access_code:
            self.access_code = uuid.uuid4().hex[:6].upper()
        super().save(*args, **kwargs)

    def set_owner_pin(self, raw_pin):
        self.owner_pin = make_password(str(raw_pin))

    def check_owner_pin(self, raw_pin):
        if not self.owner_pin or not raw_pin:
            return False
        return check_password(str(raw_pin), self.owner_pin)


class Profile(models.Model):
    ROLE_CHOICES = [
        ('SUPER_ADMIN', 'Super Admin'),
        ('STORE_OWNER', 'Store Owner'),
        ('ADMIN', 'Store Admin'),
        ('STAFF', 'Staff'),
    ]

    user = models.OneToOneField(User, on_delete=models.CASCADE)
    store = models.ForeignKey(Store, on_delete=models.SET_NULL, null=True, blank=True, related_name='staff')
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='STAFF')
    phone = models.CharField(max_length=15, blank=True)
    total_shrinkage_debt = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    acknowledged_shrinkage_debt = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    hire_date = models.DateField(auto_now_add=True)

    def __str__(self):
        return f"{self.user.get_full_name() or self.user.username} - {self.role}"


class Category(models.Model):
    store = models.ForeignKey(Store, on_delete=models.CASCADE, related_name='categories')
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "Categories"
        ordering = ['name']
        unique_together = ['store', 'name']

    def __str__(self):
        return self.name


class Supplier(models.Model):
    store = models.ForeignKey(Store, on_delete=models.CASCADE, related_name='suppliers')
    name = models.CharField(max_length=200)
    contact_person = models.CharField(max_length=100, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=15, blank=True)
    address = models.TextField(blank=True)
    tax_id = models.CharField(max_length=50, blank=True)
    payment_terms = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class Product(models.Model):
    store = models.ForeignKey(Store, on_delete=models.CASCADE, related_name='products')
    sku = models.CharField(max_length=50, blank=True, verbose_name="SKU")
    barcode = models.CharField(max_length=100, blank=True)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True)
    supplier = models.ForeignKey(Supplier, on_delete=models.SET_NULL, null=True, blank=True)
    cost_price = models.DecimalField(max_digits=10, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    selling_price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    quantity = models.IntegerField(default=0, validators=[MinValueValidator(0)])
    low_stock_threshold = models.IntegerField(default=10)
    reorder_quantity = models.IntegerField(default=25)
    expiry_date = models.DateField(null=True, blank=True)
    batch_number = models.CharField(max_length=100, blank=True)
    image = models.ImageField(upload_to='products/', blank=True)

    # Breaking bulk
    bulk_unit_name = models.CharField(max_length=50, blank=True)
    breakout_unit_name = models.CharField(max_length=50, blank=True)
    conversion_rate = models.PositiveIntegerField(null=True, blank=True)
    parent = models.ForeignKey('self', on_delete=models.CASCADE, null=True, blank=True, related_name='breakout_products')
    is_bulk_parent = models.BooleanField(default=False)

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        indexes = [
            models.Index(fields=['store', 'sku'], name='product_store_sku_idx'),
            models.Index(fields=['store', 'barcode'], name='product_store_barcode_idx'),
            models.Index(fields=['name'], name='product_name_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['store', 'barcode'],
                condition=~Q(barcode=''),
                name='unique_barcode_per_store',
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.sku})" if self.sku else self.name

    def clean(self):
        if self.cost_price is not None and self.selling_price is not None and self.cost_price > self.selling_price:
            raise ValidationError('Cost price cannot be greater than selling price')

        if self.barcode and self.store_id:
            clash = Product.objects.filter(
                store_id=self.store_id, barcode__iexact=self.barcode.strip()
            ).exclude(pk=self.pk)
            if clash.exists():
                raise ValidationError(f'Barcode {self.barcode} is already used by another product in this store')

    def save(self, *args, **kwargs):
        self.barcode = (self.barcode or '').strip()
        super().save(*args, **kwargs)

    def adjust_stock(self, change, transaction_type, user=None, reference='', notes=''):
        """Apply a stock change and record it. Stock never drops below zero."""
        previous = self.quantity
        self.quantity = max(previous + change, 0)
        self.save(update_fields=['quantity', 'updated_at'])
        return StockTransaction.objects.create(
            product=self,
            transaction_type=transaction_type,
            quantity=change,
            previous_quantity=previous,
            new_quantity=self.quantity,
            unit_cost=self.cost_price,
            total_cost=abs(change) * self.cost_price,
            reference=reference,
            notes=notes,
            created_by=user,
        )

    @property
    def is_breakout(self):
        return self.parent_id is not None

    @property
    def profit_margin(self):
        if self.cost_price > 0:
            return ((self.selling_price - self.cost_price) / self.cost_price) * 100
        return 0

    @property
    def profit_per_unit(self):
        return self.selling_price - self.cost_price

    @property
    def is_low_stock(self):
        return self.quantity <= self.low_stock_threshold

    @property
    def needs_reorder(self):
        return self.quantity <= self.reorder_quantity

    @property
    def total_value(self):
        return self.quantity * self.cost_price


class Sale(models.Model):
    PAYMENT_METHODS = [
        ('CASH', 'Cash'),
        ('MPESA', 'M-Pesa'),
        ('CARD', 'Card'),
        ('MADENI', 'Madeni (Credit)'),
        ('BANK', 'Bank Transfer'),
    ]

    STATUS_CHOICES = [
        ('PENDING', 'Pending Payment'),
        ('COMPLETED', 'Completed'),
        ('CANCELLED', 'Cancelled'),
        ('VOIDED', 'Voided'),
    ]

    PAYMENT_STATUS_CHOICES = [
        ('PAID', 'Paid'),
        ('PENDING', 'Pending'),
        ('PARTIAL', 'Partially Paid'),
    ]

    store = models.ForeignKey(Store, on_delete=models.CASCADE, related_name='sales')
    invoice_number = models.CharField(max_length=50, unique=True)
    cashier = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='sales_made')
    customer_name = models.CharField(max_length=200, blank=True)
    customer_phone = models.CharField(max_length=15, blank=True)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    amount_tendered = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    change_due = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    payment_method = models.CharField(max_length=10, choices=PAYMENT_METHODS)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='PENDING')
    payment_status = models.CharField(max_length=10, choices=PAYMENT_STATUS_CHOICES, default='PENDING')
    mpesa_checkout_id = models.CharField(max_length=100, blank=True)
    mpesa_receipt = models.CharField(max_length=50, blank=True)
    mpesa_phone = models.CharField(max_length=15, blank=True)
    collected_by = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    voided_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='sales_voided')
    voided_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['invoice_number'], name='sale_invoice_idx'),
            models.Index(fields=['store', 'created_at'], name='sale_store_created_idx'),
            models.Index(fields=['status'], name='sale_status_idx'),
            models.Index(fields=['payment_method'], name='sale_payment_method_idx'),
        ]

    def __str__(self):
        return f"Invoice #{self.invoice_number}"

    def save(self, *args, **kwargs):
        if not self.invoice_number:
            self.invoice_number = f"INV-{date.today().strftime('%Y%m')}-{uuid.uuid4().hex[:6].upper()}"
        super().save(*args, **kwargs)

    @property
    def payment_label(self):
        return PAYMENT_LABELS.get(self.payment_method, self.payment_method)

    @property
    def profit(self):
        profit = Decimal('0')
        for item in self.items.all():
            profit += item.profit
        return profit

    @property
    def items_count(self):
        return sum(item.quantity for item in self.items.all())


PAYMENT_LABELS = {
    'CASH': 'CASH',
    'CARD': 'CARD',
    'MPESA': 'M-PESA',
    'MADENI': 'MADENI (Credit)',
    'BANK': 'BANK',
}


class SaleItem(models.Model):
    sale = models.ForeignKey(Sale, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True)
    product_name = models.CharField(max_length=200)  # Store name in case product is deleted
    product_sku = models.CharField(max_length=50, blank=True)
    product_barcode = models.CharField(max_length=100, blank=True)
    quantity = models.IntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    cost_price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    total_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    batch_allocations = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return f"{self.product_name} x {self.quantity}"

    def save(self, *args, **kwargs):
        if self.product:
            self.product_name = self.product.name
            self.product_sku = self.product.sku
            self.product_barcode = self.product.barcode
            self.cost_price = self.product.cost_price
        self.total_price = self.unit_price * self.quantity
        super().save(*args, **kwargs)

    @property
    def profit(self):
        return (self.unit_price - self.cost_price) * self.quantity


class StockTransaction(models.Model):
    TRANSACTION_TYPES = [
        ('PURCHASE', 'Stock Purchase'),
        ('SALE', 'Sale'),
        ('ADJUSTMENT', 'Stock Adjustment'),
        ('RETURN', 'Customer Return'),
        ('DAMAGE', 'Damaged Goods'),
        ('BREAKOUT', 'Bulk Breakout'),
        ('EXPIRED', 'Expired Goods'),
        ('SHRINKAGE', 'Shrinkage'),
    ]

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='transactions')
    transaction_type = models.CharField(max_length=20, choices=TRANSACTION_TYPES)
    quantity = models.IntegerField()
    previous_quantity = models.IntegerField()
    new_quantity = models.IntegerField()
    unit_cost = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    total_cost = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    reference = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['product', 'created_at'], name='stocktx_product_created_idx'),
            models.Index(fields=['transaction_type'], name='stocktx_type_idx'),
        ]

    def __str__(self):
        return f"{self.product.name} - {self.transaction_type}"


class PurchaseOrder(models.Model):
    STATUS_CHOICES = [
        ('DRAFT', 'Draft'),
        ('SUBMITTED', 'Submitted'),
        ('APPROVED', 'Approved'),
        ('RECEIVED', 'Received'),
        ('CANCELLED', 'Cancelled'),
    ]

    store = models.ForeignKey(Store, on_delete=models.CASCADE, related_name='purchase_orders')
    po_number = models.CharField(max_length=50, unique=True)
    supplier = models.ForeignKey(Supplier, on_delete=models.CASCADE, related_name='purchase_orders')
    order_date = models.DateField(auto_now_add=True)
    expected_date = models.DateField(null=True, blank=True)
    received_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='DRAFT')
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"PO #{self.po_number}"

    def save(self, *args, **kwargs):
        if not self.po_number:
            self.po_number = f"PO-{date.today().strftime('%Y%m')}-{uuid.uuid4().hex[:6].upper()}"
        super().save(*args, **kwargs)

    def recalculate_total(self):
        self.total_amount = sum((item.total_cost for item in self.items.all()), Decimal('0'))
        self.save(update_fields=['total_amount', 'updated_at'])


class PurchaseOrderItem(models.Model):
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.CASCADE)
    quantity = models.IntegerField(validators=[MinValueValidator(1)])
    unit_cost = models.DecimalField(max_digits=10, decimal_places=2)
    total_cost = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    received_quantity = models.IntegerField(default=0)
    expiry_date = models.DateField(null=True, blank=True)
    batch_number = models.CharField(max_length=100, blank=True)

    def __str__(self):
        return f"{self.product.name} x {self.quantity}"

    def save(self, *args, **kwargs):
        self.total_cost = self.quantity * self.unit_cost
        super().save(*args, **kwargs)


class Expense(models.Model):
    CATEGORY_CHOICES = [
        ('TRANSPORT', 'Transport'),
        ('FOOD', 'Food'),
        ('AIRTIME', 'Airtime'),
        ('UTILITIES', 'Utilities'),
        ('RENT', 'Rent'),
        ('SUPPLIES', 'Supplies'),
        ('MAINTENANCE', 'Maintenance'),
        ('OTHER', 'Other'),
    ]

    store = models.ForeignKey(Store, on_delete=models.CASCADE, related_name='expenses')
    expense_number = models.CharField(max_length=50, unique=True)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES)
    description = models.CharField(max_length=200)
    amount = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0.01'))])
    date = models.DateField(default=date.today)
    recorded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-date', '-created_at']

    def __str__(self):
        return f"{self.expense_number} - {self.description}"

    def save(self, *args, **kwargs):
        if not self.expense_number:
            self.expense_number = f"EXP-{date.today().strftime('%Y%m')}-{uuid.uuid4().hex[:6].upper()}"
        super().save(*args, **kwargs)


class Notification(models.Model):
    TYPE_CHOICES = [
        ('STOCK', 'Low Stock'),
        ('EXPIRY', 'Expiry Alert'),
        ('SALE', 'Sale'),
        ('PURCHASE', 'Purchase Order'),
        ('CASH_CLOSE', 'Cash Close'),
        ('SHRINKAGE', 'Shrinkage'),
        ('DEBT', 'Debtors'),
        ('SUBSCRIPTION', 'Subscription'),
        ('SYSTEM', 'System Alert'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, null=True, blank=True)
    store = models.ForeignKey(Store, on_delete=models.CASCADE, null=True, blank=True, related_name='notifications')
    notification_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    title = models.CharField(max_length=200)
    message = models.TextField()
    is_read = models.BooleanField(default=False)
    link = models.CharField(max_length=200, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return self.title


class AuditLog(models.Model):
    """Append-only trail of money and stock sensitive actions"""
    ACTION_TYPES = [
        ('DEBTOR_CREATED', 'Debtor Created'),
        ('DEBT_UPDATED', 'Debt Updated'),
        ('DEBT_PAYMENT', 'Debt Payment'),
        ('DEBT_FORGIVEN', 'Debt Forgiven'),
        ('REMINDER_SENT', 'Reminder Sent'),
        ('CASH_CLOSE', 'Cash Close'),
        ('CASH_CLOSE_VERIFIED', 'Cash Close Verified'),
        ('CASH_AUDIT', 'Cash Audit'),
        ('SHRINKAGE_RECORDED', 'Shrinkage Recorded'),
        ('SHRINKAGE_UPDATED', 'Shrinkage Updated'),
        ('STOCK_AUDIT', 'Stock Audit'),
        ('SALE_VOIDED', 'Sale Voided'),
        ('TIER_CHANGED', 'Tier Changed'),
        ('STORE_CREATED', 'Store Created'),
        ('STORE_UPDATED', 'Store Updated'),
        ('PAYMENT_LINKED', 'Payment Linked'),
    ]

    store = models.ForeignKey(Store, on_delete=models.CASCADE, null=True, blank=True, related_name='audit_logs')
    action_type = models.CharField(max_length=30, choices=ACTION_TYPES)
    resource_type = models.CharField(max_length=50)
    resource_id = models.CharField(max_length=100, blank=True)
    actor = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    actor_name = models.CharField(max_length=150)
    actor_role = models.CharField(max_length=20)
    customer_name = models.CharField(max_length=200, blank=True)
    customer_phone = models.CharField(max_length=15, blank=True)
    old_value = models.JSONField(null=True, blank=True)
    new_value = models.JSONField(null=True, blank=True)
    change_description = models.TextField()
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['store', 'created_at'], name='audit_store_created_idx'),
            models.Index(fields=['resource_type', 'resource_id'], name='audit_resource_idx'),
            models.Index(fields=['action_type'], name='audit_action_idx'),
        ]

    def __str__(self):
        return f"{self.action_type} by {self.actor_name}"


# Registers the M-Pesa models with the core app
from .mpesa_models import MpesaTransaction, MpesaCallback  # noqa: E402,F401
