from django.db import models
from django.db.models import Sum
from django.utils import timezone
from decimal import Decimal
import uuid


class InventoryBatch(models.Model):
    """A delivered lot of a product with its own expiry date"""
    STATUS_CHOICES = [
        ('ACTIVE', 'Active'),
        ('EXPIRED', 'Expired'),
        ('DISPOSED', 'Disposed'),
    ]

    store = models.ForeignKey('core.Store', on_delete=models.CASCADE, related_name='batches')
    product = models.ForeignKey('core.Product', on_delete=models.CASCADE, related_name='batches')
    batch_number = models.CharField(max_length=100, blank=True)
    quantity = models.IntegerField(default=0)
    initial_quantity = models.IntegerField(default=0)
    expiry_date = models.DateField(null=True, blank=True)
    cost_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    parent_batch = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='breakout_batches')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='ACTIVE')
    received_by = models.ForeignKey('auth.User', on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['expiry_date', 'created_at']
        verbose_name_plural = 'Inventory batches'
        indexes = [
            models.Index(fields=['product', 'status', 'expiry_date'], name='batch_product_fefo_idx'),
            models.Index(fields=['store', 'expiry_date'], name='batch_store_expiry_idx'),
        ]

    def __str__(self):
        return f"{self.product.name} batch {self.batch_number or self.pk} ({self.quantity})"

    def save(self, *args, **kwargs):
        if not self.batch_number:
            self.batch_number = f"B-{timezone.now().strftime('%Y%m%d')}-{uuid.uuid4().hex[:6].upper()}"
        if self.pk is None and not self.initial_quantity:
            self.initial_quantity = self.quantity
        super().save(*args, **kwargs)

    @property
    def days_to_expiry(self):
        if not self.expiry_date:
            return None
        return (self.expiry_date - timezone.localdate()).days

    @property
    def is_expired(self):
        return self.expiry_date is not None and self.expiry_date < timezone.localdate()

class ExpiryDiscountRule(models.Model):
    """Markdown applied once a batch is within days_before_expiry of its expiry date"""
    store = models.ForeignKey('core.Store', on_delete=models.CASCADE, related_name='expiry_discount_rules')
    days_before_expiry = models.PositiveIntegerField()
    discount_percentage = models.DecimalField(max_digits=5, decimal_places=2)
    auto_apply = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['days_before_expiry']
        unique_together = ['store', 'days_before_expiry']

    def __str__(self):
        return f"{self.discount_percentage}% off within {self.days_before_expiry} days"


class ExpiryClearance(models.Model):
    """Stock moved out of a batch before it spoils"""
    TYPE_CHOICES = [
        ('DISCOUNTED_SALE', 'Discounted Sale'),
        ('DONATION', 'Donation'),
        ('DISPOSED', 'Disposed'),
    ]

    store = models.ForeignKey('core.Store', on_delete=models.CASCADE, related_name='expiry_clearances')
    batch = models.ForeignKey(InventoryBatch, on_delete=models.CASCADE, related_name='clearances')
    product = models.ForeignKey('core.Product', on_delete=models.CASCADE, related_name='expiry_clearances')
    clearance_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    quantity = models.PositiveIntegerField()
    original_price = models.DecimalField(max_digits=10, decimal_places=2)
    clearance_price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    discount_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    days_to_expiry = models.IntegerField(null=True, blank=True)
    cleared_by = models.ForeignKey('auth.User', on_delete=models.SET_NULL, null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['store', 'created_at'], name='clearance_store_created_idx'),
        ]

    def __str__(self):
        return f"{self.quantity} x {self.product.name} {self.get_clearance_type_display().lower()}"

    @property
    def original_value(self):
        return self.original_price * self.quantity

    @property
    def recovered_value(self):
        return self.clearance_price * self.quantity

    @property
    def loss(self):
        return self.original_value - self.recovered_value



class StockAudit(models.Model):
    """Physical stock count against system stock"""
    STATUS_CHOICES = [
        ('IN_PROGRESS', 'In Progress'),
        ('COMPLETED', 'Completed'),
        ('APPLIED', 'Applied to Stock'),
    ]

    store = models.ForeignKey('core.Store', on_delete=models.CASCADE, related_name='stock_audits')
    reference = models.CharField(max_length=50, unique=True)
    audit_date = models.DateField(default=timezone.localdate)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='IN_PROGRESS')
    collected_by = models.CharField(max_length=100, blank=True)
    counted_by = models.ForeignKey('auth.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='stock_audits')
    applied_by = models.ForeignKey('auth.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='applied_stock_audits')
    applied_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Stock Audit {self.reference}"

    def save(self, *args, **kwargs):
        if not self.reference:
            self.reference = f"SA-{timezone.now().strftime('%Y%m%d')}-{uuid.uuid4().hex[:6].upper()}"
        super().save(*args, **kwargs)

    @property
    def items_count(self):
        return self.items.count()

    @property
    def total_debt(self):
        return self.items.aggregate(total=Sum('debt_amount'))['total'] or Decimal('0')


class StockAuditItem(models.Model):
    """One counted product in a stock audit"""
    STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('FLAGGED', 'Flagged'),
        ('RESOLVED', 'Resolved'),
    ]

    audit = models.ForeignKey(StockAudit, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey('core.Product', on_delete=models.CASCADE)
    system_stock = models.IntegerField()
    physical_count = models.IntegerField()
    variance = models.IntegerField(default=0)  # system - physical
    unit_price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    debt_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='PENDING')
    notes = models.TextField(blank=True)

    class Meta:
        unique_together = ['audit', 'product']

    def __str__(self):
        return f"{self.product.name} - System: {self.system_stock}, Counted: {self.physical_count}"

    def save(self, *args, **kwargs):
        self.variance = self.system_stock - self.physical_count
        if self.variance > 0:
            self.debt_amount = self.variance * self.unit_price
            if self.status == 'PENDING':
                self.status = 'FLAGGED'
        else:
            self.debt_amount = Decimal('0')
            if self.status == 'FLAGGED':
                self.status = 'PENDING'
        super().save(*args, **kwargs)

    @property
    def is_shortage(self):
        return self.variance > 0


class ShrinkageDebt(models.Model):
    """Missing stock charged to the staff member accountable for it"""
    STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('ACKNOWLEDGED', 'Acknowledged'),
        ('RESOLVED', 'Resolved'),
        ('DISPUTED', 'Disputed'),
    ]

    store = models.ForeignKey('core.Store', on_delete=models.CASCADE, related_name='shrinkage_debts')
    agent = models.ForeignKey('auth.User', on_delete=models.CASCADE, related_name='shrinkage_debts')
    product = models.ForeignKey('core.Product', on_delete=models.SET_NULL, null=True, blank=True)
    product_name = models.CharField(max_length=200)
    audit = models.ForeignKey(StockAudit, on_delete=models.SET_NULL, null=True, blank=True, related_name='debts')
    audit_item = models.OneToOneField(StockAuditItem, on_delete=models.SET_NULL, null=True, blank=True, related_name='debt')
    quantity_missing = models.IntegerField()
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    total_debt_amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=15, choices=STATUS_CHOICES, default='PENDING')
    notes = models.TextField(blank=True)
    resolved_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    resolved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['store', 'status'], name='shrinkage_store_status_idx'),
            models.Index(fields=['agent', 'status'], name='shrinkage_agent_status_idx'),
        ]

    def __str__(self):
        return f"{self.agent.username} owes KES {self.total_debt_amount} for {self.product_name}"


class SupplierInvoice(models.Model):
    STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('VERIFIED', 'Verified'),
        ('PAID', 'Paid'),
        ('DISPUTED', 'Disputed'),
    ]

    DUE_SOON_DAYS = 7

    store = models.ForeignKey('core.Store', on_delete=models.CASCADE, related_name='supplier_invoices')
    supplier = models.ForeignKey('core.Supplier', on_delete=models.CASCADE, related_name='invoices')
    purchase_order = models.ForeignKey('core.PurchaseOrder', on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices')
    invoice_number = models.CharField(max_length=100)
    invoice_date = models.DateField()
    due_date = models.DateField()
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='PENDING')
    payment_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey('auth.User', on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['due_date']
        unique_together = ['supplier', 'invoice_number']

    def __str__(self):
        return f"{self.supplier.name} invoice {self.invoice_number}"

    def save(self, *args, **kwargs):
        if not self.total_amount:
            self.total_amount = (self.subtotal or 0) + (self.tax_amount or 0)
        super().save(*args, **kwargs)

    @property
    def days_until_due(self):
        return (self.due_date - timezone.localdate()).days

    @property
    def is_overdue(self):
        return self.status != 'PAID' and self.days_until_due < 0

    @property
    def is_due_soon(self):
        return self.status != 'PAID' and 0 <= self.days_until_due <= self.DUE_SOON_DAYS

class SupplierFraudFlag(models.Model):
    """A delivery or invoice from a supplier that does not match what was ordered"""
    TYPE_CHOICES = [
        ('QUANTITY_MISMATCH', 'Quantity Mismatch'),
        ('PRICE_OVERCHARGE', 'Price Overcharge'),
        ('QUALITY_ISSUE', 'Quality Issue'),
        ('DELIVERY_LATE', 'Late Delivery'),
        ('INVOICE_MISMATCH', 'Invoice Mismatch'),
    ]

    SEVERITY_CHOICES = [
        ('CRITICAL', 'Critical'),
        ('HIGH', 'High'),
        ('MEDIUM', 'Medium'),
        ('LOW', 'Low'),
    ]

    store = models.ForeignKey('core.Store', on_delete=models.CASCADE, related_name='supplier_fraud_flags')
    supplier = models.ForeignKey('core.Supplier', on_delete=models.CASCADE, related_name='fraud_flags')
    purchase_order = models.ForeignKey('core.PurchaseOrder', on_delete=models.SET_NULL, null=True, blank=True, related_name='fraud_flags')
    invoice = models.ForeignKey(SupplierInvoice, on_delete=models.SET_NULL, null=True, blank=True, related_name='fraud_flags')
    fraud_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    severity = models.CharField(max_length=10, choices=SEVERITY_CHOICES, default='LOW')
    quantity_ordered = models.IntegerField(default=0)
    quantity_received = models.IntegerField(default=0)
    quantity_variance = models.IntegerField(default=0)  # ordered - received
    variance_percentage = models.DecimalField(max_digits=7, decimal_places=2, default=0)
    price_variance = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    overcharge_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    days_late = models.IntegerField(default=0)
    quality_score = models.PositiveSmallIntegerField(null=True, blank=True)  # 1-10
    description = models.TextField()
    is_resolved = models.BooleanField(default=False)
    resolution_notes = models.TextField(blank=True)
    resolved_by = models.ForeignKey('auth.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='resolved_fraud_flags')
    resolved_at = models.DateTimeField(null=True, blank=True)
    reported_by = models.ForeignKey('auth.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='reported_fraud_flags')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['store', 'is_resolved', 'severity'], name='fraudflag_open_idx'),
        ]

    def __str__(self):
        return f"{self.supplier.name}: {self.get_fraud_type_display()} ({self.severity})"



class InventoryAlert(models.Model):
    """System inventory alerts"""
    TYPE_CHOICES = [
        ('LOW_STOCK', 'Low Stock'),
        ('OUT_OF_STOCK', 'Out of Stock'),
        ('EXPIRING_SOON', 'Expiring Soon'),
        ('EXPIRED', 'Expired'),
        ('BULK_VARIANCE', 'Breaking Bulk Variance'),
    ]

    SEVERITY_CHOICES = [
        ('CRITICAL', 'Critical'),
        ('WARNING', 'Warning'),
        ('INFO', 'Info'),
    ]

    store = models.ForeignKey('core.Store', on_delete=models.CASCADE, related_name='inventory_alerts')
    alert_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    severity = models.CharField(max_length=20, choices=SEVERITY_CHOICES)
    product = models.ForeignKey('core.Product', on_delete=models.CASCADE)
    batch = models.ForeignKey(InventoryBatch, on_delete=models.CASCADE, null=True, blank=True, related_name='alerts')
    message = models.TextField()
    data = models.JSONField(default=dict)  # Additional alert data
    is_resolved = models.BooleanField(default=False)
    resolved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['batch', 'alert_type'], name='one_alert_per_batch_and_type'),
        ]

    def __str__(self):
        return f"{self.get_alert_type_display()} - {self.product.name}"

    @property
    def age_in_days(self):
        return (timezone.now() - self.created_at).days
