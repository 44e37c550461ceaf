from django.db import models
from django.contrib.auth.models import User
from decimal import Decimal


class Debtor(models.Model):
    """A customer buying on credit (madeni), one row per phone per store"""
    STATUS_CHOICES = [
        ('ACTIVE', 'Active'),
        ('PARTIAL', 'Partially Paid'),
        ('SETTLED', 'Settled'),
    ]

    store = models.ForeignKey('core.Store', on_delete=models.CASCADE, related_name='debtors')
    customer_name = models.CharField(max_length=200)
    customer_phone = models.CharField(max_length=15)
    total_debt = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='ACTIVE')
    last_sale_date = models.DateTimeField(null=True, blank=True)
    last_payment_date = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-total_debt', 'customer_name']
        constraints = [
            models.UniqueConstraint(fields=['store', 'customer_phone'], name='unique_debtor_phone_per_store'),
        ]
        indexes = [
            models.Index(fields=['store', 'status'], name='debtor_store_status_idx'),
        ]

    def __str__(self):
        return f"{self.customer_name} ({self.customer_phone}) owes KES {self.total_debt}"

    @property
    def is_settled(self):
        return self.total_debt <= Decimal('0')


class DebtPayment(models.Model):
    METHOD_CHOICES = [
        ('CASH', 'Cash'),
        ('MPESA', 'M-Pesa'),
        ('CARD', 'Card'),
        ('BANK', 'Bank Transfer'),
    ]

    debtor = models.ForeignKey(Debtor, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    method = models.CharField(max_length=10, choices=METHOD_CHOICES, default='CASH')
    balance_after = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    recorded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    note = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"KES {self.amount} from {self.debtor.customer_name}"
