from django.db import models
from django.contrib.auth.models import User


class BlindClose(models.Model):
    """
    End of day cash count by staff. The expected amount is stored here
    but never shown to the staff member who counted.
    """
    TYPE_CHOICES = [
        ('SHORTAGE', 'Shortage'),
        ('OVERAGE', 'Overage'),
        ('BALANCED', 'Balanced'),
    ]

    store = models.ForeignKey('core.Store', on_delete=models.CASCADE, related_name='blind_closes')
    close_date = models.DateField()
    expected_cash = models.DecimalField(max_digits=12, decimal_places=2)
    counted_cash = models.DecimalField(max_digits=12, decimal_places=2)
    discrepancy_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    discrepancy_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default='BALANCED')
    staff = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='blind_closes')
    verified_by_owner = models.BooleanField(default=False)
    verified_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='verified_blind_closes')
    verified_at = models.DateTimeField(null=True, blank=True)
    owner_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-close_date']
        constraints = [
            models.UniqueConstraint(fields=['store', 'close_date'], name='one_blind_close_per_store_day'),
        ]
        indexes = [
            models.Index(fields=['store', 'verified_by_owner', 'close_date'], name='blindclose_unverified_idx'),
        ]

    def __str__(self):
        return f"{self.store.name} close {self.close_date} ({self.discrepancy_type})"


class CashAudit(models.Model):
    """Owner reconciliation of the cash register against expected closing"""
    CATEGORY_CHOICES = [
        ('OVERAGE', 'Overage'),
        ('SHORTAGE', 'Shortage'),
        ('NORMAL', 'Normal'),
    ]

    SEVERITY_CHOICES = [
        ('HIGH', 'High'),
        ('MEDIUM', 'Medium'),
        ('LOW', 'Low'),
    ]

    store = models.ForeignKey('core.Store', on_delete=models.CASCADE, related_name='cash_audits')
    register_date = models.DateField()
    opening_balance = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    expected_closing = models.DecimalField(max_digits=12, decimal_places=2)
    actual_closing = models.DecimalField(max_digits=12, decimal_places=2)
    variance_amount = models.DecimalField(max_digits=12, decimal_places=2)
    variance_percentage = models.DecimalField(max_digits=8, decimal_places=2)
    is_fraud_suspect = models.BooleanField(default=False)
    fraud_category = models.CharField(max_length=10, choices=CATEGORY_CHOICES, default='NORMAL')
    severity = models.CharField(max_length=10, choices=SEVERITY_CHOICES, default='LOW')
    reconciled_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    reconciled_at = models.DateTimeField(auto_now_add=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ['-register_date', '-reconciled_at']
        indexes = [
            models.Index(fields=['store', 'register_date'], name='cashaudit_store_date_idx'),
        ]

    def __str__(self):
        return f"Cash audit {self.register_date}: {self.variance_percentage}% {self.fraud_category}"


class MpesaReconciliation(models.Model):
    """M-Pesa money received over a period matched against the sales it paid for"""
    STATUS_CHOICES = [
        ('RECONCILED', 'Reconciled'),
        ('ISSUES_FOUND', 'Issues Found'),
    ]

    store = models.ForeignKey('core.Store', on_delete=models.CASCADE, related_name='mpesa_reconciliations')
    period_start = models.DateField()
    period_end = models.DateField()
    total_deposits = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    matched_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    unmatched_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    matched_count = models.IntegerField(default=0)
    unmatched_count = models.IntegerField(default=0)
    variance_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    flagged_count = models.IntegerField(default=0)
    status = models.CharField(max_length=15, choices=STATUS_CHOICES, default='RECONCILED')
    details = models.JSONField(default=dict, blank=True)
    reconciled_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-period_end', '-created_at']

    def __str__(self):
        return f"M-Pesa reconciliation {self.period_start} to {self.period_end} ({self.status})"
