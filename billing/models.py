from django.db import models
from django.utils import timezone

from .plans import PLAN_CHOICES


class Subscription(models.Model):
    STATUS_CHOICES = [
        ('TRIAL', 'Trial'),
        ('ACTIVE', 'Active'),
        ('EXPIRED', 'Expired'),
        ('SUSPENDED', 'Suspended'),
        ('CANCELLED', 'Cancelled'),
    ]

    store = models.OneToOneField('core.Store', on_delete=models.CASCADE, related_name='subscription')
    plan_id = models.CharField(max_length=30, choices=PLAN_CHOICES)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='TRIAL')
    is_trial = models.BooleanField(default=False)
    current_period_start = models.DateTimeField()
    current_period_end = models.DateTimeField()
    last_payment_date = models.DateTimeField(null=True, blank=True)
    last_payment_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    mpesa_receipt = models.CharField(max_length=50, blank=True)
    payment_method = models.CharField(max_length=30, blank=True)
    payment_reference = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['current_period_end']
        indexes = [
            models.Index(fields=['status', 'current_period_end'], name='subscription_status_end_idx'),
        ]

    def __str__(self):
        return f"{self.store.name}: {self.plan_id} ({self.status})"

    @property
    def is_within_period(self):
        return timezone.now() <= self.current_period_end


class PaymentHistory(models.Model):
    STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('COMPLETED', 'Completed'),
        ('FAILED', 'Failed'),
    ]

    store = models.ForeignKey('core.Store', on_delete=models.CASCADE, related_name='payment_history')
    subscription = models.ForeignKey(Subscription, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments')
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default='KES')
    payment_method = models.CharField(max_length=30)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='COMPLETED')
    plan_id = models.CharField(max_length=30, blank=True)
    mpesa_receipt = models.CharField(max_length=50, blank=True)
    reference = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name_plural = 'Payment history'
        indexes = [
            models.Index(fields=['status', 'paid_at'], name='payment_status_paid_idx'),
        ]

    def __str__(self):
        return f"KES {self.amount} from {self.store.name} ({self.payment_method})"


class PaymentReminder(models.Model):
    TYPE_CHOICES = [
        ('TRIAL_ENDING', 'Trial Ending'),
        ('PAYMENT_DUE', 'Payment Due'),
        ('OVERDUE', 'Overdue'),
        ('FINAL_WARNING', 'Final Warning'),
        ('SUSPENDED', 'Suspended'),
    ]

    store = models.ForeignKey('core.Store', on_delete=models.CASCADE, related_name='payment_reminders')
    subscription = models.ForeignKey(Subscription, on_delete=models.CASCADE, related_name='reminders')
    reminder_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    days_before_due = models.IntegerField(null=True, blank=True)
    days_overdue = models.IntegerField(null=True, blank=True)
    phone_number = models.CharField(max_length=15, blank=True)
    message = models.TextField()
    sms_sent = models.BooleanField(default=False)
    sent_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.reminder_type} to {self.store.name}"


class C2BTransaction(models.Model):
    """A payment made straight to the till, matched to a store by bill reference"""
    STATUS_CHOICES = [
        ('VALIDATING', 'Validating'),
        ('COMPLETED', 'Completed'),
        ('PROCESSED', 'Processed'),
        ('UNMATCHED', 'Unmatched'),
        ('CREDITED', 'Credited'),
    ]

    trans_id = models.CharField(max_length=50, unique=True)
    transaction_type = models.CharField(max_length=30, blank=True)
    trans_time = models.DateTimeField(null=True, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    business_short_code = models.CharField(max_length=20, blank=True)
    bill_ref_number = models.CharField(max_length=50, blank=True)
    msisdn = models.CharField(max_length=20, blank=True)
    first_name = models.CharField(max_length=100, blank=True)
    middle_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)
    store = models.ForeignKey('core.Store', on_delete=models.SET_NULL, null=True, blank=True, related_name='c2b_transactions')
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default='VALIDATING')
    subscription_activated = models.BooleanField(default=False)
    plan_id = models.CharField(max_length=30, blank=True)
    notes = models.TextField(blank=True)
    raw_data = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'C2B transaction'
        indexes = [
            models.Index(fields=['status'], name='c2b_status_idx'),
            models.Index(fields=['bill_ref_number'], name='c2b_bill_ref_idx'),
        ]

    def __str__(self):
        return f"C2B {self.trans_id} KES {self.amount} ({self.status})"

    @property
    def customer_name(self):
        return ' '.join(part for part in [self.first_name, self.middle_name, self.last_name] if part)
