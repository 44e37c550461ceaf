"""
M-Pesa Transaction Models
"""
from django.db import models
from django.contrib.auth.models import User
from django.utils import timezone
import uuid


class MpesaTransaction(models.Model):
    """
    Tracks every STK push we send, whether it pays for a POS sale
    or a DukaBook subscription.
    """

    TRANSACTION_TYPES = [
        ('STK_PUSH', 'STK Push'),
        ('C2B', 'Customer to Business'),
    ]

    PURPOSE_CHOICES = [
        ('SALE', 'POS Sale'),
        ('SUBSCRIPTION', 'Subscription Payment'),
    ]

    STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('SUCCESS', 'Success'),
        ('FAILED', 'Failed'),
        ('CANCELLED', 'Cancelled'),
        ('TIMEOUT', 'Timeout'),
    ]

    # Transaction details
    transaction_id = models.CharField(max_length=50, unique=True, default=uuid.uuid4)
    merchant_request_id = models.CharField(max_length=100, blank=True)
    checkout_request_id = models.CharField(max_length=100, blank=True)

    # Payment details
    transaction_type = models.CharField(max_length=20, choices=TRANSACTION_TYPES, default='STK_PUSH')
    purpose = models.CharField(max_length=20, choices=PURPOSE_CHOICES, default='SALE')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    phone_number = models.CharField(max_length=15)
    account_reference = models.CharField(max_length=50)
    transaction_desc = models.CharField(max_length=100)
    plan_id = models.CharField(max_length=50, blank=True)

    # M-Pesa response
    mpesa_receipt_number = models.CharField(max_length=50, blank=True)
    result_code = models.IntegerField(null=True, blank=True)
    result_description = models.TextField(blank=True)
    response_code = models.CharField(max_length=10, blank=True)
    response_description = models.TextField(blank=True)

    # Status
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='PENDING')
    is_complete = models.BooleanField(default=False)
    raw_response = models.JSONField(null=True, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    # Relations
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    store = models.ForeignKey('Store', on_delete=models.CASCADE, null=True, blank=True, related_name='mpesa_transactions')
    sale = models.ForeignKey('Sale', on_delete=models.SET_NULL, null=True, blank=True, related_name='mpesa_transactions')

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['checkout_request_id'], name='mpesa_checkout_idx'),
            models.Index(fields=['mpesa_receipt_number'], name='mpesa_receipt_idx'),
            models.Index(fields=['status'], name='mpesa_status_idx'),
            models.Index(fields=['created_at'], name='mpesa_created_idx'),
        ]

    def __str__(self):
        return f"MPesa {self.transaction_type} - {self.transaction_id}"

    def mark_success(self, receipt_number=None, result_code=None, result_desc=None):
        """Mark transaction as successful"""
        self.status = 'SUCCESS'
        self.is_complete = True
        self.completed_at = timezone.now()

        if receipt_number:
            self.mpesa_receipt_number = receipt_number
        if result_code is not None:
            self.result_code = result_code
        if result_desc:
            self.result_description = result_desc

        self.save()

    def mark_failed(self, result_code=None, result_desc=None):
        """Mark transaction as failed"""
        self.status = 'FAILED'
        self.is_complete = True
        self.completed_at = timezone.now()

        if result_code is not None:
            self.result_code = result_code
        if result_desc:
            self.result_description = result_desc

        self.save()

    def mark_cancelled(self, result_desc=None):
        self.status = 'CANCELLED'
        self.is_complete = True
        self.completed_at = timezone.now()
        self.result_code = 1032
        if result_desc:
            self.result_description = result_desc
        self.save()

    def to_dict(self):
        return {
            'transaction_id': str(self.transaction_id),
            'transaction_type': self.transaction_type,
            'purpose': self.purpose,
            'amount': str(self.amount),
            'phone_number': self.phone_number,
            'account_reference': self.account_reference,
            'checkout_request_id': self.checkout_request_id,
            'status': self.status,
            'mpesa_receipt_number': self.mpesa_receipt_number,
            'result_code': self.result_code,
            'result_description': self.result_description,
            'sale_id': self.sale_id,
            'plan_id': self.plan_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }


class MpesaCallback(models.Model):
    """
    Raw callback payloads kept for auditing and replay
    """
    CALLBACK_TYPES = [
        ('STK', 'STK Push Callback'),
        ('C2B_VALIDATION', 'C2B Validation'),
        ('C2B_CONFIRMATION', 'C2B Confirmation'),
    ]

    callback_type = models.CharField(max_length=20, choices=CALLBACK_TYPES)
    transaction = models.ForeignKey(MpesaTransaction, on_delete=models.SET_NULL, null=True, blank=True)

    raw_data = models.JSONField()
    result_code = models.IntegerField(null=True, blank=True)
    result_description = models.TextField(blank=True)

    is_processed = models.BooleanField(default=False)
    processed_at = models.DateTimeField(null=True, blank=True)
    processing_notes = models.TextField(blank=True)

    received_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-received_at']
        indexes = [
            models.Index(fields=['callback_type'], name='mpesa_callback_type_idx'),
            models.Index(fields=['is_processed'], name='mpesa_callback_processed_idx'),
        ]

    def __str__(self):
        return f"{self.callback_type} Callback - {self.received_at}"

    def mark_processed(self, notes=''):
        self.is_processed = True
        self.processed_at = timezone.now()
        self.processing_notes = notes
        self.save(update_fields=['is_processed', 'processed_at', 'processing_notes'])
