from rest_framework import serializers

from .models import Subscription, PaymentHistory, PaymentReminder, C2BTransaction


class SubscriptionSerializer(serializers.ModelSerializer):
    store_name = serializers.CharField(source='store.name', read_only=True)

    class Meta:
        model = Subscription
        fields = [
            'id', 'store', 'store_name', 'plan_id', 'status', 'is_trial', 'current_period_start',
            'current_period_end', 'last_payment_date', 'last_payment_amount', 'mpesa_receipt',
            'payment_method', 'payment_reference',
        ]


class PaymentHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentHistory
        fields = [
            'id', 'amount', 'currency', 'payment_method', 'status', 'plan_id', 'mpesa_receipt',
            'reference', 'notes', 'paid_at', 'created_at',
        ]


class PaymentReminderSerializer(serializers.ModelSerializer):
    store_name = serializers.CharField(source='store.name', read_only=True)

    class Meta:
        model = PaymentReminder
        fields = [
            'id', 'store', 'store_name', 'reminder_type', 'days_before_due', 'days_overdue',
            'phone_number', 'message', 'sms_sent', 'sent_at', 'created_at',
        ]


class C2BTransactionSerializer(serializers.ModelSerializer):
    store_name = serializers.CharField(source='store.name', read_only=True, default=None)
    customer_name = serializers.CharField(read_only=True)

    class Meta:
        model = C2BTransaction
        fields = [
            'id', 'trans_id', 'transaction_type', 'trans_time', 'amount', 'business_short_code',
            'bill_ref_number', 'msisdn', 'customer_name', 'store', 'store_name', 'status',
            'subscription_activated', 'plan_id', 'notes', 'created_at', 'processed_at',
        ]
