from rest_framework import serializers

from .models import Debtor, DebtPayment


class DebtPaymentSerializer(serializers.ModelSerializer):
    recorded_by_name = serializers.CharField(source='recorded_by.username', read_only=True, default=None)

    class Meta:
        model = DebtPayment
        fields = ['id', 'amount', 'method', 'balance_after', 'recorded_by_name', 'note', 'created_at']


class DebtorSerializer(serializers.ModelSerializer):
    class Meta:
        model = Debtor
        fields = [
            'id', 'customer_name', 'customer_phone', 'total_debt', 'amount_paid', 'status',
            'last_sale_date', 'last_payment_date', 'notes', 'created_at',
        ]
