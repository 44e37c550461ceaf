from rest_framework import serializers

from .models import BlindClose, CashAudit, MpesaReconciliation


class BlindCloseSerializer(serializers.ModelSerializer):
    staff_name = serializers.SerializerMethodField()

    class Meta:
        model = BlindClose
        fields = [
            'id', 'close_date', 'expected_cash', 'counted_cash', 'discrepancy_amount',
            'discrepancy_type', 'staff_name', 'verified_by_owner', 'verified_at', 'owner_notes',
            'created_at',
        ]

    def get_staff_name(self, obj):
        if not obj.staff:
            return None
        return obj.staff.get_full_name() or obj.staff.username


class CashAuditSerializer(serializers.ModelSerializer):
    class Meta:
        model = CashAudit
        fields = [
            'id', 'register_date', 'opening_balance', 'expected_closing', 'actual_closing',
            'variance_amount', 'variance_percentage', 'is_fraud_suspect', 'fraud_category',
            'severity', 'reconciled_at', 'notes',
        ]


class MpesaReconciliationSerializer(serializers.ModelSerializer):
    class Meta:
        model = MpesaReconciliation
        fields = [
            'id', 'period_start', 'period_end', 'total_deposits', 'matched_amount', 'unmatched_amount',
            'matched_count', 'unmatched_count', 'variance_amount', 'flagged_count', 'status',
            'details', 'created_at',
        ]
