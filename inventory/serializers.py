from rest_framework import serializers

from core.models import Supplier, PurchaseOrder, PurchaseOrderItem, StockTransaction
from .models import (
    InventoryBatch, StockAudit, StockAuditItem, ShrinkageDebt, SupplierInvoice, InventoryAlert,
    ExpiryDiscountRule, ExpiryClearance, SupplierFraudFlag,
)


class InventoryBatchSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    days_to_expiry = serializers.IntegerField(read_only=True)

    class Meta:
        model = InventoryBatch
        fields = [
            'id', 'product', 'product_name', 'batch_number', 'quantity', 'initial_quantity',
            'expiry_date', 'days_to_expiry', 'cost_price', 'parent_batch', 'status', 'created_at',
        ]


class StockTransactionSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)

    class Meta:
        model = StockTransaction
        fields = [
            'id', 'product', 'product_name', 'transaction_type', 'quantity', 'previous_quantity',
            'new_quantity', 'reference', 'notes', 'created_at',
        ]


class StockAuditItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)

    class Meta:
        model = StockAuditItem
        fields = [
            'id', 'product', 'product_name', 'system_stock', 'physical_count', 'variance',
            'unit_price', 'debt_amount', 'status', 'notes',
        ]


class StockAuditSerializer(serializers.ModelSerializer):
    items = StockAuditItemSerializer(many=True, read_only=True)
    total_debt = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = StockAudit
        fields = [
            'id', 'reference', 'audit_date', 'status', 'collected_by', 'applied_at',
            'notes', 'total_debt', 'items', 'created_at',
        ]


class ShrinkageDebtSerializer(serializers.ModelSerializer):
    agent_name = serializers.SerializerMethodField()
    audit_reference = serializers.SerializerMethodField()

    class Meta:
        model = ShrinkageDebt
        fields = [
            'id', 'agent', 'agent_name', 'product', 'product_name', 'audit_reference',
            'quantity_missing', 'unit_price', 'total_debt_amount', 'status', 'notes',
            'resolved_amount', 'resolved_at', 'created_at',
        ]

    def get_agent_name(self, obj):
        return obj.agent.get_full_name() or obj.agent.username

    def get_audit_reference(self, obj):
        return obj.audit.reference if obj.audit else None


class SupplierSerializer(serializers.ModelSerializer):
    class Meta:
        model = Supplier
        fields = ['id', 'name', 'contact_person', 'email', 'phone', 'address', 'tax_id', 'payment_terms', 'is_active']


class SupplierInvoiceSerializer(serializers.ModelSerializer):
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    days_until_due = serializers.IntegerField(read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)
    is_due_soon = serializers.BooleanField(read_only=True)

    class Meta:
        model = SupplierInvoice
        fields = [
            'id', 'supplier', 'supplier_name', 'purchase_order', 'invoice_number', 'invoice_date',
            'due_date', 'subtotal', 'tax_amount', 'total_amount', 'status', 'payment_date',
            'notes', 'days_until_due', 'is_overdue', 'is_due_soon',
        ]


class PurchaseOrderItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)

    class Meta:
        model = PurchaseOrderItem
        fields = ['id', 'product', 'product_name', 'quantity', 'unit_cost', 'total_cost',
                  'received_quantity', 'expiry_date', 'batch_number']


class PurchaseOrderSerializer(serializers.ModelSerializer):
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    items = PurchaseOrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = ['id', 'po_number', 'supplier', 'supplier_name', 'order_date', 'expected_date',
                  'received_date', 'status', 'total_amount', 'notes', 'items']


class InventoryAlertSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)

    class Meta:
        model = InventoryAlert
        fields = ['id', 'alert_type', 'severity', 'product', 'product_name', 'batch', 'message',
                  'data', 'is_resolved', 'created_at']


class ExpiryDiscountRuleSerializer(serializers.ModelSerializer):
    class Meta:
        model = ExpiryDiscountRule
        fields = ['id', 'days_before_expiry', 'discount_percentage', 'auto_apply', 'is_active']


class ExpiryClearanceSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    batch_number = serializers.CharField(source='batch.batch_number', read_only=True)
    recovered_value = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    loss = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = ExpiryClearance
        fields = [
            'id', 'batch', 'batch_number', 'product', 'product_name', 'clearance_type', 'quantity',
            'original_price', 'clearance_price', 'discount_percentage', 'days_to_expiry',
            'recovered_value', 'loss', 'notes', 'created_at',
        ]


class SupplierFraudFlagSerializer(serializers.ModelSerializer):
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)

    class Meta:
        model = SupplierFraudFlag
        fields = [
            'id', 'supplier', 'supplier_name', 'purchase_order', 'invoice', 'fraud_type', 'severity',
            'quantity_ordered', 'quantity_received', 'quantity_variance', 'variance_percentage',
            'price_variance', 'overcharge_amount', 'days_late', 'quality_score', 'description',
            'is_resolved', 'resolution_notes', 'resolved_at', 'created_at',
        ]
