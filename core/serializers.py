"""
Serializers for core models
"""
from rest_framework import serializers
from .models import Store, Product, Sale, SaleItem, Expense, Notification, AuditLog
from .mpesa_models import MpesaTransaction


class StoreSerializer(serializers.ModelSerializer):
    owner_email = serializers.SerializerMethodField()

    class Meta:
        model = Store
        fields = [
            'id', 'name', 'location', 'business_type', 'access_code', 'owner', 'owner_email',
            'tier', 'phone', 'email', 'currency', 'tax_rate', 'theme_color', 'is_demo',
            'is_active', 'is_suspended', 'suspension_reason', 'created_at',
        ]
        read_only_fields = ['owner', 'is_suspended', 'suspension_reason', 'created_at']

    def get_owner_email(self, obj):
        return obj.owner.email if obj.owner else None


class ProductSerializer(serializers.ModelSerializer):
    category_name = serializers.SerializerMethodField()
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'sku', 'barcode', 'description', 'category', 'category_name', 'supplier',
            'cost_price', 'selling_price', 'quantity', 'low_stock_threshold', 'reorder_quantity',
            'expiry_date', 'batch_number', 'image', 'bulk_unit_name', 'breakout_unit_name',
            'conversion_rate', 'parent', 'is_bulk_parent', 'is_active', 'is_low_stock',
        ]
        read_only_fields = ['parent', 'is_bulk_parent']

    def get_category_name(self, obj):
        return obj.category.name if obj.category else None

    def validate(self, attrs):
        cost = attrs.get('cost_price', getattr(self.instance, 'cost_price', None))
        price = attrs.get('selling_price', getattr(self.instance, 'selling_price', None))
        if cost is not None and price is not None and cost > price:
            raise serializers.ValidationError('Cost price cannot be greater than selling price')

        barcode = (attrs.get('barcode') or '').strip()
        store = self.context.get('store')
        if barcode and store is not None:
            clash = Product.objects.filter(store=store, barcode__iexact=barcode)
            if self.instance is not None:
                clash = clash.exclude(pk=self.instance.pk)
            if clash.exists():
                raise serializers.ValidationError({'barcode': f'Barcode {barcode} is already in use in this store'})
        return attrs


class SaleItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = SaleItem
        fields = ['product', 'product_name', 'product_sku', 'quantity', 'unit_price', 'total_price', 'batch_allocations']


class SaleSerializer(serializers.ModelSerializer):
    items = SaleItemSerializer(many=True, read_only=True)
    cashier_name = serializers.SerializerMethodField()
    payment_label = serializers.CharField(read_only=True)

    class Meta:
        model = Sale
        fields = [
            'id', 'invoice_number', 'cashier_name', 'customer_name', 'customer_phone',
            'subtotal', 'tax_amount', 'total', 'amount_tendered', 'change_due',
            'payment_method', 'payment_label', 'status', 'payment_status',
            'mpesa_receipt', 'collected_by', 'notes', 'created_at', 'items',
        ]

    def get_cashier_name(self, obj):
        if not obj.cashier:
            return None
        return obj.cashier.get_full_name() or obj.cashier.username


class ExpenseSerializer(serializers.ModelSerializer):
    class Meta:
        model = Expense
        fields = ['id', 'expense_number', 'category', 'description', 'amount', 'date', 'recorded_by', 'created_at']
        read_only_fields = ['expense_number', 'recorded_by', 'created_at']


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ['id', 'notification_type', 'title', 'message', 'is_read', 'link', 'created_at']


class AuditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditLog
        fields = [
            'id', 'action_type', 'resource_type', 'resource_id', 'actor_name', 'actor_role',
            'customer_name', 'customer_phone', 'old_value', 'new_value',
            'change_description', 'metadata', 'created_at',
        ]


class MpesaTransactionSerializer(serializers.ModelSerializer):
    """Serializer for M-Pesa transactions"""

    user_name = serializers.SerializerMethodField()
    sale_invoice = serializers.SerializerMethodField()
    formatted_amount = serializers.SerializerMethodField()

    class Meta:
        model = MpesaTransaction
        fields = [
            'transaction_id',
            'transaction_type',
            'purpose',
            'amount',
            'formatted_amount',
            'phone_number',
            'account_reference',
            'status',
            'mpesa_receipt_number',
            'result_code',
            'result_description',
            'checkout_request_id',
            'plan_id',
            'user_name',
            'sale_invoice',
            'created_at',
            'completed_at',
        ]

    def get_user_name(self, obj):
        return obj.user.get_full_name() if obj.user else 'System'

    def get_sale_invoice(self, obj):
        return obj.sale.invoice_number if obj.sale else None

    def get_formatted_amount(self, obj):
        return f"KES {obj.amount:,.2f}"
