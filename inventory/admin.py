from django.contrib import admin
from .models import (
    InventoryBatch, StockAudit, StockAuditItem, ShrinkageDebt, SupplierInvoice, InventoryAlert,
    ExpiryDiscountRule, ExpiryClearance, SupplierFraudFlag,
)

class InventoryBatchAdmin(admin.ModelAdmin):
    list_display = ('batch_number', 'product', 'store', 'quantity', 'initial_quantity', 'expiry_date', 'status')
    list_filter = ('status', 'store', 'expiry_date')
    search_fields = ('batch_number', 'product__name', 'product__barcode')
    readonly_fields = ('initial_quantity', 'parent_batch', 'created_at', 'updated_at')
    date_hierarchy = 'expiry_date'

class StockAuditItemInline(admin.TabularInline):
    model = StockAuditItem
    extra = 0
    readonly_fields = ('variance', 'debt_amount')

class StockAuditAdmin(admin.ModelAdmin):
    list_display = ('reference', 'store', 'audit_date', 'status', 'collected_by', 'counted_by', 'applied_at')
    list_filter = ('status', 'audit_date')
    search_fields = ('reference', 'collected_by', 'notes')
    readonly_fields = ('reference', 'applied_by', 'applied_at', 'created_at', 'updated_at')
    inlines = [StockAuditItemInline]

class ShrinkageDebtAdmin(admin.ModelAdmin):
    list_display = ('agent', 'product_name', 'store', 'quantity_missing', 'total_debt_amount', 'status', 'created_at')
    list_filter = ('status', 'store')
    search_fields = ('agent__username', 'agent__first_name', 'agent__last_name', 'product_name')
    readonly_fields = ('audit', 'audit_item', 'resolved_at', 'created_at', 'updated_at')

class SupplierInvoiceAdmin(admin.ModelAdmin):
    list_display = ('invoice_number', 'supplier', 'store', 'invoice_date', 'due_date', 'total_amount', 'status')
    list_filter = ('status', 'due_date', 'supplier')
    search_fields = ('invoice_number', 'supplier__name', 'notes')
    readonly_fields = ('created_at', 'updated_at')
    fieldsets = (
        ('Invoice Information', {
            'fields': ('store', 'supplier', 'purchase_order', 'invoice_number', 'invoice_date', 'due_date', 'notes')
        }),
        ('Financial', {
            'fields': ('subtotal', 'tax_amount', 'total_amount')
        }),
        ('Status', {
            'fields': ('status', 'payment_date', 'created_by', 'created_at', 'updated_at')
        }),
    )

class InventoryAlertAdmin(admin.ModelAdmin):
    list_display = ('alert_type', 'severity', 'product', 'store', 'is_resolved', 'created_at')
    list_filter = ('alert_type', 'severity', 'is_resolved')
    search_fields = ('product__name', 'message')
    actions = ['mark_resolved']

    def mark_resolved(self, request, queryset):
        from django.utils import timezone
        updated = queryset.filter(is_resolved=False).update(is_resolved=True, resolved_at=timezone.now())
        self.message_user(request, f'{updated} alerts marked as resolved.')
    mark_resolved.short_description = "Mark selected as resolved"

class ExpiryDiscountRuleAdmin(admin.ModelAdmin):
    list_display = ('store', 'days_before_expiry', 'discount_percentage', 'auto_apply', 'is_active')
    list_filter = ('is_active', 'auto_apply')

class ExpiryClearanceAdmin(admin.ModelAdmin):
    list_display = ('product', 'batch', 'store', 'clearance_type', 'quantity',
                    'original_price', 'clearance_price', 'created_at')
    list_filter = ('clearance_type', 'store')
    search_fields = ('product__name', 'batch__batch_number', 'notes')
    readonly_fields = ('discount_percentage', 'days_to_expiry', 'cleared_by', 'created_at')

class SupplierFraudFlagAdmin(admin.ModelAdmin):
    list_display = ('supplier', 'fraud_type', 'severity', 'overcharge_amount', 'days_late',
                    'is_resolved', 'created_at')
    list_filter = ('fraud_type', 'severity', 'is_resolved')
    search_fields = ('supplier__name', 'description', 'resolution_notes')
    readonly_fields = ('quantity_variance', 'variance_percentage', 'price_variance',
                       'reported_by', 'resolved_by', 'resolved_at', 'created_at')

admin.site.register(InventoryBatch, InventoryBatchAdmin)
admin.site.register(StockAudit, StockAuditAdmin)
admin.site.register(ShrinkageDebt, ShrinkageDebtAdmin)
admin.site.register(SupplierInvoice, SupplierInvoiceAdmin)
admin.site.register(InventoryAlert, InventoryAlertAdmin)
admin.site.register(ExpiryDiscountRule, ExpiryDiscountRuleAdmin)
admin.site.register(ExpiryClearance, ExpiryClearanceAdmin)
admin.site.register(SupplierFraudFlag, SupplierFraudFlagAdmin)
