from django.contrib import admin
from .models import BlindClose, CashAudit, MpesaReconciliation

class BlindCloseAdmin(admin.ModelAdmin):
    list_display = ('store', 'close_date', 'staff', 'expected_cash', 'counted_cash',
                    'discrepancy_amount', 'discrepancy_type', 'verified_by_owner')
    list_filter = ('discrepancy_type', 'verified_by_owner', 'close_date')
    search_fields = ('store__name', 'staff__username', 'owner_notes')
    readonly_fields = ('discrepancy_amount', 'discrepancy_type', 'verified_by', 'verified_at', 'created_at')
    date_hierarchy = 'close_date'

class CashAuditAdmin(admin.ModelAdmin):
    list_display = ('store', 'register_date', 'expected_closing', 'actual_closing',
                    'variance_amount', 'variance_percentage', 'fraud_category', 'severity', 'is_fraud_suspect')
    list_filter = ('fraud_category', 'severity', 'is_fraud_suspect')
    search_fields = ('store__name', 'notes')
    readonly_fields = ('variance_amount', 'variance_percentage', 'fraud_category', 'severity',
                       'is_fraud_suspect', 'reconciled_by', 'reconciled_at')
    date_hierarchy = 'register_date'

class MpesaReconciliationAdmin(admin.ModelAdmin):
    list_display = ('store', 'period_start', 'period_end', 'total_deposits', 'matched_count',
                    'unmatched_count', 'flagged_count', 'status')
    list_filter = ('status',)
    search_fields = ('store__name',)
    readonly_fields = ('details', 'reconciled_by', 'created_at')

admin.site.register(BlindClose, BlindCloseAdmin)
admin.site.register(CashAudit, CashAuditAdmin)
admin.site.register(MpesaReconciliation, MpesaReconciliationAdmin)
