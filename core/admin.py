from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from django.contrib.auth.models import User
from django.utils import timezone
from .models import (
    Store, Profile, Category, Supplier, Product,
    Sale, SaleItem, StockTransaction, PurchaseOrder, PurchaseOrderItem,
    Expense, Notification, AuditLog, MpesaTransaction, MpesaCallback
)

class ProfileInline(admin.StackedInline):
    model = Profile
    can_delete = False
    verbose_name_plural = 'Profile'
    fk_name = 'user'
    readonly_fields = ('total_shrinkage_debt', 'acknowledged_shrinkage_debt')

class CustomUserAdmin(UserAdmin):
    inlines = (ProfileInline,)
    list_display = ('username', 'email', 'first_name', 'last_name', 'is_staff', 'get_role', 'get_store')
    list_select_related = ('profile', 'profile__store')

    def get_role(self, instance):
        return instance.profile.role
    get_role.short_description = 'Role'

    def get_store(self, instance):
        return instance.profile.store
    get_store.short_description = 'Store'

    def get_inline_instances(self, request, obj=None):
        if not obj:
            return list()
        return super().get_inline_instances(request, obj)

admin.site.unregister(User)
admin.site.register(User, CustomUserAdmin)

class StoreAdmin(admin.ModelAdmin):
    list_display = ('name', 'access_code', 'business_type', 'owner', 'tier', 'is_active', 'is_suspended', 'created_at')
    list_filter = ('business_type', 'tier', 'is_active', 'is_suspended', 'is_demo')
    search_fields = ('name', 'access_code', 'location', 'owner__email')
    readonly_fields = ('owner_pin', 'created_at', 'updated_at')
    fieldsets = (
        ('Store Information', {
            'fields': ('name', 'access_code', 'business_type', 'location', 'phone', 'email', 'owner', 'owner_pin')
        }),
        ('Settings', {
            'fields': ('currency', 'tax_rate', 'theme_color', 'tier', 'is_demo')
        }),
        ('Status', {
            'fields': ('is_active', 'is_suspended', 'suspension_reason', 'created_at', 'updated_at')
        }),
    )

class ProductAdmin(admin.ModelAdmin):
    list_display = ('sku', 'name', 'store', 'category', 'quantity', 'selling_price', 'is_bulk_parent', 'is_active')
    list_filter = ('store', 'category', 'is_bulk_parent', 'is_active')
    search_fields = ('sku', 'name', 'barcode')
    readonly_fields = ('created_at', 'updated_at')
    fieldsets = (
        ('Basic Information', {
            'fields': ('store', 'sku', 'barcode', 'name', 'description', 'category', 'supplier')
        }),
        ('Pricing', {
            'fields': ('cost_price', 'selling_price')
        }),
        ('Inventory', {
            'fields': ('quantity', 'low_stock_threshold', 'reorder_quantity', 'expiry_date', 'batch_number')
        }),
        ('Breaking Bulk', {
            'fields': ('is_bulk_parent', 'parent', 'bulk_unit_name', 'breakout_unit_name', 'conversion_rate')
        }),
        ('Status', {
            'fields': ('is_active', 'created_at', 'updated_at')
        }),
    )

class SaleItemInline(admin.TabularInline):
    model = SaleItem
    extra = 0
    readonly_fields = ('product_name', 'product_sku', 'unit_price', 'cost_price', 'total_price', 'batch_allocations')

class SaleAdmin(admin.ModelAdmin):
    list_display = ('invoice_number', 'store', 'cashier', 'total', 'payment_method', 'status', 'created_at')
    list_filter = ('status', 'payment_method', 'payment_status', 'created_at')
    search_fields = ('invoice_number', 'customer_name', 'customer_phone', 'mpesa_receipt')
    readonly_fields = ('invoice_number', 'voided_by', 'voided_at', 'created_at', 'updated_at')
    inlines = [SaleItemInline]
    fieldsets = (
        ('Sale Information', {
            'fields': ('store', 'invoice_number', 'cashier', 'customer_name', 'customer_phone', 'notes')
        }),
        ('Totals', {
            'fields': ('subtotal', 'tax_amount', 'total')
        }),
        ('Payment', {
            'fields': ('payment_method', 'payment_status', 'amount_tendered', 'change_due',
                       'mpesa_checkout_id', 'mpesa_receipt', 'mpesa_phone', 'collected_by')
        }),
        ('Status', {
            'fields': ('status', 'voided_by', 'voided_at', 'created_at', 'updated_at')
        }),
    )

class StockTransactionAdmin(admin.ModelAdmin):
    list_display = ('product', 'transaction_type', 'quantity', 'previous_quantity', 'new_quantity', 'created_at')
    list_filter = ('transaction_type', 'created_at')
    search_fields = ('product__name', 'reference', 'notes')
    readonly_fields = ('created_at',)
    date_hierarchy = 'created_at'

class PurchaseOrderItemInline(admin.TabularInline):
    model = PurchaseOrderItem
    extra = 1

class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ('po_number', 'store', 'supplier', 'order_date', 'expected_date', 'status', 'total_amount')
    list_filter = ('status', 'order_date', 'supplier')
    search_fields = ('po_number', 'supplier__name', 'notes')
    readonly_fields = ('po_number', 'order_date', 'created_at', 'updated_at')
    inlines = [PurchaseOrderItemInline]
    fieldsets = (
        ('Order Information', {
            'fields': ('store', 'po_number', 'supplier', 'order_date', 'expected_date', 'received_date', 'notes')
        }),
        ('Financial', {
            'fields': ('total_amount',)
        }),
        ('Status', {
            'fields': ('status', 'created_by', 'created_at', 'updated_at')
        }),
    )

class ExpenseAdmin(admin.ModelAdmin):
    list_display = ('expense_number', 'store', 'category', 'description', 'amount', 'date')
    list_filter = ('category', 'date')
    search_fields = ('expense_number', 'description')
    date_hierarchy = 'date'

class NotificationAdmin(admin.ModelAdmin):
    list_display = ('title', 'store', 'user', 'notification_type', 'is_read', 'created_at')
    list_filter = ('notification_type', 'is_read')
    search_fields = ('title', 'message')

class AuditLogAdmin(admin.ModelAdmin):
    """Audit entries are append-only, so the admin shows them read-only"""
    list_display = ('action_type', 'store', 'resource_type', 'resource_id', 'actor_name', 'actor_role', 'created_at')
    list_filter = ('action_type', 'resource_type', 'actor_role')
    search_fields = ('change_description', 'actor_name', 'customer_name', 'customer_phone', 'resource_id')
    date_hierarchy = 'created_at'

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

class MpesaTransactionAdmin(admin.ModelAdmin):
    list_display = [
        'transaction_id',
        'purpose',
        'store',
        'amount',
        'phone_number',
        'status',
        'mpesa_receipt_number',
        'created_at',
        'is_complete'
    ]

    list_filter = [
        'transaction_type',
        'purpose',
        'status',
        'is_complete',
        'created_at'
    ]

    search_fields = [
        'transaction_id',
        'checkout_request_id',
        'merchant_request_id',
        'mpesa_receipt_number',
        'phone_number',
        'account_reference'
    ]

    readonly_fields = [
        'transaction_id',
        'created_at',
        'updated_at',
        'completed_at',
        'raw_response'
    ]

    fieldsets = (
        ('Transaction Details', {
            'fields': (
                'transaction_id',
                'transaction_type',
                'purpose',
                'plan_id',
                'amount',
                'phone_number',
                'account_reference',
                'transaction_desc'
            )
        }),
        ('M-Pesa Response', {
            'fields': (
                'merchant_request_id',
                'checkout_request_id',
                'mpesa_receipt_number',
                'result_code',
                'result_description',
                'response_code',
                'response_description'
            )
        }),
        ('Status', {
            'fields': (
                'status',
                'is_complete',
                'created_at',
                'updated_at',
                'completed_at'
            )
        }),
        ('Relations', {
            'fields': (
                'user',
                'store',
                'sale'
            )
        }),
        ('Raw Data', {
            'fields': ('raw_response',),
            'classes': ('collapse',)
        }),
    )

    actions = ['mark_as_failed', 'resend_notifications']

    def mark_as_failed(self, request, queryset):
        updated = queryset.filter(is_complete=False).update(
            status='FAILED',
            is_complete=True,
            completed_at=timezone.now(),
            result_code=999,
            result_description='Manually marked as failed'
        )
        self.message_user(request, f'{updated} transactions marked as failed.')
    mark_as_failed.short_description = "Mark pending as failed"

    def resend_notifications(self, request, queryset):
        from .mpesa_utils import MpesaUtils
        sent = 0
        for transaction in queryset.filter(status='SUCCESS'):
            MpesaUtils.send_payment_notification(transaction, 'SUCCESS')
            sent += 1
        self.message_user(request, f'Notifications resent for {sent} transactions.')
    resend_notifications.short_description = "Resend notifications"

class MpesaCallbackAdmin(admin.ModelAdmin):
    list_display = ['id', 'callback_type', 'transaction', 'result_code', 'is_processed', 'received_at']
    list_filter = ['callback_type', 'is_processed', 'received_at']
    search_fields = ['result_description', 'processing_notes']
    readonly_fields = ['received_at', 'raw_data']

    fieldsets = (
        ('Callback Information', {
            'fields': ('callback_type', 'transaction', 'result_code', 'result_description')
        }),
        ('Processing Status', {
            'fields': ('is_processed', 'processed_at', 'processing_notes')
        }),
        ('Raw Data', {
            'fields': ('raw_data', 'received_at'),
            'classes': ('collapse',)
        }),
    )

    actions = ['mark_as_processed', 'mark_as_unprocessed']

    def mark_as_processed(self, request, queryset):
        updated = queryset.update(
            is_processed=True,
            processed_at=timezone.now(),
            processing_notes='Manually marked as processed'
        )
        self.message_user(request, f'{updated} callbacks marked as processed.')
    mark_as_processed.short_description = "Mark selected as processed"

    def mark_as_unprocessed(self, request, queryset):
        updated = queryset.update(is_processed=False, processed_at=None, processing_notes='')
        self.message_user(request, f'{updated} callbacks marked as unprocessed.')
    mark_as_unprocessed.short_description = "Mark selected as unprocessed"

admin.site.register(Store, StoreAdmin)
admin.site.register(Category)
admin.site.register(Supplier)
admin.site.register(Product, ProductAdmin)
admin.site.register(Sale, SaleAdmin)
admin.site.register(StockTransaction, StockTransactionAdmin)
admin.site.register(PurchaseOrder, PurchaseOrderAdmin)
admin.site.register(Expense, ExpenseAdmin)
admin.site.register(Notification, NotificationAdmin)
admin.site.register(AuditLog, AuditLogAdmin)
admin.site.register(MpesaTransaction, MpesaTransactionAdmin)
admin.site.register(MpesaCallback, MpesaCallbackAdmin)

admin.site.site_header = "DukaBook Administration"
admin.site.site_title = "DukaBook Admin"
