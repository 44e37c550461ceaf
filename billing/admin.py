from django.contrib import admin
from .models import Subscription, PaymentHistory, PaymentReminder, C2BTransaction

class PaymentHistoryInline(admin.TabularInline):
    model = PaymentHistory
    extra = 0
    fields = ('amount', 'payment_method', 'status', 'plan_id', 'mpesa_receipt', 'paid_at')
    readonly_fields = fields
    can_delete = False

class SubscriptionAdmin(admin.ModelAdmin):
    list_display = ('store', 'plan_id', 'status', 'is_trial', 'current_period_end', 'last_payment_date', 'last_payment_amount')
    list_filter = ('status', 'plan_id', 'is_trial')
    search_fields = ('store__name', 'store__access_code', 'mpesa_receipt', 'payment_reference')
    readonly_fields = ('created_at', 'updated_at')
    inlines = [PaymentHistoryInline]
    fieldsets = (
        ('Plan', {
            'fields': ('store', 'plan_id', 'status', 'is_trial')
        }),
        ('Period', {
            'fields': ('current_period_start', 'current_period_end')
        }),
        ('Last Payment', {
            'fields': ('last_payment_date', 'last_payment_amount', 'mpesa_receipt', 'payment_method', 'payment_reference')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

class PaymentHistoryAdmin(admin.ModelAdmin):
    list_display = ('store', 'amount', 'payment_method', 'status', 'plan_id', 'mpesa_receipt', 'paid_at')
    list_filter = ('status', 'payment_method', 'plan_id')
    search_fields = ('store__name', 'mpesa_receipt', 'reference')
    date_hierarchy = 'created_at'

class PaymentReminderAdmin(admin.ModelAdmin):
    list_display = ('store', 'reminder_type', 'phone_number', 'sms_sent', 'sent_at', 'created_at')
    list_filter = ('reminder_type', 'sms_sent')
    search_fields = ('store__name', 'phone_number', 'message')
    readonly_fields = ('created_at',)

class C2BTransactionAdmin(admin.ModelAdmin):
    list_display = ('trans_id', 'amount', 'bill_ref_number', 'msisdn', 'store', 'status', 'subscription_activated', 'created_at')
    list_filter = ('status', 'subscription_activated')
    search_fields = ('trans_id', 'bill_ref_number', 'msisdn', 'first_name', 'last_name')
    readonly_fields = ('trans_id', 'raw_data', 'created_at', 'processed_at')

admin.site.register(Subscription, SubscriptionAdmin)
admin.site.register(PaymentHistory, PaymentHistoryAdmin)
admin.site.register(PaymentReminder, PaymentReminderAdmin)
admin.site.register(C2BTransaction, C2BTransactionAdmin)
