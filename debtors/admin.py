from django.contrib import admin
from .models import Debtor, DebtPayment

class DebtPaymentInline(admin.TabularInline):
    model = DebtPayment
    extra = 0
    readonly_fields = ('amount', 'method', 'balance_after', 'recorded_by', 'note', 'created_at')
    can_delete = False

class DebtorAdmin(admin.ModelAdmin):
    list_display = ('customer_name', 'customer_phone', 'store', 'total_debt', 'amount_paid', 'status', 'last_sale_date')
    list_filter = ('status', 'store')
    search_fields = ('customer_name', 'customer_phone')
    readonly_fields = ('last_sale_date', 'last_payment_date', 'created_at', 'updated_at')
    inlines = [DebtPaymentInline]

admin.site.register(Debtor, DebtorAdmin)
