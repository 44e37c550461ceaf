from django.urls import path
from . import views

urlpatterns = [
    # Cart endpoints
    path('cart/', views.get_cart, name='get_cart'),
    path('add-to-cart/', views.add_to_cart, name='add_to_cart'),
    path('scan/', views.scan_barcode, name='scan_barcode'),
    path('update-cart/', views.update_cart_item, name='update_cart_item'),
    path('remove-from-cart/', views.remove_from_cart, name='remove_from_cart'),
    path('clear-cart/', views.clear_cart, name='clear_cart'),

    # Sales processing and management
    path('sales/process/', views.process_sale, name='process_sale'),
    path('sales/', views.sale_list, name='sale_list'),
    path('sales/<int:pk>/', views.sale_detail, name='sale_detail'),
    path('sales/<int:pk>/status/', views.sale_status, name='sale_status'),
    path('sales/<int:pk>/void/', views.void_sale, name='void_sale'),
    path('sales/<int:sale_id>/receipt/', views.print_receipt, name='print_receipt'),
    path('sales/daily/', views.daily_sales_report, name='daily_sales'),
    path('sales/reconciliation/', views.daily_reconciliation, name='daily_reconciliation'),
    path('mpesa-reconciliation/', views.mpesa_reconciliations, name='mpesa_reconciliations'),

    # Cash
    path('blind-close/', views.blind_close, name='blind_close'),
    path('blind-close/<int:pk>/verify/', views.verify_blind_close, name='verify_blind_close'),
    path('cash-audits/', views.cash_audits, name='cash_audits'),

    # Shrinkage owed by the signed-in staff member
    path('my-shrinkage/', views.my_shrinkage, name='my_shrinkage'),
    path('my-shrinkage/<int:pk>/', views.respond_to_shrinkage, name='respond_to_shrinkage'),
]
