from django.urls import path
from . import views

urlpatterns = [
    # Products
    path('products/', views.product_list, name='product_list'),
    path('products/search/', views.product_search, name='product_search'),
    path('products/<int:pk>/', views.product_detail, name='product_detail'),

    # Breaking bulk
    path('breaking-bulk/presets/', views.breaking_bulk_presets, name='breaking_bulk_presets'),
    path('products/<int:pk>/breakout/', views.create_breakout, name='create_breakout'),
    path('products/<int:pk>/break-bulk/', views.break_bulk, name='break_bulk'),
    path('products/<int:pk>/bulk-audit/', views.bulk_audit, name='bulk_audit'),

    # Stock Management
    path('stock-transactions/', views.stock_transactions, name='stock_transactions'),
    path('low-stock/', views.low_stock_report, name='low_stock'),
    path('batches/', views.batch_list, name='batch_list'),
    path('batches/expiring/', views.expiring_batches, name='expiring_batches'),
    path('batches/<int:pk>/dispose/', views.dispose_batch, name='dispose_batch'),
    path('batches/<int:pk>/clear/', views.clear_batch, name='clear_batch'),
    path('alerts/', views.alert_list, name='inventory_alerts'),
    path('stockouts/', views.stockout_report, name='stockout_report'),

    # Expiry markdowns
    path('expiry/', views.expiry_report, name='expiry_report'),
    path('expiry/rules/', views.expiry_rules, name='expiry_rules'),
    path('expiry/clearances/', views.clearance_list, name='clearance_list'),

    # Stock audits and shrinkage
    path('stock-audits/', views.stock_audit_list, name='stock_audit_list'),
    path('stock-audits/<int:pk>/', views.stock_audit_detail, name='stock_audit_detail'),
    path('stock-audits/<int:pk>/count/', views.stock_audit_count, name='stock_audit_count'),
    path('stock-audits/<int:pk>/<str:action>/', views.stock_audit_action, name='stock_audit_action'),
    path('stock-audits/items/<int:item_id>/assign/', views.assign_shrinkage, name='assign_shrinkage'),
    path('shrinkage/', views.shrinkage_dashboard, name='shrinkage_dashboard'),
    path('shrinkage/<int:pk>/<str:action>/', views.shrinkage_debt_action, name='shrinkage_debt_action'),

    # Suppliers
    path('suppliers/', views.supplier_list, name='supplier_list'),
    path('suppliers/<int:pk>/scorecard/', views.supplier_scorecard, name='supplier_scorecard'),
    path('suppliers/fraud-flags/', views.fraud_flag_list, name='fraud_flag_list'),
    path('suppliers/fraud-flags/<int:pk>/resolve/', views.resolve_fraud_flag, name='resolve_fraud_flag'),
    path('invoices/', views.invoice_list, name='invoice_list'),
    path('invoices/<int:pk>/<str:action>/', views.invoice_action, name='invoice_action'),

    # Purchase Orders
    path('purchase-orders/', views.purchase_order_list, name='purchase_order_list'),
    path('purchase-orders/<int:pk>/', views.purchase_order_detail, name='purchase_order_detail'),
    path('purchase-orders/<int:pk>/<str:action>/', views.purchase_order_action, name='purchase_order_action'),

    # Export
    path('export/csv/', views.export_inventory_csv, name='export_inventory_csv'),
]
