from django.urls import path
from . import views

urlpatterns = [
    # SuperAdmin console
    path('console/stores/', views.StoreListView.as_view(), name='console_stores'),
    path('console/stores/<int:pk>/', views.StoreDetailView.as_view(), name='console_store_detail'),
    path('console/stores/<int:pk>/owner/', views.LinkOwnerView.as_view(), name='console_link_owner'),
    path('console/stores/<int:pk>/tier/', views.StoreTierView.as_view(), name='console_store_tier'),
    path('console/stats/', views.PlatformStatsView.as_view(), name='console_stats'),
    path('console/health/', views.StoreHealthView.as_view(), name='console_health'),
    path('console/c2b/', views.C2BTransactionListView.as_view(), name='console_c2b'),
    path('console/c2b/<str:trans_id>/link/', views.C2BLinkView.as_view(), name='console_c2b_link'),

    # Store reports
    path('sales/', views.sales_report, name='sales_report'),
    path('sales/export/', views.export_sales_csv, name='export_sales_csv'),
    path('sales/chart/', views.revenue_chart, name='revenue_chart'),
    path('products/profitability/', views.product_profitability, name='product_profitability'),
]
