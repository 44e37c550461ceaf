"""
M-Pesa URL Configuration
"""
from django.urls import path
from .mpesa_views import (
    STKPushView,
    STKCallbackView,
    C2BValidationView,
    C2BConfirmationView,
    QueryTransactionView,
    TransactionHistoryView,
    mpesa_config_view,
)

urlpatterns = [
    # API Endpoints
    path('stk-push/', STKPushView.as_view(), name='mpesa_stk_push'),
    path('stk-query/', QueryTransactionView.as_view(), name='mpesa_stk_query'),
    path('transactions/', TransactionHistoryView.as_view(), name='mpesa_transactions'),
    path('config/', mpesa_config_view, name='mpesa_config'),

    # Webhook Callbacks
    path('stk-callback/', STKCallbackView.as_view(), name='mpesa_stk_callback'),
    path('c2b/validation/', C2BValidationView.as_view(), name='mpesa_c2b_validation'),
    path('c2b/confirmation/', C2BConfirmationView.as_view(), name='mpesa_c2b_confirmation'),
]
