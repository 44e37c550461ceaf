from django.urls import path
from . import views

urlpatterns = [
    path('plans/', views.plan_list, name='billing_plans'),
    path('status/', views.subscription_status, name='subscription_status'),
    path('subscribe/', views.subscribe, name='subscribe'),
    path('payments/', views.payment_history, name='billing_payments'),

    # SuperAdmin
    path('dashboard/', views.billing_dashboard, name='billing_dashboard'),
    path('subscriptions/', views.subscription_list, name='subscription_list'),
    path('reminders/', views.reminder_list, name='reminder_list'),
    path('reminders/run/', views.run_reminders, name='run_reminders'),
    path('stores/<int:store_id>/remind/', views.send_reminder, name='send_subscription_reminder'),
]
