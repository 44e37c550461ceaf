from django.urls import path
from . import views

urlpatterns = [
    # Dashboard
    path('', views.dashboard, name='dashboard'),

    # Store entry
    path('store/enter/', views.enter_store, name='enter_store'),
    path('store/exit/', views.exit_store, name='exit_store'),

    # Expenses
    path('expenses/', views.expenses, name='expenses'),

    # Notifications
    path('notifications/', views.notification_list, name='notification_list'),
    path('notifications/read/<int:notification_id>/', views.mark_notification_read, name='mark_notification_read'),
    path('notifications/read-all/', views.mark_all_notifications_read, name='mark_all_notifications_read'),

    # Audit trail
    path('audit-log/', views.audit_log, name='audit_log'),
]
