from django.urls import path
from . import views

urlpatterns = [
    path('', views.debtor_list, name='debtor_list'),
    path('dashboard/', views.debtor_dashboard, name='debtor_dashboard'),
    path('<int:pk>/', views.debtor_detail, name='debtor_detail'),
    path('<int:pk>/pay/', views.record_payment, name='debtor_record_payment'),
    path('<int:pk>/forgive/', views.forgive_debt, name='debtor_forgive'),
    path('<int:pk>/remind/', views.send_reminder, name='debtor_remind'),
]
