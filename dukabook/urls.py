from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('', include('core.urls')),
    path('api/mpesa/', include('core.mpesa_urls')),
    path('pos/', include('pos.urls')),
    path('inventory/', include('inventory.urls')),
    path('debtors/', include('debtors.urls')),
    path('billing/', include('billing.urls')),
    path('analytics/', include('analytics.urls')),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
