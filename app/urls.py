"""
URL configuration for the Jewellery CRM backend.
"""
from django.contrib import admin
from django.urls import path, include
from .views import health

urlpatterns = [
    path('health/', health, name='health'),
    path('admin/', admin.site.urls),
    path('accounts/', include('accounts.urls')),
    path('stores/', include('stores.urls')),
    path('sales/', include('sales.urls')),
]
