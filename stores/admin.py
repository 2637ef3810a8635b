from django.contrib import admin
from .models import Store


@admin.register(Store)
class StoreAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'location', 'floors', 'status', 'is_active']
    list_filter = ['status', 'is_active']
    search_fields = ['name', 'location', 'village']
    readonly_fields = ['created_at', 'updated_at']
