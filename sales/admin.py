from django.contrib import admin
from .models import Customer, Visit, Sale


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['name', 'email', 'phone', 'store', 'floor', 'status', 'assigned_to', 'is_deleted']
    list_filter = ['store', 'floor', 'status', 'is_deleted']
    search_fields = ['name', 'email', 'phone']
    readonly_fields = ['id', 'created_at', 'updated_at', 'deleted_at']


@admin.register(Visit)
class VisitAdmin(admin.ModelAdmin):
    list_display = ['date', 'store', 'floor', 'customer', 'created_by']
    list_filter = ['store', 'floor', 'date']


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = ['date', 'store', 'floor', 'customer', 'amount', 'sales_representative']
    list_filter = ['store', 'floor', 'date']
    search_fields = ['customer__name']
