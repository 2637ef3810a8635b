"""
Sales Filters for advanced querying
"""
from django_filters import rest_framework as filters
from django.db.models import Q

from .models import Customer, Sale


class CustomerFilter(filters.FilterSet):
    """Filtering for Customers"""

    status = filters.MultipleChoiceFilter(
        choices=Customer.STATUS_CHOICES,
        conjoined=False  # OR logic
    )
    store_id = filters.NumberFilter(field_name='store_id')
    floor = filters.NumberFilter(field_name='floor')
    assigned_to = filters.UUIDFilter(field_name='assigned_to_id')

    # Date range filters
    created_from = filters.DateTimeFilter(field_name='created_at', lookup_expr='gte')
    created_to = filters.DateTimeFilter(field_name='created_at', lookup_expr='lte')

    # Search filter (name, email, phone)
    search = filters.CharFilter(method='filter_search')

    class Meta:
        model = Customer
        fields = ['status', 'store_id', 'floor', 'assigned_to']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value) | Q(email__icontains=value) | Q(phone__icontains=value)
        )


class SaleFilter(filters.FilterSet):
    """Filtering for Sales"""

    date_from = filters.DateFilter(field_name='date', lookup_expr='gte')
    date_to = filters.DateFilter(field_name='date', lookup_expr='lte')
    store_id = filters.NumberFilter(field_name='store_id')
    floor = filters.NumberFilter(field_name='floor')
    customer = filters.UUIDFilter(field_name='customer_id')
    amount_min = filters.NumberFilter(field_name='amount', lookup_expr='gte')
    amount_max = filters.NumberFilter(field_name='amount', lookup_expr='lte')

    class Meta:
        model = Sale
        fields = ['store_id', 'floor', 'customer']
