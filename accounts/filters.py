"""
Audit log filters
"""
from django_filters import rest_framework as filters

from .models import AuditLog


class AuditLogFilter(filters.FilterSet):
    """Filters accepted by the audit log listing"""

    table_name = filters.CharFilter(field_name='table_name')
    action = filters.ChoiceFilter(choices=AuditLog.ACTION_CHOICES)
    user_id = filters.UUIDFilter(field_name='user_id')
    record_id = filters.CharFilter(field_name='record_id')

    # Date range filters
    date_from = filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='gte')
    date_to = filters.IsoDateTimeFilter(field_name='created_at', lookup_expr='lte')

    class Meta:
        model = AuditLog
        fields = ['table_name', 'action', 'user_id', 'record_id', 'date_from', 'date_to']
