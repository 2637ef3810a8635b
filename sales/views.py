import csv
import logging

from django.http import HttpResponse
from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from accounts.audit import AuditService
from accounts.guards import RulesPermission
from accounts.scoped_visibility import ScopedQuerysetMixin, ScopeFields
from stores.isolation import create_store_aware_form_data, get_store_statistics

from .filters import CustomerFilter, SaleFilter
from .models import Customer, Sale
from .serializers import CustomerSerializer, SaleSerializer

logger = logging.getLogger(__name__)


class CustomerViewSet(ScopedQuerysetMixin, viewsets.ModelViewSet):
    """
    Customers, filtered to what the caller's data scope allows.

    Writes are checked against the caller's store and, for own-data roles,
    against the record's ownership markers. Deletes go to the trash and can
    be restored by managers.
    """
    queryset = Customer.objects.select_related('store').all()
    serializer_class = CustomerSerializer
    permission_classes = [permissions.IsAuthenticated, RulesPermission]
    permission_required = {
        'retrieve': 'sales.view_customer',
        'create': 'sales.add_customer',
        'export': 'sales.export_customer',
        'trash': 'sales.restore_customer',
        'restore': 'sales.restore_customer',
    }
    filterset_class = CustomerFilter
    filter_backends = [DjangoFilterBackend]
    scope_fields = ScopeFields(
        user_field='created_by_id',
        assigned_to_field='assigned_to_id',
        sales_rep_field='sales_representative_id',
    )

    def get_queryset(self):
        queryset = super().get_queryset()
        return queryset.filter(is_deleted=self.action in ('trash', 'restore'))

    def create(self, request, *args, **kwargs):
        principal = self.get_principal()
        data = create_store_aware_form_data(
            dict(request.data.items()),
            principal.store_id if principal else None,
            principal.role if principal else None,
        )
        serializer = self.get_serializer(data=data)
        serializer.is_valid(raise_exception=True)
        self.perform_create(serializer)
        return Response(serializer.data, status=status.HTTP_201_CREATED)

    def perform_create(self, serializer):
        store = serializer.validated_data.get('store')
        self.check_store_write(getattr(store, 'pk', store), 'create')
        customer = serializer.save(created_by=self.request.user)
        AuditService.log_record_creation(
            Customer._meta.db_table, customer.pk, serializer.data, user=self.request.user
        )

    def perform_update(self, serializer):
        old_values = CustomerSerializer(serializer.instance).data
        super().perform_update(serializer)
        AuditService.log_record_update(
            Customer._meta.db_table, serializer.instance.pk, old_values, serializer.data, user=self.request.user
        )

    def perform_destroy(self, instance):
        self.check_ownership(instance, 'delete_own')
        self.check_store_write(instance.store_id, 'delete')
        old_values = CustomerSerializer(instance).data
        instance.soft_delete()
        AuditService.log_record_deletion(
            Customer._meta.db_table, instance.pk, old_values, user=self.request.user
        )

    @action(detail=False, methods=['get'])
    def trash(self, request):
        """Soft-deleted customers within the caller's scope"""
        queryset = self.filter_queryset(self.get_queryset())
        serializer = self.get_serializer(queryset, many=True)
        return Response(serializer.data)

    @action(detail=True, methods=['post'])
    def restore(self, request, pk=None):
        customer = self.get_object()
        self.check_store_write(customer.store_id, 'update')
        customer.restore()
        data = CustomerSerializer(customer).data
        AuditService.log_record_restoration(Customer._meta.db_table, customer.pk, data, user=request.user)
        return Response(data)

    @action(detail=False, methods=['get'])
    def statistics(self, request):
        """Customer counts for the caller's store (all stores for admins)"""
        principal = self.get_principal()
        queryset = self.filter_queryset(self.get_queryset())
        return Response(get_store_statistics(
            queryset,
            principal.store_id if principal else None,
            principal.role if principal else None,
        ))

    @action(detail=False, methods=['get'])
    def export(self, request):
        """Export customers to CSV"""
        queryset = self.filter_queryset(self.get_queryset()).select_related(
            'assigned_to', 'sales_representative'
        )

        response = HttpResponse(content_type='text/csv; charset=utf-8')
        response['Content-Disposition'] = 'attachment; filename="customers_export.csv"'

        writer = csv.writer(response)
        writer.writerow([
            'Name',
            'Email',
            'Phone',
            'Store',
            'Floor',
            'Status',
            'Assigned To',
            'Sales Representative',
            'Created At',
        ])

        count = 0
        for customer in queryset:
            writer.writerow([
                customer.name,
                customer.email or '',
                customer.phone or '',
                customer.store.name,
                customer.floor or '',
                customer.get_status_display(),
                customer.assigned_to.email if customer.assigned_to else '',
                customer.sales_representative.email if customer.sales_representative else '',
                timezone.localtime(customer.created_at).strftime('%Y-%m-%d %H:%M'),
            ])
            count += 1

        AuditService.log_data_export(request.user, Customer._meta.db_table, count, 'csv')
        return response


class SaleViewSet(ScopedQuerysetMixin, viewsets.ReadOnlyModelViewSet):
    """Closed sales, filtered to the caller's data scope (read-only)"""
    queryset = Sale.objects.select_related('customer', 'store').all()
    serializer_class = SaleSerializer
    permission_classes = [permissions.IsAuthenticated, RulesPermission]
    permission_required = {'retrieve': 'sales.view_sale'}
    filterset_class = SaleFilter
    filter_backends = [DjangoFilterBackend]
    scope_fields = ScopeFields(
        user_field='created_by_id',
        assigned_to_field='customer__assigned_to_id',
        sales_rep_field='sales_representative_id',
    )
