import logging

from asgiref.sync import async_to_sync
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.audit import AuditService
from accounts.guards import RulesPermission
from accounts.scoped_visibility import PrincipalContextMixin

from .floor_context import FloorContext
from .isolation import get_store_display_info, get_store_selection_options, log_store_access
from .models import Store
from .persistence import client_storage
from .serializers import SelectStoreSerializer, StoreSerializer
from .store_context import StoreContext, can_select_store

logger = logging.getLogger(__name__)


class StoreViewSet(PrincipalContextMixin, viewsets.ModelViewSet):
    """Stores, plus the caller's selected store"""
    queryset = Store.objects.all()
    serializer_class = StoreSerializer
    permission_classes = [permissions.IsAuthenticated, RulesPermission]
    permission_required = {
        'list': 'stores.view_store',
        'retrieve': 'stores.view_store',
        'create': 'stores.add_store',
        'update': 'stores.change_store',
        'partial_update': 'stores.change_store',
        'destroy': 'stores.delete_store',
        'current': 'stores.view_store',
        'refresh': 'stores.view_store',
    }

    def get_store_context(self):
        return StoreContext(storage=client_storage(self.request))

    def _current_payload(self, context):
        principal = self.request.principal
        payload = context.to_dict()
        payload['can_select_store'] = can_select_store(principal)
        payload['display'] = get_store_display_info(context.current_store_id, context.stores)
        payload['options'] = get_store_selection_options(
            context.stores,
            principal.store_id if principal else None,
            principal.role if principal else None,
        )
        return payload

    @action(detail=False, methods=['get', 'post'])
    def current(self, request):
        context = self.get_store_context()

        if request.method == 'POST':
            serializer = SelectStoreSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            store_id = serializer.validated_data['store_id']
            principal = request.principal

            selected = context.select_store(principal, store_id)
            log_store_access('select', store_id, principal.store_id, principal.role, selected)
            if not selected:
                return Response(
                    {'detail': 'Only administrators can switch stores.'},
                    status=status.HTTP_403_FORBIDDEN,
                )

        async_to_sync(context.mount)()
        return Response(self._current_payload(context))

    @action(detail=False, methods=['post'])
    def refresh(self, request):
        context = self.get_store_context()
        async_to_sync(context.mount)()
        return Response(self._current_payload(context))

    def perform_create(self, serializer):
        store = serializer.save()
        AuditService.log_record_creation(Store._meta.db_table, store.pk, serializer.data, user=self.request.user)

    def perform_update(self, serializer):
        old_values = StoreSerializer(serializer.instance).data
        store = serializer.save()
        AuditService.log_record_update(
            Store._meta.db_table, store.pk, old_values, serializer.data, user=self.request.user
        )

    def perform_destroy(self, instance):
        old_values = StoreSerializer(instance).data
        record_id = instance.pk
        instance.delete()
        AuditService.log_record_deletion(Store._meta.db_table, record_id, old_values, user=self.request.user)


class FloorListView(PrincipalContextMixin, APIView):
    """Floors visible to the caller: all for admins, the assigned one for managers"""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        context = FloorContext()
        async_to_sync(context.load)(request.principal)
        return Response(context.to_dict())
