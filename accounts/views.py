import logging

from asgiref.sync import async_to_sync
from django.contrib.auth.signals import user_logged_in, user_logged_out
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.pagination import LimitOffsetPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from app.session import CrmSession
from stores.persistence import client_storage

from .audit import AuditService
from .auth_state import AuthStateStore
from .filters import AuditLogFilter
from .guards import AccessGuard, RequiredRolePermission, RulesPermission
from .identity import DjangoIdentityProvider
from .models import AuditLog, TeamMember, User
from .roles import BUSINESS_ADMIN, PLATFORM_ADMIN
from .scoped_visibility import PrincipalContextMixin
from .serializers import (
    AuditLogSerializer,
    AuditSummarySerializer,
    LoginSerializer,
    PrincipalSerializer,
    SignUpSerializer,
    TeamMemberSerializer,
)

logger = logging.getLogger(__name__)

ADMIN_ROLES = [PLATFORM_ADMIN, BUSINESS_ADMIN]


def get_token_key(request):
    """The DRF token the request authenticated with, if any."""
    return getattr(request.auth, 'key', None)


def build_auth_state(request, token_key=None):
    provider = DjangoIdentityProvider(token_key=token_key)
    return AuthStateStore(provider, storage=client_storage(request))


def parse_required_roles(request):
    roles = []
    for value in request.query_params.getlist('required_role'):
        roles.extend(role.strip() for role in value.split(',') if role.strip())
    return roles or None


class LoginView(APIView):
    """Sign in with email and password; returns the session token"""
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        auth = build_auth_state(request)
        signed_in = async_to_sync(auth.login)(
            serializer.validated_data['email'],
            serializer.validated_data['password'],
        )
        if not signed_in:
            return Response({'non_field_errors': [auth.error]}, status=status.HTTP_400_BAD_REQUEST)

        user = User.objects.get(pk=auth.user.id)
        user_logged_in.send(sender=user.__class__, request=request, user=user)

        return Response({
            'token': auth.session.access_token,
            'user': PrincipalSerializer(auth.user).data,
        }, status=status.HTTP_200_OK)


class LogoutView(APIView):
    """Sign out and revoke the session token"""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        user = request.user
        auth = build_auth_state(request, token_key=get_token_key(request))
        async_to_sync(auth.logout)()
        if auth.error:
            logger.error(f"Logout for {user.email} reported: {auth.error}")
            return Response({'error': auth.error}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        user_logged_out.send(sender=user.__class__, request=request, user=user)
        return Response({'message': 'Successfully logged out'}, status=status.HTTP_200_OK)


class SignUpView(APIView):
    """Create an account and sign it in"""
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = SignUpSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        auth = build_auth_state(request)
        created = async_to_sync(auth.sign_up)(
            serializer.validated_data['email'],
            serializer.validated_data['password'],
            serializer.to_metadata(),
        )
        if not created:
            return Response({'non_field_errors': [auth.error]}, status=status.HTTP_400_BAD_REQUEST)

        AuditService.log_record_creation(
            User._meta.db_table,
            auth.user.id,
            {'email': auth.user.email, 'role': auth.user.role},
        )
        return Response({
            'token': auth.session.access_token,
            'user': PrincipalSerializer(auth.user).data,
        }, status=status.HTTP_201_CREATED)


class SessionView(APIView):
    """
    Current session as a client sees it: principal, data scope, store
    isolation, the selected store and the floor view.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        session = CrmSession(
            DjangoIdentityProvider(token_key=get_token_key(request)),
            storage=client_storage(request),
        )

        async def resolve():
            try:
                await session.start()
                return session.to_dict()
            finally:
                await session.stop()

        return Response(async_to_sync(resolve)())


class GuardView(APIView):
    """Evaluate the access guard for the caller and an optional required role"""
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        auth = build_auth_state(request, token_key=get_token_key(request))

        async def initialize():
            try:
                await auth.initialize()
            finally:
                auth.stop()

        async_to_sync(initialize)()
        guard = AccessGuard(auth, required_role=parse_required_roles(request))
        return Response(guard.evaluate().to_dict())


class AuditLogPagination(LimitOffsetPagination):
    default_limit = 50
    max_limit = 500


class AuditLogViewSet(PrincipalContextMixin, viewsets.ReadOnlyModelViewSet):
    """Audit trail, administrators only (read-only)"""
    queryset = AuditLog.objects.select_related('user').all()
    serializer_class = AuditLogSerializer
    permission_classes = [permissions.IsAuthenticated, RequiredRolePermission, RulesPermission]
    required_role = ADMIN_ROLES
    permission_required = {
        'list': 'accounts.view_audit_logs',
        'retrieve': 'accounts.view_audit_logs',
        'summary': 'accounts.view_audit_logs',
    }
    filter_backends = [DjangoFilterBackend]
    filterset_class = AuditLogFilter
    pagination_class = AuditLogPagination

    @action(detail=False, methods=['get'])
    def summary(self, request):
        filterset = AuditLogFilter(request.query_params, queryset=AuditLog.objects.none())
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)

        summary = AuditService.get_audit_summary(
            date_from=filterset.form.cleaned_data.get('date_from'),
            date_to=filterset.form.cleaned_data.get('date_to'),
        )
        return Response(AuditSummarySerializer(summary).data)


class TeamMemberViewSet(PrincipalContextMixin, viewsets.ModelViewSet):
    """Staff roster; assignments here drive users' role, store and floor"""
    queryset = TeamMember.objects.select_related('store', 'user').all()
    serializer_class = TeamMemberSerializer
    permission_classes = [permissions.IsAuthenticated, RequiredRolePermission]
    required_role = ADMIN_ROLES
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['role', 'store', 'floor', 'status']

    def perform_create(self, serializer):
        member = serializer.save()
        AuditService.log_record_creation(
            TeamMember._meta.db_table, member.pk, serializer.data, user=self.request.user
        )

    def perform_update(self, serializer):
        old_values = TeamMemberSerializer(serializer.instance).data
        member = serializer.save()
        AuditService.log_record_update(
            TeamMember._meta.db_table, member.pk, old_values, serializer.data, user=self.request.user
        )

    def perform_destroy(self, instance):
        old_values = TeamMemberSerializer(instance).data
        record_id = instance.pk
        instance.delete()
        AuditService.log_record_deletion(
            TeamMember._meta.db_table, record_id, old_values, user=self.request.user
        )
