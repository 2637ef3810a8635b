"""
Scoped Visibility
=================

Decides which CRM records a principal may see, edit or export.

A principal's role resolves to a :class:`UserScope`:

- ``all``   administrators, unrestricted
- ``store`` store and floor managers, limited to their assigned store
- ``own``   in-house sales and tele-calling, limited to records they own
- ``none``  everyone else, including anonymous callers

Everything here is pure and synchronous. Views apply the same rules to
querysets through :func:`scope_queryset` and :class:`ScopedQuerysetMixin`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from django.db.models import Q
from rest_framework.exceptions import PermissionDenied

from .identity import Principal, principal_from_user
from .roles import RoleClass, classify_role

logger = logging.getLogger(__name__)

SCOPE_ALL = 'all'
SCOPE_STORE = 'store'
SCOPE_OWN = 'own'
SCOPE_NONE = 'none'

DEFAULT_STORE_FIELD = 'store_id'
DEFAULT_USER_FIELD = 'user_id'
DEFAULT_ASSIGNED_TO_FIELD = 'assigned_to'
DEFAULT_SALES_REP_FIELD = 'sales_representative'


@dataclass(frozen=True)
class UserScope:
    type: str
    filters: Dict[str, Any] = field(default_factory=dict)
    description: str = ''

    def to_dict(self):
        return {'type': self.type, 'filters': dict(self.filters), 'description': self.description}


@dataclass(frozen=True)
class ScopedVisibility:
    can_access_all_data: bool
    can_access_store_data: bool
    can_access_own_data: bool
    user_scope: UserScope

    def to_dict(self):
        return {
            'can_access_all_data': self.can_access_all_data,
            'can_access_store_data': self.can_access_store_data,
            'can_access_own_data': self.can_access_own_data,
            'user_scope': self.user_scope.to_dict(),
        }


@dataclass(frozen=True)
class ScopeFields:
    """Record attribute names consulted when filtering. Override per record type."""

    store_field: str = DEFAULT_STORE_FIELD
    user_field: str = DEFAULT_USER_FIELD
    assigned_to_field: str = DEFAULT_ASSIGNED_TO_FIELD
    sales_rep_field: str = DEFAULT_SALES_REP_FIELD

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, str]] = None) -> 'ScopeFields':
        if isinstance(options, ScopeFields):
            return options
        options = options or {}
        return cls(
            store_field=options.get('store_field') or DEFAULT_STORE_FIELD,
            user_field=options.get('user_field') or DEFAULT_USER_FIELD,
            assigned_to_field=options.get('assigned_to_field') or DEFAULT_ASSIGNED_TO_FIELD,
            sales_rep_field=options.get('sales_rep_field') or DEFAULT_SALES_REP_FIELD,
        )

    @property
    def ownership_fields(self):
        return (self.user_field, self.assigned_to_field, self.sales_rep_field)


def resolve_scope(principal: Optional[Principal]) -> UserScope:
    """Resolve the data scope for ``principal``. Pure; no I/O."""
    if principal is None:
        return UserScope(SCOPE_NONE, {}, 'No access - user not authenticated')

    role_class = classify_role(principal.role)

    if role_class is RoleClass.ADMIN:
        return UserScope(SCOPE_ALL, {}, 'Full access to all data')
    if role_class is RoleClass.STORE_MANAGER:
        return UserScope(SCOPE_STORE, {'store_id': principal.store_id}, 'Access to store-specific data')
    if role_class is RoleClass.OWN_DATA:
        return UserScope(SCOPE_OWN, {'user_id': principal.id}, 'Access to own data only')
    return UserScope(SCOPE_NONE, {}, 'No access')


def resolve_scoped_visibility(principal: Optional[Principal]) -> ScopedVisibility:
    scope = resolve_scope(principal)
    role_class = classify_role(principal.role) if principal else RoleClass.NO_ACCESS

    return ScopedVisibility(
        can_access_all_data=role_class is RoleClass.ADMIN,
        can_access_store_data=role_class in (RoleClass.ADMIN, RoleClass.STORE_MANAGER),
        can_access_own_data=role_class in (RoleClass.ADMIN, RoleClass.STORE_MANAGER, RoleClass.OWN_DATA),
        user_scope=scope,
    )


def _value(item, name):
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _same(left, right):
    if left is None or right is None:
        return False
    return left == right or str(left) == str(right)


def _owns(item, user_id, fields: ScopeFields) -> bool:
    return any(_same(_value(item, name), user_id) for name in fields.ownership_fields)


def filter_data_by_scope(data: Iterable[Any], scope: UserScope, options=None) -> List[Any]:
    """
    Keep only the records ``scope`` may see.

    Own-scope matching is an OR across the user, assigned-to and
    sales-representative fields: any one marker is enough.
    """
    data = list(data)
    fields = ScopeFields.from_options(options)

    if scope.type == SCOPE_ALL:
        return data

    if scope.type == SCOPE_STORE:
        store_id = scope.filters.get('store_id')
        if store_id is None:
            return []
        return [item for item in data if _same(_value(item, fields.store_field), store_id)]

    if scope.type == SCOPE_OWN:
        user_id = scope.filters.get('user_id')
        if user_id is None:
            return []
        return [item for item in data if _owns(item, user_id, fields)]

    return []


def get_scope_query_params(scope: UserScope) -> Dict[str, str]:
    params = {}

    if scope.type == SCOPE_STORE and scope.filters.get('store_id') is not None:
        params['store_id'] = str(scope.filters['store_id'])

    if scope.type == SCOPE_OWN and scope.filters.get('user_id') is not None:
        params['user_id'] = str(scope.filters['user_id'])

    return params


def can_perform_action(action: str, scope: UserScope, item: Any = None) -> bool:
    """Deny-by-default action check for a scope, optionally against one record."""
    if action == 'view_all':
        return scope.type == SCOPE_ALL

    if action == 'view_store':
        return scope.type in (SCOPE_ALL, SCOPE_STORE)

    if action == 'view_own':
        return scope.type in (SCOPE_ALL, SCOPE_STORE, SCOPE_OWN)

    if action in ('edit_own', 'delete_own'):
        if scope.type in (SCOPE_ALL, SCOPE_STORE):
            return True
        if scope.type == SCOPE_OWN and item is not None:
            return _owns(item, scope.filters.get('user_id'), ScopeFields())
        return False

    return False


def get_scope_display_text(scope: UserScope) -> str:
    return {
        SCOPE_ALL: 'All Data',
        SCOPE_STORE: 'Store Data',
        SCOPE_OWN: 'My Data',
        SCOPE_NONE: 'No Access',
    }.get(scope.type, 'Unknown')


def get_scoped_endpoint(base_endpoint: str, scope: UserScope) -> str:
    if scope.type == SCOPE_OWN:
        return base_endpoint.replace('/list/', '/my/')
    return base_endpoint


def scope_queryset(queryset, scope: UserScope, options=None):
    """Apply ``scope`` to a queryset with the same rules as filter_data_by_scope."""
    fields = ScopeFields.from_options(options)

    if scope.type == SCOPE_ALL:
        return queryset

    if scope.type == SCOPE_STORE:
        store_id = scope.filters.get('store_id')
        if store_id is None:
            return queryset.none()
        return queryset.filter(**{fields.store_field: store_id})

    if scope.type == SCOPE_OWN:
        user_id = scope.filters.get('user_id')
        if user_id is None:
            return queryset.none()
        ownership = Q()
        for name in fields.ownership_fields:
            ownership |= Q(**{name: user_id})
        return queryset.filter(ownership)

    return queryset.none()


class PrincipalContextMixin:
    """
    Attach ``principal``, ``user_scope`` and ``store_isolation`` to the DRF
    request once authentication has run, so permission classes and views
    read one resolved identity.
    """

    def perform_authentication(self, request):
        from stores.isolation import resolve_store_isolation

        super().perform_authentication(request)
        principal = principal_from_user(request.user)
        request.principal = principal
        request.user_scope = resolve_scope(principal)
        request.store_isolation = resolve_store_isolation(principal)


class ScopedQuerysetMixin(PrincipalContextMixin):
    """
    Mixin for ViewSets that serve store-owned, user-owned records.

    Usage:
        class CustomerViewSet(ScopedQuerysetMixin, viewsets.ModelViewSet):
            scope_fields = ScopeFields(assigned_to_field='assigned_to_id')
    """

    scope_fields = ScopeFields()
    store_field = 'store_id'

    def get_principal(self):
        principal = getattr(self.request, 'principal', None)
        if principal is None:
            principal = principal_from_user(self.request.user)
        return principal

    def get_user_scope(self):
        return resolve_scope(self.get_principal())

    def get_queryset(self):
        queryset = super().get_queryset()
        return scope_queryset(queryset, self.get_user_scope(), self.scope_fields)

    def check_store_write(self, target_store_id, action):
        from stores.isolation import validate_store_access

        principal = self.get_principal()
        result = validate_store_access(
            action,
            target_store_id,
            principal.store_id if principal else None,
            principal.role if principal else None,
        )
        if not result.allowed:
            logger.info(
                f"Store access denied for {principal.email if principal else 'anonymous'}: "
                f"{action} on store {target_store_id}"
            )
            raise PermissionDenied(result.reason)

    def check_ownership(self, instance, action):
        scope = self.get_user_scope()
        if scope.type == SCOPE_NONE:
            raise PermissionDenied('You do not have access to this data.')
        fields = self.scope_fields
        record = {
            DEFAULT_USER_FIELD: getattr(instance, fields.user_field, None),
            DEFAULT_ASSIGNED_TO_FIELD: getattr(instance, fields.assigned_to_field, None),
            DEFAULT_SALES_REP_FIELD: getattr(instance, fields.sales_rep_field, None),
        }
        if not can_perform_action(action, scope, record):
            raise PermissionDenied('You can only modify records assigned to you.')

    def perform_create(self, serializer):
        store = serializer.validated_data.get('store')
        self.check_store_write(getattr(store, 'pk', store), 'create')
        serializer.save()

    def perform_update(self, serializer):
        instance = serializer.instance
        self.check_ownership(instance, 'edit_own')
        self.check_store_write(getattr(instance, self.store_field, None), 'update')
        new_store = serializer.validated_data.get('store')
        if new_store is not None:
            self.check_store_write(getattr(new_store, 'pk', new_store), 'update')
        serializer.save()

    def perform_destroy(self, instance):
        self.check_ownership(instance, 'delete_own')
        self.check_store_write(getattr(instance, self.store_field, None), 'delete')
        instance.delete()
