"""Centralized role-based access control definitions using django-rules."""

from __future__ import annotations

import rules

from django.db.models import Model

from accounts.identity import principal_from_user
from accounts.roles import RoleClass, classify_role
from accounts.scoped_visibility import ScopeFields, can_perform_action, resolve_scope


def _role_class(user) -> RoleClass:
    principal = principal_from_user(user)
    if principal is None:
        return RoleClass.NO_ACCESS
    return classify_role(principal.role)


def _get_store_id_from_object(obj: Model | None):
    """Return the store the object belongs to, for stores and store-owned records."""
    if obj is None:
        return None

    from stores.models import Store  # Local import to avoid cycles
    if isinstance(obj, Store):
        return obj.pk

    return getattr(obj, 'store_id', None)


@rules.predicate
def is_authenticated(user):  # pragma: no cover - thin wrapper
    return user.is_authenticated


@rules.predicate
def is_admin(user):
    return _role_class(user) is RoleClass.ADMIN


@rules.predicate
def is_store_manager(user):
    return _role_class(user) is RoleClass.STORE_MANAGER


@rules.predicate
def is_own_data_user(user):
    return _role_class(user) is RoleClass.OWN_DATA


@rules.predicate
def has_data_scope(user):
    return _role_class(user) is not RoleClass.NO_ACCESS


@rules.predicate
def manages_store(user, obj=None):
    if not user.is_authenticated or obj is None:
        return False
    store_id = _get_store_id_from_object(obj)
    return store_id is not None and str(store_id) == str(getattr(user, 'store_id', None))


@rules.predicate
def owns_record(user, obj=None):
    principal = principal_from_user(user)
    if principal is None or obj is None:
        return False
    scope = resolve_scope(principal)
    fields = ScopeFields()
    record = {
        fields.user_field: getattr(obj, 'created_by_id', None),
        fields.assigned_to_field: getattr(obj, 'assigned_to_id', None),
        fields.sales_rep_field: getattr(obj, 'sales_representative_id', None),
    }
    return can_perform_action('edit_own', scope, record)


# Audit trail --------------------------------------------------------------

rules.add_perm('accounts.view_audit_logs', is_admin)

# Stores -------------------------------------------------------------------

rules.add_perm('stores.view_store', is_authenticated)
rules.add_perm('stores.select_store', is_admin)
rules.add_perm('stores.add_store', is_admin)
rules.add_perm('stores.change_store', is_admin)
rules.add_perm('stores.delete_store', is_admin)
rules.add_perm('stores.view_floors', is_admin | is_store_manager)

# Customers ----------------------------------------------------------------

CUSTOMER_EDITORS = is_admin | (is_store_manager & manages_store) | (is_own_data_user & owns_record)

rules.add_perm('sales.view_customer', has_data_scope)
rules.add_perm('sales.add_customer', has_data_scope)
rules.add_perm('sales.change_customer', CUSTOMER_EDITORS)
rules.add_perm('sales.delete_customer', CUSTOMER_EDITORS)
rules.add_perm('sales.restore_customer', is_admin | is_store_manager)
rules.add_perm('sales.export_customer', is_admin | is_store_manager)
rules.add_perm('sales.view_sale', has_data_scope)
