"""
Store Isolation
Keeps store-owned entities (customers, sales, visits, stock) inside the
store the principal is assigned to. Administrators see every store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from django.utils import timezone

from accounts.identity import Principal
from accounts.roles import is_admin_role

logger = logging.getLogger(__name__)

ASSIGNED_STORE_ONLY = 'You can only perform this action on your assigned store'
NOT_ASSIGNED_TO_STORE = 'You are not assigned to any store'


def _present(value):
    return value is not None and value != ''


def _same_store(left, right):
    return str(left) == str(right)


def _value(obj, name):
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _item_store(item, store_field=None):
    if isinstance(item, Mapping):
        if store_field:
            return item.get(store_field)
        return item.get('store_id') or item.get('store')
    if store_field:
        return getattr(item, store_field, None)
    return getattr(item, 'store_id', None) or getattr(item, 'store', None)


@dataclass(frozen=True)
class StoreIsolation:
    current_store_id: Optional[int]
    user_role: str
    can_access_all_stores: bool
    can_access_current_store: bool
    store_filter: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self):
        return {
            'current_store_id': self.current_store_id,
            'user_role': self.user_role,
            'can_access_all_stores': self.can_access_all_stores,
            'can_access_current_store': self.can_access_current_store,
            'store_filter': dict(self.store_filter),
        }


@dataclass(frozen=True)
class StoreAccessResult:
    allowed: bool
    reason: Optional[str] = None

    def to_dict(self):
        if self.reason is None:
            return {'allowed': self.allowed}
        return {'allowed': self.allowed, 'reason': self.reason}


def resolve_store_isolation(principal: Optional[Principal]) -> StoreIsolation:
    if principal is None:
        return StoreIsolation(
            current_store_id=None,
            user_role='none',
            can_access_all_stores=False,
            can_access_current_store=False,
            store_filter={},
        )

    can_access_all_stores = is_admin_role(principal.role)
    store_id = principal.store_id

    return StoreIsolation(
        current_store_id=store_id,
        user_role=principal.role or 'unknown',
        can_access_all_stores=can_access_all_stores,
        can_access_current_store=can_access_all_stores or _present(store_id),
        store_filter={} if can_access_all_stores else {'store_id': store_id},
    )


def validate_store_access(action: str, target_store_id, user_store_id, user_role) -> StoreAccessResult:
    """
    Check a create/read/update/delete against the principal's store.

    Must be consulted before writing any store-scoped record.
    """
    if is_admin_role(user_role):
        return StoreAccessResult(allowed=True)

    if _present(user_store_id) and _present(target_store_id):
        if _same_store(user_store_id, target_store_id):
            return StoreAccessResult(allowed=True)
        return StoreAccessResult(allowed=False, reason=ASSIGNED_STORE_ONLY)

    if not _present(user_store_id) and _present(target_store_id):
        return StoreAccessResult(allowed=False, reason=NOT_ASSIGNED_TO_STORE)

    return StoreAccessResult(allowed=True)


def filter_data_by_store(data: Iterable[Any], store_id, store_field='store_id', allow_all_stores=False) -> List[Any]:
    data = list(data)
    if not _present(store_id) or allow_all_stores:
        return data
    return [item for item in data if _same_store(_item_store(item, store_field), store_id)]


def get_store_query_params(store_id, allow_all_stores=False) -> Dict[str, str]:
    if allow_all_stores or not _present(store_id):
        return {}
    return {'store_id': str(store_id)}


def can_access_store_data(item_store_id, user_store_id, user_role) -> bool:
    if is_admin_role(user_role):
        return True
    if _present(user_store_id) and _present(item_store_id):
        return _same_store(user_store_id, item_store_id)
    return False


def get_store_display_info(store_id, stores) -> Dict[str, Any]:
    if not _present(store_id):
        return {'name': 'All Stores', 'is_current_store': False}

    store = next((s for s in stores if _same_store(_value(s, 'id'), store_id)), None)
    return {
        'name': _value(store, 'name') if store is not None else f'Store {store_id}',
        'is_current_store': True,
    }


def get_store_specific_endpoint(base_endpoint: str, store_id, allow_all_stores=False) -> str:
    if allow_all_stores or not _present(store_id):
        return base_endpoint
    return f'{base_endpoint}?store_id={store_id}'


def create_store_aware_form_data(form_data: Dict[str, Any], store_id, user_role) -> Dict[str, Any]:
    """Pin non-admin submissions to the principal's store. Admins choose freely."""
    if is_admin_role(user_role):
        return dict(form_data)
    if _present(store_id):
        return {**form_data, 'store_id': store_id}
    return dict(form_data)


def get_store_selection_options(stores, user_store_id, user_role) -> List[Dict[str, Any]]:
    if is_admin_role(user_role):
        return [
            {
                'value': _value(store, 'id'),
                'label': _value(store, 'name'),
                'disabled': _value(store, 'is_active') is False,
            }
            for store in stores
        ]

    if _present(user_store_id):
        for store in stores:
            if _same_store(_value(store, 'id'), user_store_id):
                return [{'value': _value(store, 'id'), 'label': _value(store, 'name'), 'disabled': False}]

    return []


def is_data_from_current_store(item, user_store_id, user_role) -> bool:
    if is_admin_role(user_role):
        return True
    if not _present(user_store_id):
        return False
    item_store = _item_store(item)
    return _present(item_store) and _same_store(item_store, user_store_id)


def get_store_context(store_id, user_role) -> Dict[str, Any]:
    return {
        'store_id': store_id,
        'user_role': user_role,
        'timestamp': timezone.now().isoformat(),
    }


def log_store_access(action, target_store_id, user_store_id, user_role, success):
    logger.info(
        'Store access: action=%s target_store=%s user_store=%s role=%s success=%s',
        action, target_store_id, user_store_id, user_role, success,
    )


def get_store_statistics(data, store_id, user_role) -> Dict[str, int]:
    data = list(data)

    def _counts(rows):
        return {
            'total': len(rows),
            'active': sum(1 for row in rows if _value(row, 'status') == 'active'),
            'inactive': sum(1 for row in rows if _value(row, 'status') == 'inactive'),
        }

    if is_admin_role(user_role):
        return _counts(data)

    if _present(store_id):
        return _counts([row for row in data if _same_store(_item_store(row), store_id)])

    return {'total': 0, 'active': 0, 'inactive': 0}
