"""
Role classification for the CRM.

Every scope, isolation and routing decision in the codebase pattern-matches
on :class:`RoleClass` rather than comparing raw role strings, so the
resolvers can never disagree about who is an administrator.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional


PLATFORM_ADMIN = 'platform_admin'
BUSINESS_ADMIN = 'business_admin'
MANAGER = 'manager'
FLOOR_MANAGER = 'floor_manager'
INHOUSE_SALES = 'inhouse_sales'
TELE_CALLING = 'tele_calling'
SALES_ASSOCIATE = 'sales_associate'
SALES = 'sales'
UNKNOWN = 'unknown'

ROLE_CHOICES = [
    (PLATFORM_ADMIN, 'Platform Admin'),
    (BUSINESS_ADMIN, 'Business Admin'),
    (MANAGER, 'Store Manager'),
    (FLOOR_MANAGER, 'Floor Manager'),
    (INHOUSE_SALES, 'In-house Sales'),
    (TELE_CALLING, 'Tele-calling'),
    (SALES_ASSOCIATE, 'Sales Associate'),
    (SALES, 'Sales'),
    (UNKNOWN, 'Unknown'),
]


class RoleClass(str, Enum):
    ADMIN = 'admin'
    STORE_MANAGER = 'store_manager'
    OWN_DATA = 'own_data'
    NO_ACCESS = 'no_access'


_ROLE_CLASSES = {
    PLATFORM_ADMIN: RoleClass.ADMIN,
    BUSINESS_ADMIN: RoleClass.ADMIN,
    MANAGER: RoleClass.STORE_MANAGER,
    FLOOR_MANAGER: RoleClass.STORE_MANAGER,
    INHOUSE_SALES: RoleClass.OWN_DATA,
    TELE_CALLING: RoleClass.OWN_DATA,
}


def normalize_role(role: Optional[str]) -> Optional[str]:
    if role is None:
        return None
    role = str(role).strip().lower()
    return role or None


def classify_role(role: Optional[str]) -> RoleClass:
    """Map a raw role string to its access class. Unknown roles get no access."""
    return _ROLE_CLASSES.get(normalize_role(role), RoleClass.NO_ACCESS)


def is_admin_role(role: Optional[str]) -> bool:
    return classify_role(role) is RoleClass.ADMIN


def is_store_manager_role(role: Optional[str]) -> bool:
    return classify_role(role) is RoleClass.STORE_MANAGER


def is_own_data_role(role: Optional[str]) -> bool:
    return classify_role(role) is RoleClass.OWN_DATA


def role_in(role: Optional[str], allowed: Iterable[str] | str) -> bool:
    """True when ``role`` is one of ``allowed`` (a single role or a list)."""
    if isinstance(allowed, str):
        allowed = [allowed]
    normalized = normalize_role(role)
    if normalized is None:
        return False
    return normalized in {normalize_role(r) for r in allowed}
