"""
ORM-backed data access for the store and floor contexts.

The contexts await these calls; each one runs its queries in a worker
thread through ``sync_to_async`` so the event loop never blocks on the DB.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from asgiref.sync import sync_to_async
from django.conf import settings
from django.db.models import Sum
from django.utils import timezone

from accounts.models import TeamMember
from accounts.roles import FLOOR_MANAGER, MANAGER

from .models import Store

logger = logging.getLogger(__name__)

DEFAULT_FLOOR_NAMES = ['Ground Floor', 'First Floor', 'Second Floor']


@dataclass(frozen=True)
class StoreRecord:
    id: int
    name: str
    location: str
    floors: int
    village: Optional[str] = None
    address: Optional[str] = None
    is_active: bool = True

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'location': self.location,
            'floors': self.floors,
            'village': self.village,
            'address': self.address,
            'is_active': self.is_active,
        }

    @classmethod
    def from_model(cls, store: Store) -> 'StoreRecord':
        return cls(
            id=store.id,
            name=store.name,
            location=store.location,
            floors=store.floors,
            village=store.village,
            address=store.address,
            is_active=store.is_active,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StoreRecord':
        return cls(
            id=int(data['id']),
            name=data['name'],
            location=data.get('location', ''),
            floors=int(data.get('floors', 1)),
            village=data.get('village'),
            address=data.get('address'),
            is_active=data.get('is_active', True),
        )


@dataclass(frozen=True)
class Floor:
    id: str
    name: str
    manager_id: str
    manager_name: str
    status: str
    visitor_count: int
    sales_today: Decimal
    last_updated: str

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'manager_id': self.manager_id,
            'manager_name': self.manager_name,
            'status': self.status,
            'visitor_count': self.visitor_count,
            'sales_today': str(self.sales_today),
            'last_updated': self.last_updated,
        }


def get_floor_names() -> List[str]:
    return list(getattr(settings, 'FLOOR_NAMES', DEFAULT_FLOOR_NAMES))


class StoreRepository:
    def _fetch_stores(self) -> List[StoreRecord]:
        return [StoreRecord.from_model(store) for store in Store.objects.order_by('id')]

    async def fetch_stores(self) -> List[StoreRecord]:
        return await sync_to_async(self._fetch_stores)()


class FloorRepository:
    """Floors are derived from the floor-manager roster plus today's visits and sales."""

    manager_roles = (FLOOR_MANAGER, MANAGER)

    def _floor_stats(self, floor_number, store_id=None):
        from sales.models import Sale, Visit

        today = timezone.localdate()
        visits = Visit.objects.filter(floor=floor_number, date__gte=today)
        sales = Sale.objects.filter(floor=floor_number, date__gte=today)
        if store_id is not None:
            visits = visits.filter(store_id=store_id)
            sales = sales.filter(store_id=store_id)

        total = sales.aggregate(total=Sum('amount'))['total'] or Decimal('0.00')
        return visits.count(), total

    def _build_floor(self, floor_number, manager: Optional[TeamMember], store_id=None) -> Floor:
        names = get_floor_names()
        name = names[floor_number - 1] if 0 < floor_number <= len(names) else f'Floor {floor_number}'
        visitor_count, sales_today = self._floor_stats(floor_number, store_id)

        return Floor(
            id=str(floor_number),
            name=name,
            manager_id=str(manager.id) if manager else '',
            manager_name=manager.full_name if manager else 'No Manager Assigned',
            status='active' if manager and manager.status == TeamMember.STATUS_ACTIVE else 'inactive',
            visitor_count=visitor_count,
            sales_today=sales_today,
            last_updated=timezone.now().isoformat(),
        )

    def _fetch_floors(self, store_id=None) -> List[Floor]:
        managers = TeamMember.objects.filter(role__in=self.manager_roles, floor__isnull=False)
        if store_id is not None:
            managers = managers.filter(store_id=store_id)
        by_floor = {}
        for member in managers.order_by('created_at'):
            by_floor.setdefault(member.floor, member)

        return [
            self._build_floor(number, by_floor.get(number), store_id)
            for number in range(1, len(get_floor_names()) + 1)
        ]

    async def fetch_floors(self, store_id=None) -> List[Floor]:
        return await sync_to_async(self._fetch_floors)(store_id)

    def _fetch_floor_for_manager(self, email) -> Optional[Floor]:
        member = TeamMember.objects.filter(
            email__iexact=email,
            role__in=self.manager_roles,
            floor__isnull=False,
        ).first()
        if member is None:
            return None
        return self._build_floor(member.floor, member, member.store_id)

    async def fetch_floor_for_manager(self, email: str) -> Optional[Floor]:
        return await sync_to_async(self._fetch_floor_for_manager)(email)


class TeamMemberRoleLookup:
    """Fallback role source when the session metadata carries no role."""

    def _lookup(self, email):
        return (
            TeamMember.objects.filter(email__iexact=email)
            .values_list('role', flat=True)
            .first()
        )

    async def lookup_role(self, email: str) -> Optional[str]:
        return await sync_to_async(self._lookup)(email)
