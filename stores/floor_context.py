"""
Floor Context

Loads the floors a principal oversees. Administrators see every floor and
have no "current" one; floor managers see exactly the floor assigned to
them; everyone else sees nothing.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional

from django.conf import settings

from accounts.identity import Principal
from accounts.roles import RoleClass, classify_role

from .repositories import Floor, FloorRepository, TeamMemberRoleLookup

logger = logging.getLogger(__name__)

DEFAULT_ROLE = 'user'
NO_FLOOR_ASSIGNED = 'No floor assigned to this manager'


class FloorState(str, Enum):
    UNINITIALIZED = 'uninitialized'
    ROLE_LOADING = 'role_loading'
    ADMIN_VIEW = 'admin_view'
    MANAGER_VIEW = 'manager_view'
    NO_ACCESS = 'no_access'


class FloorContext:
    def __init__(
        self,
        repository: Optional[FloorRepository] = None,
        role_lookup: Optional[TeamMemberRoleLookup] = None,
        fetch_timeout: Optional[float] = None,
        notify: Optional[Callable[[str], None]] = None,
    ):
        self.repository = repository or FloorRepository()
        self.role_lookup = role_lookup or TeamMemberRoleLookup()
        self.fetch_timeout = getattr(settings, 'FLOOR_FETCH_TIMEOUT', 10) if fetch_timeout is None else fetch_timeout
        self.notify = notify

        self.state = FloorState.UNINITIALIZED
        self.user_role = DEFAULT_ROLE
        self.current_floor: Optional[Floor] = None
        self.all_floors: List[Floor] = []
        self.is_loading = True
        self.error: Optional[str] = None
        self._generation = 0
        self._principal: Optional[Principal] = None

    @property
    def is_admin(self):
        return classify_role(self.user_role) is RoleClass.ADMIN

    @property
    def is_floor_manager(self):
        return classify_role(self.user_role) is RoleClass.STORE_MANAGER

    def get_user_floor(self) -> Optional[Floor]:
        if self._principal is None or not self.is_floor_manager:
            return None
        return self.current_floor

    def _clear(self):
        self.current_floor = None
        self.all_floors = []

    def _is_stale(self, generation, principal):
        return generation != self._generation or self._principal is not principal

    async def _resolve_role(self, principal: Principal) -> Optional[str]:
        metadata_role = principal.metadata.get('role') or principal.role
        if metadata_role:
            return metadata_role

        try:
            return await self.role_lookup.lookup_role(principal.email)
        except Exception as exc:
            logger.warning(f"Role lookup failed for {principal.email}: {exc}")
            return None

    def _fail(self, message):
        self._clear()
        self.error = message
        logger.error(f"Floor data loading error: {message}")
        if self.notify is not None:
            self.notify(message)

    async def load(self, principal: Optional[Principal]):
        """(Re)load for ``principal``. Results for a superseded principal are dropped."""
        self._generation += 1
        generation = self._generation
        self._principal = principal
        self.error = None

        if principal is None:
            self.state = FloorState.UNINITIALIZED
            self.user_role = DEFAULT_ROLE
            self._clear()
            self.is_loading = False
            return

        self.state = FloorState.ROLE_LOADING
        self.is_loading = True

        role = await self._resolve_role(principal)
        if self._is_stale(generation, principal):
            return
        self.user_role = role or DEFAULT_ROLE
        role_class = classify_role(self.user_role)

        try:
            # View state is set before fetching; a failed fetch keeps it and sets ``error``.
            if role_class is RoleClass.ADMIN:
                self.state = FloorState.ADMIN_VIEW
                floors = await asyncio.wait_for(self.repository.fetch_floors(), timeout=self.fetch_timeout)
                if self._is_stale(generation, principal):
                    return
                self.all_floors = list(floors)
                self.current_floor = None

            elif role_class is RoleClass.STORE_MANAGER:
                self.state = FloorState.MANAGER_VIEW
                if not principal.email:
                    self._clear()
                    self.error = 'User email not found'
                    return

                floor = await asyncio.wait_for(
                    self.repository.fetch_floor_for_manager(principal.email),
                    timeout=self.fetch_timeout,
                )
                if self._is_stale(generation, principal):
                    return
                if floor is None:
                    self._clear()
                    self.error = NO_FLOOR_ASSIGNED
                else:
                    self.current_floor = floor
                    self.all_floors = [floor]

            else:
                self._clear()
                self.state = FloorState.NO_ACCESS

        except asyncio.TimeoutError:
            if not self._is_stale(generation, principal):
                self._fail('Timed out loading floor data')
        except Exception as exc:
            if not self._is_stale(generation, principal):
                self._fail(str(exc) or 'Failed to load floor data')
        finally:
            if not self._is_stale(generation, principal):
                self.is_loading = False

    def to_dict(self):
        return {
            'state': self.state.value,
            'user_role': self.user_role,
            'is_admin': self.is_admin,
            'is_floor_manager': self.is_floor_manager,
            'current_floor': self.current_floor.to_dict() if self.current_floor else None,
            'all_floors': [floor.to_dict() for floor in self.all_floors],
            'is_loading': self.is_loading,
            'error': self.error,
        }
