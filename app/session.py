"""
Client session composition.

``CrmSession`` owns one auth state store, one store context and one floor
context for a single client, and wires them together: whenever the
signed-in identity changes the floor context reloads for the new
principal. Nothing here is a module-level singleton; views and tests build
their own session.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Set

from accounts.auth_state import AuthStateStore
from accounts.identity import IdentityProvider
from accounts.scoped_visibility import resolve_scoped_visibility
from stores.floor_context import FloorContext
from stores.isolation import resolve_store_isolation
from stores.persistence import InMemoryKeyValueStore, KeyValueStore
from stores.store_context import StoreContext

logger = logging.getLogger(__name__)

_UNSET = object()


class CrmSession:
    def __init__(
        self,
        provider: IdentityProvider,
        storage: Optional[KeyValueStore] = None,
        auth_state: Optional[AuthStateStore] = None,
        store_context: Optional[StoreContext] = None,
        floor_context: Optional[FloorContext] = None,
        notify: Optional[Callable[[str], None]] = None,
    ):
        storage = storage or InMemoryKeyValueStore()
        self.auth = auth_state or AuthStateStore(provider, storage=storage)
        self.stores = store_context or StoreContext(storage=storage)
        self.floors = floor_context or FloorContext(notify=notify)

        self._unsubscribe = None
        self._loaded_identity = _UNSET
        self._pending: Set[asyncio.Future] = set()

    @staticmethod
    def _floor_key(principal):
        # Floors depend on who is signed in and on the role they hold.
        if principal is None:
            return None
        return principal.identity_key + (principal.role, principal.metadata.get('role'))

    def _on_auth_change(self, auth: AuthStateStore):
        principal = auth.principal
        identity = self._floor_key(principal)
        if identity == self._loaded_identity:
            return
        self._loaded_identity = identity

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug('No running loop; floor reload deferred to start()')
            self._loaded_identity = _UNSET
            return

        task = loop.create_task(self.floors.load(principal))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def settle(self):
        """Wait for every floor reload scheduled so far."""
        while True:
            pending = [task for task in self._pending if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending)

    async def start(self):
        if not self.auth.is_hydrated:
            self.auth.hydrate()
        if self._unsubscribe is None:
            self._unsubscribe = self.auth.subscribe(self._on_auth_change)

        await self.auth.initialize()
        self._on_auth_change(self.auth)
        await self.stores.mount()
        await self.settle()

    async def stop(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.auth.stop()

        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def to_dict(self):
        principal = self.auth.principal
        return {
            'auth': self.auth.to_dict(),
            'visibility': resolve_scoped_visibility(principal).to_dict(),
            'store_isolation': resolve_store_isolation(principal).to_dict(),
            'store': self.stores.to_dict(),
            'floor': self.floors.to_dict(),
        }
