"""
Store Context

Session-scoped view of the store list and the user's selected store.
The selection is a client preference persisted under ``selectedStore``;
this context is its only writer.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Tuple

from django.conf import settings

from accounts.identity import Principal
from accounts.roles import is_admin_role

from .persistence import SELECTED_STORE_KEY, InMemoryKeyValueStore, KeyValueStore
from .repositories import StoreRecord, StoreRepository

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_STORES = [
    {'id': 1, 'name': 'Main Store', 'location': 'Downtown', 'floors': 3},
    {'id': 2, 'name': 'Branch Store', 'location': 'Uptown', 'floors': 2},
    {'id': 3, 'name': 'Mall Store', 'location': 'Shopping Center', 'floors': 1},
]


def get_fallback_stores() -> List[StoreRecord]:
    stores = getattr(settings, 'FALLBACK_STORES', DEFAULT_FALLBACK_STORES)
    return [StoreRecord.from_dict(store) for store in stores]


def can_select_store(principal: Optional[Principal]) -> bool:
    """Only administrators may switch the active store."""
    return principal is not None and is_admin_role(principal.role)


class StoreContext:
    def __init__(
        self,
        repository: Optional[StoreRepository] = None,
        storage: Optional[KeyValueStore] = None,
        fetch_timeout: Optional[float] = None,
        default_store_id: Optional[int] = None,
    ):
        self.repository = repository or StoreRepository()
        self.storage = storage or InMemoryKeyValueStore()
        self.fetch_timeout = getattr(settings, 'STORE_FETCH_TIMEOUT', 10) if fetch_timeout is None else fetch_timeout
        self.default_store_id = getattr(settings, 'DEFAULT_STORE_ID', 1) if default_store_id is None else default_store_id

        self.current_store_id: int = self.default_store_id
        self.stores: Tuple[StoreRecord, ...] = ()
        self.is_loading = True
        self.using_fallback = False
        self.error: Optional[str] = None
        self._generation = 0

    @property
    def current_store_data(self) -> Optional[StoreRecord]:
        return next((store for store in self.stores if store.id == self.current_store_id), None)

    def restore_preference(self):
        saved = self.storage.get(SELECTED_STORE_KEY)
        if saved is None:
            return
        try:
            self.current_store_id = int(saved)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid stored store selection: {saved!r}")

    async def mount(self):
        self.restore_preference()
        await self.refresh_stores()

    def set_current_store(self, store_id: int):
        store_id = int(store_id)
        logger.info(f"Switching to store {store_id}")
        self.current_store_id = store_id
        self.storage.set(SELECTED_STORE_KEY, str(store_id))

    def select_store(self, principal: Optional[Principal], store_id: int) -> bool:
        if not can_select_store(principal):
            return False
        self.set_current_store(store_id)
        return True

    async def refresh_stores(self):
        """Re-fetch the store list; the newest call wins if several overlap."""
        self._generation += 1
        generation = self._generation
        self.is_loading = True

        try:
            stores = await asyncio.wait_for(self.repository.fetch_stores(), timeout=self.fetch_timeout)
        except asyncio.TimeoutError:
            stores, error = None, 'Timed out fetching stores'
        except Exception as exc:
            stores, error = None, str(exc) or 'Failed to fetch stores'
        else:
            error = None

        if generation != self._generation:
            logger.debug('Discarding stale store list result')
            return

        if stores is None:
            fallback = tuple(get_fallback_stores())
            logger.warning(f"Using fallback stores after fetch failure: {error}")
            self.stores = fallback
            self.using_fallback = True
            self.error = error
        else:
            logger.info(f"Fetched {len(stores)} stores")
            self.stores = tuple(stores)
            self.using_fallback = False
            self.error = None

        self.is_loading = False

    def to_dict(self):
        current = self.current_store_data
        return {
            'current_store': self.current_store_id,
            'current_store_data': current.to_dict() if current else None,
            'stores': [store.to_dict() for store in self.stores],
            'is_loading': self.is_loading,
            'using_fallback': self.using_fallback,
            'error': self.error,
        }
