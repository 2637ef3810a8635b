"""
Key-value persistence for client preferences (the selected store, the
persisted auth snapshot). Contexts depend on the ``KeyValueStore`` shape only,
so they run the same against a Django session, the cache or a dict.
"""

from __future__ import annotations

from typing import Dict, Optional

from django.core.cache import cache

SELECTED_STORE_KEY = 'selectedStore'


class KeyValueStore:
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data = dict(initial or {})

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = str(value)

    def remove(self, key):
        self.data.pop(key, None)


class SessionKeyValueStore(KeyValueStore):
    """Backed by ``request.session``; survives across requests of one browser session."""

    def __init__(self, session):
        self.session = session

    def get(self, key):
        value = self.session.get(key)
        return None if value is None else str(value)

    def set(self, key, value):
        self.session[key] = str(value)

    def remove(self, key):
        self.session.pop(key, None)


class CacheKeyValueStore(KeyValueStore):
    """Backed by the Django cache, namespaced per user."""

    CACHE_TIMEOUT = 60 * 60 * 24 * 30  # 30 days

    def __init__(self, namespace: str, timeout: Optional[int] = None):
        self.namespace = namespace
        self.timeout = timeout or self.CACHE_TIMEOUT

    def _key(self, key):
        return f"client_storage:{self.namespace}:{key}"

    def get(self, key):
        value = cache.get(self._key(key))
        return None if value is None else str(value)

    def set(self, key, value):
        cache.set(self._key(key), str(value), self.timeout)

    def remove(self, key):
        cache.delete(self._key(key))


def client_storage(request) -> KeyValueStore:
    """
    Preference storage for the caller. Token clients usually carry no session
    cookie, so their preferences live in the cache under their user id.
    """
    user = getattr(request, 'user', None)
    if getattr(request, 'auth', None) is not None and user is not None and user.is_authenticated:
        return CacheKeyValueStore(namespace=str(user.pk))
    return SessionKeyValueStore(request.session)
