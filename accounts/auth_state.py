"""
Auth State Store

Process-wide view of the current principal and session. The store owns
exactly one subscription to the identity provider, persists a snapshot
through a ``KeyValueStore`` so a restart can hydrate before the provider
answers, and fans state changes out to in-process listeners (the store
and floor contexts, guards).
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Optional

from django.conf import settings

from stores.persistence import InMemoryKeyValueStore, KeyValueStore

from .identity import AuthEvent, AuthSession, IdentityProvider, Principal, Subscription

logger = logging.getLogger(__name__)

PERSIST_KEY = 'auth-storage'

StateListener = Callable[['AuthStateStore'], None]


class AuthStateStore:
    def __init__(
        self,
        provider: IdentityProvider,
        storage: Optional[KeyValueStore] = None,
        session_timeout: Optional[float] = None,
        retries: Optional[int] = None,
        backoff: Optional[float] = None,
        sleep=asyncio.sleep,
    ):
        self.provider = provider
        self.storage = storage or InMemoryKeyValueStore()
        self.session_timeout = getattr(settings, 'AUTH_SESSION_TIMEOUT', 10) if session_timeout is None else session_timeout
        self.retries = getattr(settings, 'AUTH_INIT_RETRIES', 3) if retries is None else retries
        self.backoff = getattr(settings, 'AUTH_INIT_BACKOFF', 1) if backoff is None else backoff
        self._sleep = sleep

        self.user: Optional[Principal] = None
        self.session: Optional[AuthSession] = None
        self.is_authenticated = False
        self.is_loading = False
        self.error: Optional[str] = None
        self.is_hydrated = False
        self.is_initialized = False

        self._subscription: Optional[Subscription] = None
        self._listeners: List[StateListener] = []

    @property
    def principal(self) -> Optional[Principal]:
        return self.user if self.is_authenticated else None

    # Listeners

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception('Auth state subscriber failed')

    # Setters

    def set_user(self, user: Optional[Principal]):
        self.user = user
        self.is_authenticated = user is not None
        self._persist()
        self._notify()

    def set_session(self, session: Optional[AuthSession]):
        self.session = session
        self.user = session.user if session else None
        self.is_authenticated = session is not None
        self._persist()
        self._notify()

    def set_loading(self, loading: bool):
        self.is_loading = loading
        self._notify()

    def set_error(self, error: Optional[str]):
        self.error = error
        self._notify()

    def clear_error(self):
        self.set_error(None)

    # Persistence

    def _persist(self):
        snapshot = {
            'user': self.user.to_dict() if self.user else None,
            'session': self.session.to_dict() if self.session else None,
            'is_authenticated': self.is_authenticated,
        }
        self.storage.set(PERSIST_KEY, json.dumps(snapshot))

    def hydrate(self):
        """Restore the last persisted snapshot. Marks the store hydrated either way."""
        raw = self.storage.get(PERSIST_KEY)
        if raw:
            try:
                data = json.loads(raw)
                self.session = AuthSession.from_dict(data['session']) if data.get('session') else None
                self.user = Principal.from_dict(data['user']) if data.get('user') else None
                self.is_authenticated = bool(data.get('is_authenticated')) and self.user is not None
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning(f"Discarding unreadable auth snapshot: {exc}")
                self.storage.remove(PERSIST_KEY)
        self.is_hydrated = True
        self._notify()

    # Provider subscription

    def start(self):
        """Subscribe to provider events. Calling it again is a no-op."""
        if self._subscription is None:
            self._subscription = self.provider.on_auth_state_change(self._handle_auth_event)

    def stop(self):
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    @property
    def is_subscribed(self):
        return self._subscription is not None

    def _handle_auth_event(self, event: AuthEvent, session: Optional[AuthSession]):
        logger.debug(f"Auth state changed: {event.value}")
        if event is AuthEvent.SIGNED_OUT:
            self.set_session(None)
        else:
            self.set_session(session)

    # Operations

    async def initialize(self):
        """
        Resolve the current session from the provider.

        Each attempt is bounded by ``session_timeout``; failed attempts are
        retried with a fixed ``backoff``. When every attempt fails the store
        settles unauthenticated with ``error`` set.
        """
        if not self.is_hydrated:
            self.hydrate()
        self.start()
        self.set_loading(True)

        last_error = None
        for attempt in range(1, self.retries + 1):
            try:
                result = await asyncio.wait_for(self.provider.get_session(), timeout=self.session_timeout)
            except asyncio.TimeoutError:
                last_error = 'Session request timed out'
            except Exception as exc:
                last_error = str(exc) or 'Failed to load session'
            else:
                if result.ok:
                    self.session = result.data
                    self.user = result.data.user if result.data else None
                    self.is_authenticated = result.data is not None
                    self.error = None
                    self.is_initialized = True
                    self.is_loading = False
                    self._persist()
                    self._notify()
                    return
                last_error = result.error

            logger.warning(f"Auth initialization attempt {attempt}/{self.retries} failed: {last_error}")
            if attempt < self.retries:
                await self._sleep(self.backoff)

        logger.error(f"Auth initialization failed after {self.retries} attempts: {last_error}")
        self.session = None
        self.user = None
        self.is_authenticated = False
        self.error = last_error
        self.is_initialized = True
        self.is_loading = False
        self._persist()
        self._notify()

    async def login(self, email: str, password: str) -> bool:
        self.error = None
        self.set_loading(True)
        try:
            result = await self.provider.sign_in(email, password)
        finally:
            self.set_loading(False)

        if not result.ok:
            self.set_error(result.error)
            return False

        # The provider event may already have applied this session.
        if self.session != result.data:
            self.set_session(result.data)
        return True

    async def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> bool:
        self.error = None
        self.set_loading(True)
        try:
            result = await self.provider.sign_up(email, password, metadata)
        finally:
            self.set_loading(False)

        if not result.ok:
            self.set_error(result.error)
            return False

        if self.session != result.data:
            self.set_session(result.data)
        return True

    async def logout(self):
        result = await self.provider.sign_out()
        if not result.ok:
            self.set_error(result.error)
        if self.session is not None or self.user is not None:
            self.set_session(None)

    def to_dict(self):
        return {
            'user': self.user.to_dict() if self.user else None,
            'is_authenticated': self.is_authenticated,
            'is_loading': self.is_loading,
            'is_hydrated': self.is_hydrated,
            'is_initialized': self.is_initialized,
            'error': self.error,
        }
