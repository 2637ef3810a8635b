"""
Identity provider adapter.

The CRM treats authentication as an external collaborator: something that
can hand back the current session, sign a user in or out, and notify
subscribers when the session changes. ``IdentityProvider`` is that
contract; ``DjangoIdentityProvider`` fulfils it with Django auth and DRF
tokens as the session credential.
"""

from __future__ import annotations

import logging
from datetime import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from asgiref.sync import sync_to_async
from django.contrib.auth import authenticate, get_user_model
from django.db import IntegrityError, transaction

from rest_framework.authtoken.models import Token

from .roles import normalize_role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """The signed-in identity as the rest of the CRM sees it."""

    id: str
    email: str
    role: Optional[str] = None
    store_id: Optional[int] = None
    floor: Optional[int] = None
    name: str = ''
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def identity_key(self):
        return (self.id, self.email)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'role': self.role,
            'store_id': self.store_id,
            'floor': self.floor,
            'metadata': dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Principal':
        return cls(
            id=str(data['id']),
            email=data['email'],
            role=data.get('role'),
            store_id=data.get('store_id'),
            floor=data.get('floor'),
            name=data.get('name', ''),
            metadata=dict(data.get('metadata') or {}),
        )


def principal_from_user(user) -> Optional[Principal]:
    """Build a Principal from a Django user, or None for anonymous users."""
    if user is None or not getattr(user, 'is_authenticated', False):
        return None

    metadata = dict(getattr(user, 'metadata', None) or {})
    role = normalize_role(getattr(user, 'role', None)) or normalize_role(metadata.get('role'))
    if role:
        metadata.setdefault('role', role)

    return Principal(
        id=str(user.pk),
        email=user.email,
        role=role,
        store_id=getattr(user, 'store_id', None),
        floor=getattr(user, 'floor', None),
        name=getattr(user, 'name', ''),
        metadata=metadata,
    )


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    user: Principal
    issued_at: Any = None

    def to_dict(self):
        return {
            'access_token': self.access_token,
            'user': self.user.to_dict(),
            'issued_at': self.issued_at.isoformat() if self.issued_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuthSession':
        issued_at = data.get('issued_at')
        if isinstance(issued_at, str):
            issued_at = datetime.fromisoformat(issued_at)
        return cls(
            access_token=data['access_token'],
            user=Principal.from_dict(data['user']),
            issued_at=issued_at,
        )


@dataclass(frozen=True)
class AuthResult:
    """Outcome of an identity call: either ``data`` or an ``error`` message."""

    data: Optional[AuthSession] = None
    error: Optional[str] = None

    @property
    def ok(self):
        return self.error is None


class AuthEvent(str, Enum):
    INITIAL_SESSION = 'INITIAL_SESSION'
    SIGNED_IN = 'SIGNED_IN'
    SIGNED_OUT = 'SIGNED_OUT'
    TOKEN_REFRESHED = 'TOKEN_REFRESHED'
    USER_UPDATED = 'USER_UPDATED'


AuthListener = Callable[[AuthEvent, Optional[AuthSession]], None]


class Subscription:
    """Handle returned by ``on_auth_state_change``; call ``unsubscribe`` to detach."""

    def __init__(self, provider: 'IdentityProvider', listener: AuthListener):
        self._provider = provider
        self.listener = listener
        self.active = True

    def unsubscribe(self):
        if self.active:
            self._provider._remove_listener(self.listener)
            self.active = False


class IdentityProvider:
    """Contract the auth state store consumes."""

    def __init__(self):
        self._listeners: List[AuthListener] = []

    async def get_session(self) -> AuthResult:
        raise NotImplementedError

    async def sign_in(self, email: str, password: str) -> AuthResult:
        raise NotImplementedError

    async def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> AuthResult:
        raise NotImplementedError

    async def sign_out(self) -> AuthResult:
        raise NotImplementedError

    def on_auth_state_change(self, listener: AuthListener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    @property
    def listener_count(self):
        return len(self._listeners)

    def _remove_listener(self, listener: AuthListener):
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def emit(self, event: AuthEvent, session: Optional[AuthSession]):
        """Deliver ``event`` to listeners in subscription order."""
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                logger.exception('Auth state listener failed for %s', event.value)


class DjangoIdentityProvider(IdentityProvider):
    """
    Identity provider backed by Django's user model.

    A DRF auth token is the session credential. The provider is bound to at
    most one token at a time, mirroring a browser holding one session.
    """

    def __init__(self, token_key: Optional[str] = None):
        super().__init__()
        self.token_key = token_key

    def _session_for_token(self, token: Token) -> AuthSession:
        return AuthSession(
            access_token=token.key,
            user=principal_from_user(token.user),
            issued_at=token.created,
        )

    def _load_session(self) -> Optional[AuthSession]:
        if not self.token_key:
            return None
        token = Token.objects.select_related('user').filter(key=self.token_key).first()
        if token is None or not token.user.is_active:
            return None
        return self._session_for_token(token)

    async def get_session(self) -> AuthResult:
        try:
            session = await sync_to_async(self._load_session)()
        except Exception as exc:
            logger.error(f"Failed to load session: {exc}")
            return AuthResult(error=str(exc))
        return AuthResult(data=session)

    def _sign_in(self, email, password):
        user = authenticate(email=email, password=password)
        if user is None:
            return None
        token, _ = Token.objects.get_or_create(user=user)
        return self._session_for_token(token)

    async def sign_in(self, email: str, password: str) -> AuthResult:
        if not email or not password:
            return AuthResult(error='Must include email and password.')

        session = await sync_to_async(self._sign_in)(email, password)
        if session is None:
            return AuthResult(error='Invalid email or password.')

        self.token_key = session.access_token
        logger.info(f"User {session.user.email} signed in")
        self.emit(AuthEvent.SIGNED_IN, session)
        return AuthResult(data=session)

    def _sign_up(self, email, password, metadata):
        User = get_user_model()
        metadata = dict(metadata or {})
        with transaction.atomic():
            user = User.objects.create_user(
                email=email,
                password=password,
                name=metadata.get('name', ''),
                role=normalize_role(metadata.get('role')) or '',
                store_id=metadata.get('store_id'),
                floor=metadata.get('floor'),
                metadata=metadata,
            )
            token = Token.objects.create(user=user)
        return self._session_for_token(token)

    async def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> AuthResult:
        if not email or not password:
            return AuthResult(error='Must include email and password.')

        try:
            session = await sync_to_async(self._sign_up)(email, password, metadata)
        except IntegrityError:
            return AuthResult(error='A user with this email already exists.')
        except ValueError as exc:
            return AuthResult(error=str(exc))

        self.token_key = session.access_token
        self.emit(AuthEvent.SIGNED_IN, session)
        return AuthResult(data=session)

    def _sign_out(self):
        if self.token_key:
            Token.objects.filter(key=self.token_key).delete()

    async def sign_out(self) -> AuthResult:
        try:
            await sync_to_async(self._sign_out)()
        except Exception as exc:
            logger.error(f"Sign out failed: {exc}")
            return AuthResult(error=str(exc))
        finally:
            self.token_key = None

        self.emit(AuthEvent.SIGNED_OUT, None)
        return AuthResult()

    def _refresh(self):
        token = Token.objects.select_related('user').filter(key=self.token_key).first()
        if token is None:
            return None
        user = token.user
        token.delete()
        return self._session_for_token(Token.objects.create(user=user))

    async def refresh_session(self) -> AuthResult:
        """Rotate the token, emitting TOKEN_REFRESHED on success."""
        if not self.token_key:
            return AuthResult(error='No active session')

        session = await sync_to_async(self._refresh)()
        if session is None:
            return AuthResult(error='Session expired')

        self.token_key = session.access_token
        self.emit(AuthEvent.TOKEN_REFRESHED, session)
        return AuthResult(data=session)
