import asyncio
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.authtoken.models import Token

from accounts.identity import AuthEvent, AuthResult, AuthSession, IdentityProvider, Principal
from stores.models import Store
from stores.repositories import Floor, StoreRecord

User = get_user_model()


def create_store(name='Main Store', location='Downtown', floors=3, **extra):
    return Store.objects.create(name=name, location=location, floors=floors, **extra)


def create_user(email, role='', store=None, floor=None, password='testpass123', name='Test User'):
    return User.objects.create_user(
        email=email,
        password=password,
        name=name,
        role=role,
        store=store,
        floor=floor,
    )


def auth_header(user):
    token, _ = Token.objects.get_or_create(user=user)
    return {'HTTP_AUTHORIZATION': f'Token {token.key}'}


def make_principal(role, store_id=1, id='user-1', email=None, metadata=None):
    if metadata is None:
        metadata = {'role': role} if role else {}
    return Principal(
        id=id,
        email=email or f'{id}@example.com',
        role=role,
        store_id=store_id,
        metadata=metadata,
    )


def make_floor(number=1, name='Ground Floor', manager_id='m-1', manager_name='Floor Manager'):
    return Floor(
        id=str(number),
        name=name,
        manager_id=manager_id,
        manager_name=manager_name,
        status='active',
        visitor_count=0,
        sales_today=Decimal('0.00'),
        last_updated=timezone.now().isoformat(),
    )


STORES = [
    StoreRecord(id=1, name='Main Store', location='Downtown', floors=3),
    StoreRecord(id=2, name='Branch Store', location='Uptown', floors=2),
]


class FakeIdentityProvider(IdentityProvider):
    """In-memory identity provider; ``failures`` makes the first N get_session calls raise."""

    def __init__(self, session=None, failures=0, delay=0, error='Network unavailable', sign_out_error=None):
        super().__init__()
        self.session = session
        self.failures = failures
        self.delay = delay
        self.error = error
        self.sign_out_error = sign_out_error
        self.accounts = {}
        self.get_session_calls = 0

    def add_account(self, principal, password='secret'):
        self.accounts[principal.email] = (password, principal)

    async def get_session(self):
        self.get_session_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.get_session_calls <= self.failures:
            raise ConnectionError(self.error)
        return AuthResult(data=self.session)

    async def sign_in(self, email, password):
        account = self.accounts.get(email)
        if account is None or account[0] != password:
            return AuthResult(error='Invalid email or password.')
        self.session = AuthSession(access_token=f'token-{email}', user=account[1])
        self.emit(AuthEvent.SIGNED_IN, self.session)
        return AuthResult(data=self.session)

    async def sign_up(self, email, password, metadata=None):
        if email in self.accounts:
            return AuthResult(error='A user with this email already exists.')
        metadata = dict(metadata or {})
        principal = Principal(id=f'new-{email}', email=email, role=metadata.get('role'), metadata=metadata)
        self.add_account(principal, password)
        return await self.sign_in(email, password)

    async def sign_out(self):
        if self.sign_out_error:
            return AuthResult(error=self.sign_out_error)
        self.session = None
        self.emit(AuthEvent.SIGNED_OUT, None)
        return AuthResult()


class FakeStoreRepository:
    """Each call pops the next ``(delay, result)``; a result that is an exception is raised."""

    def __init__(self, *responses, stores=None):
        self.responses = list(responses)
        self.stores = list(stores if stores is not None else STORES)
        self.calls = 0

    async def fetch_stores(self):
        self.calls += 1
        delay, result = self.responses.pop(0) if self.responses else (0, self.stores)
        if delay:
            await asyncio.sleep(delay)
        if isinstance(result, BaseException):
            raise result
        return list(result)


class FakeFloorRepository:
    def __init__(self, floors=None, manager_floors=None, delay=0, error=None):
        self.floors = list(floors or [])
        self.manager_floors = dict(manager_floors or {})
        self.delay = delay
        self.error = error
        self.calls = []

    async def _respond(self, value):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return value

    async def fetch_floors(self, store_id=None):
        self.calls.append(('all', store_id))
        return await self._respond(list(self.floors))

    async def fetch_floor_for_manager(self, email):
        self.calls.append(('manager', email))
        return await self._respond(self.manager_floors.get(email))


class FakeRoleLookup:
    def __init__(self, roles=None, error=None, delays=None):
        self.roles = dict(roles or {})
        self.error = error
        self.delays = dict(delays or {})
        self.calls = []

    async def lookup_role(self, email):
        self.calls.append(email)
        if self.delays.get(email):
            await asyncio.sleep(self.delays[email])
        if self.error is not None:
            raise self.error
        return self.roles.get(email)
