from django.test import SimpleTestCase

from accounts.identity import AuthEvent, AuthSession
from app.session import CrmSession
from stores.floor_context import FloorContext, FloorState
from stores.persistence import SELECTED_STORE_KEY, InMemoryKeyValueStore
from stores.store_context import StoreContext
from tests.utils import (
    STORES,
    FakeFloorRepository,
    FakeIdentityProvider,
    FakeRoleLookup,
    FakeStoreRepository,
    make_floor,
    make_principal,
)


class CrmSessionTests(SimpleTestCase):
    def setUp(self):
        self.storage = InMemoryKeyValueStore()
        self.floor = make_floor(1, 'Ground Floor')
        self.floors = FakeFloorRepository(
            floors=[self.floor, make_floor(2, 'First Floor')],
            manager_floors={'lead@example.com': self.floor},
        )
        self.manager = make_principal('floor_manager', id='lead', email='lead@example.com')
        self.admin = make_principal('platform_admin', id='admin', email='admin@example.com')

    def make_session(self, provider):
        return CrmSession(
            provider,
            storage=self.storage,
            store_context=StoreContext(repository=FakeStoreRepository(), storage=self.storage, default_store_id=1),
            floor_context=FloorContext(repository=self.floors, role_lookup=FakeRoleLookup()),
        )

    async def test_start_loads_everything_for_the_principal(self):
        provider = FakeIdentityProvider(session=AuthSession(access_token='t', user=self.manager))
        session = self.make_session(provider)
        await session.start()

        self.assertEqual(session.auth.principal, self.manager)
        self.assertEqual(list(session.stores.stores), STORES)
        self.assertIs(session.floors.state, FloorState.MANAGER_VIEW)
        self.assertEqual(session.floors.current_floor, self.floor)
        await session.stop()

    async def test_anonymous_start(self):
        session = self.make_session(FakeIdentityProvider())
        await session.start()

        self.assertIsNone(session.auth.principal)
        self.assertIs(session.floors.state, FloorState.UNINITIALIZED)
        data = session.to_dict()
        self.assertEqual(data['visibility']['user_scope']['type'], 'none')
        self.assertFalse(data['store_isolation']['can_access_current_store'])
        await session.stop()

    async def test_sign_in_reloads_floors(self):
        provider = FakeIdentityProvider()
        provider.add_account(self.admin, 'secret')
        session = self.make_session(provider)
        await session.start()

        await session.auth.login('admin@example.com', 'secret')
        await session.settle()

        self.assertIs(session.floors.state, FloorState.ADMIN_VIEW)
        self.assertEqual(len(session.floors.all_floors), 2)
        await session.stop()

    async def test_sign_out_resets_floors(self):
        provider = FakeIdentityProvider(session=AuthSession(access_token='t', user=self.admin))
        session = self.make_session(provider)
        await session.start()

        await session.auth.logout()
        await session.settle()

        self.assertIs(session.floors.state, FloorState.UNINITIALIZED)
        self.assertEqual(session.floors.all_floors, [])
        await session.stop()

    async def test_switching_users_keeps_the_latest(self):
        provider = FakeIdentityProvider(session=AuthSession(access_token='t', user=self.admin))
        session = self.make_session(provider)
        await session.start()

        provider.emit(AuthEvent.SIGNED_OUT, None)
        provider.emit(AuthEvent.SIGNED_IN, AuthSession(access_token='u', user=self.manager))
        await session.settle()

        self.assertIs(session.floors.state, FloorState.MANAGER_VIEW)
        self.assertEqual(session.floors.current_floor, self.floor)
        await session.stop()

    async def test_token_refresh_for_same_user_does_not_reload(self):
        provider = FakeIdentityProvider(session=AuthSession(access_token='t', user=self.admin))
        session = self.make_session(provider)
        await session.start()
        calls = len(self.floors.calls)

        provider.emit(AuthEvent.TOKEN_REFRESHED, AuthSession(access_token='t2', user=self.admin))
        await session.settle()

        self.assertEqual(len(self.floors.calls), calls)
        await session.stop()

    async def test_role_change_for_same_user_reloads_floors(self):
        seller = make_principal('inhouse_sales', id='lead', email='lead@example.com')
        provider = FakeIdentityProvider(session=AuthSession(access_token='t', user=seller))
        session = self.make_session(provider)
        await session.start()
        self.assertIs(session.floors.state, FloorState.NO_ACCESS)

        provider.emit(AuthEvent.USER_UPDATED, AuthSession(access_token='t', user=self.manager))
        await session.settle()

        self.assertIs(session.floors.state, FloorState.MANAGER_VIEW)
        self.assertEqual(session.floors.current_floor, self.floor)
        self.assertEqual(session.to_dict()['visibility']['user_scope']['type'], 'store')
        await session.stop()

    async def test_stop_detaches_from_provider(self):
        provider = FakeIdentityProvider(session=AuthSession(access_token='t', user=self.admin))
        session = self.make_session(provider)
        await session.start()
        await session.stop()

        self.assertEqual(provider.listener_count, 0)
        provider.emit(AuthEvent.SIGNED_OUT, None)
        self.assertIs(session.floors.state, FloorState.ADMIN_VIEW)

    async def test_store_preference_survives_sessions(self):
        self.storage.set(SELECTED_STORE_KEY, '2')
        session = self.make_session(FakeIdentityProvider(session=AuthSession(access_token='t', user=self.admin)))
        await session.start()

        self.assertEqual(session.stores.current_store_id, 2)
        self.assertEqual(session.to_dict()['store']['current_store_data']['name'], 'Branch Store')
        await session.stop()
