import asyncio

from django.test import SimpleTestCase, override_settings

from stores.persistence import SELECTED_STORE_KEY, InMemoryKeyValueStore
from stores.repositories import StoreRecord
from stores.store_context import StoreContext, can_select_store, get_fallback_stores
from tests.utils import STORES, FakeStoreRepository, make_principal


class StoreContextTests(SimpleTestCase):
    def setUp(self):
        self.storage = InMemoryKeyValueStore()

    def make_context(self, repository, **kwargs):
        return StoreContext(repository=repository, storage=self.storage, default_store_id=1, **kwargs)

    def test_explicit_zero_settings_are_kept(self):
        context = StoreContext(repository=FakeStoreRepository(), storage=self.storage, default_store_id=0, fetch_timeout=0)

        self.assertEqual(context.default_store_id, 0)
        self.assertEqual(context.fetch_timeout, 0)

    async def test_mount_fetches_stores(self):
        context = self.make_context(FakeStoreRepository())
        self.assertTrue(context.is_loading)

        await context.mount()

        self.assertEqual(list(context.stores), STORES)
        self.assertEqual(context.current_store_id, 1)
        self.assertEqual(context.current_store_data.name, 'Main Store')
        self.assertFalse(context.is_loading)
        self.assertFalse(context.using_fallback)

    async def test_fetch_failure_uses_fallback_list(self):
        context = self.make_context(FakeStoreRepository((0, ConnectionError('boom'))))

        with self.assertLogs('stores.store_context', level='WARNING') as logs:
            await context.refresh_stores()

        self.assertTrue(context.using_fallback)
        self.assertEqual([store.name for store in context.stores], ['Main Store', 'Branch Store', 'Mall Store'])
        self.assertEqual(context.error, 'boom')
        self.assertFalse(context.is_loading)
        self.assertIn('fallback stores', logs.output[0])

    async def test_fetch_timeout_uses_fallback_list(self):
        context = self.make_context(FakeStoreRepository((1, STORES)), fetch_timeout=0.01)
        await context.refresh_stores()

        self.assertTrue(context.using_fallback)
        self.assertEqual(context.error, 'Timed out fetching stores')

    async def test_successful_refresh_clears_fallback(self):
        context = self.make_context(FakeStoreRepository((0, ConnectionError('boom')), (0, STORES[:1])))
        await context.refresh_stores()
        await context.refresh_stores()

        self.assertFalse(context.using_fallback)
        self.assertIsNone(context.error)
        self.assertEqual(len(context.stores), 1)

    async def test_latest_refresh_wins(self):
        slow = [StoreRecord(id=9, name='Stale Store', location='', floors=1)]
        fast = [StoreRecord(id=1, name='Fresh Store', location='', floors=1)]
        context = self.make_context(FakeStoreRepository((0.05, slow), (0, fast)))

        await asyncio.gather(context.refresh_stores(), context.refresh_stores())

        self.assertEqual([store.name for store in context.stores], ['Fresh Store'])
        self.assertFalse(context.is_loading)

    async def test_stale_failure_does_not_override_newer_result(self):
        context = self.make_context(FakeStoreRepository((0.05, ConnectionError('late')), (0, STORES)))
        await asyncio.gather(context.refresh_stores(), context.refresh_stores())

        self.assertFalse(context.using_fallback)
        self.assertEqual(list(context.stores), STORES)

    def test_selection_persists(self):
        context = self.make_context(FakeStoreRepository())
        context.set_current_store(2)

        self.assertEqual(context.current_store_id, 2)
        self.assertEqual(self.storage.get(SELECTED_STORE_KEY), '2')

        restored = self.make_context(FakeStoreRepository())
        restored.restore_preference()
        self.assertEqual(restored.current_store_id, 2)

    def test_invalid_preference_is_ignored(self):
        self.storage.set(SELECTED_STORE_KEY, 'not-a-number')
        context = self.make_context(FakeStoreRepository())

        with self.assertLogs('stores.store_context', level='WARNING'):
            context.restore_preference()
        self.assertEqual(context.current_store_id, 1)

    def test_current_store_data_missing_from_list(self):
        context = self.make_context(FakeStoreRepository())
        context.stores = tuple(STORES)
        context.current_store_id = 42
        self.assertIsNone(context.current_store_data)
        self.assertIsNone(context.to_dict()['current_store_data'])

    def test_only_admins_select(self):
        context = self.make_context(FakeStoreRepository())

        self.assertFalse(context.select_store(make_principal('manager'), 2))
        self.assertEqual(context.current_store_id, 1)
        self.assertIsNone(self.storage.get(SELECTED_STORE_KEY))

        self.assertTrue(context.select_store(make_principal('platform_admin'), 2))
        self.assertEqual(context.current_store_id, 2)

    def test_can_select_store(self):
        self.assertTrue(can_select_store(make_principal('business_admin')))
        self.assertFalse(can_select_store(make_principal('floor_manager')))
        self.assertFalse(can_select_store(None))


class FallbackStoresTests(SimpleTestCase):
    @override_settings(FALLBACK_STORES=[{'id': 5, 'name': 'Pop-up', 'location': 'Fair', 'floors': 1}])
    def test_fallback_comes_from_settings(self):
        self.assertEqual(get_fallback_stores(), [StoreRecord(id=5, name='Pop-up', location='Fair', floors=1)])
