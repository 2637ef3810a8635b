from django.contrib.sessions.backends.db import SessionStore
from django.core.cache import cache
from django.test import RequestFactory, SimpleTestCase
from rest_framework.authtoken.models import Token

from stores.persistence import (
    CacheKeyValueStore,
    InMemoryKeyValueStore,
    SessionKeyValueStore,
    client_storage,
)


class KeyValueStoreTests(SimpleTestCase):
    def tearDown(self):
        cache.clear()

    def exercise(self, storage):
        self.assertIsNone(storage.get('selectedStore'))
        storage.set('selectedStore', 3)
        self.assertEqual(storage.get('selectedStore'), '3')
        storage.remove('selectedStore')
        storage.remove('selectedStore')
        self.assertIsNone(storage.get('selectedStore'))

    def test_in_memory(self):
        self.exercise(InMemoryKeyValueStore())

    def test_session(self):
        session = {}
        self.exercise(SessionKeyValueStore(session))

    def test_cache(self):
        self.exercise(CacheKeyValueStore('user-1'))

    def test_cache_is_namespaced(self):
        CacheKeyValueStore('user-1').set('selectedStore', 1)
        CacheKeyValueStore('user-2').set('selectedStore', 2)
        self.assertEqual(CacheKeyValueStore('user-1').get('selectedStore'), '1')


class ClientStorageTests(SimpleTestCase):
    def setUp(self):
        self.request = RequestFactory().get('/')
        self.request.session = SessionStore()

    def test_session_for_cookie_clients(self):
        self.request.auth = None
        self.assertIsInstance(client_storage(self.request), SessionKeyValueStore)

    def test_cache_for_token_clients(self):
        user = type('User', (), {'pk': 'abc', 'is_authenticated': True})()
        self.request.user = user
        self.request.auth = Token(key='t')

        storage = client_storage(self.request)
        self.assertIsInstance(storage, CacheKeyValueStore)
        self.assertEqual(storage.namespace, 'abc')
