"""
Cross-store isolation checks

Run with: python manage.py test tests.test_store_isolation_security
"""

from rest_framework import status
from rest_framework.test import APITestCase

from sales.models import Customer, Sale
from tests.utils import auth_header, create_store, create_user


class CrossStoreIsolationTests(APITestCase):
    """A principal assigned to one store must never read or write another store's records."""

    def setUp(self):
        self.store_a = create_store('Store A', floors=2)
        self.store_b = create_store('Store B', floors=2)

        self.manager_a = create_user('manager.a@test.com', role='manager', store=self.store_a)
        self.manager_b = create_user('manager.b@test.com', role='floor_manager', store=self.store_b)
        self.admin = create_user('admin@test.com', role='business_admin', store=self.store_a)

        self.customer_a = Customer.objects.create(store=self.store_a, name='Customer A')
        self.customer_b = Customer.objects.create(store=self.store_b, name='Customer B')
        Sale.objects.create(store=self.store_b, floor=1, amount='99.00')

    def test_manager_cannot_read_other_store_customer(self):
        response = self.client.get(f'/sales/api/customers/{self.customer_b.pk}/', **auth_header(self.manager_a))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_manager_cannot_update_other_store_customer(self):
        response = self.client.patch(
            f'/sales/api/customers/{self.customer_b.pk}/', {'name': 'Hijacked'},
            format='json', **auth_header(self.manager_a),
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.customer_b.refresh_from_db()
        self.assertEqual(self.customer_b.name, 'Customer B')

    def test_manager_cannot_delete_other_store_customer(self):
        response = self.client.delete(f'/sales/api/customers/{self.customer_b.pk}/', **auth_header(self.manager_a))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.customer_b.refresh_from_db()
        self.assertFalse(self.customer_b.is_deleted)

    def test_manager_create_never_lands_in_other_store(self):
        response = self.client.post('/sales/api/customers/', {
            'name': 'Smuggled', 'store_id': self.store_b.pk,
        }, format='json', **auth_header(self.manager_a))

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Customer.objects.get(name='Smuggled').store, self.store_a)
        self.assertFalse(Customer.objects.filter(store=self.store_b, name='Smuggled').exists())

    def test_store_filter_cannot_widen_scope(self):
        response = self.client.get(
            f'/sales/api/customers/?store_id={self.store_b.pk}', **auth_header(self.manager_a)
        )
        self.assertEqual(response.data, [])

        sales = self.client.get(f'/sales/api/sales/?store_id={self.store_b.pk}', **auth_header(self.manager_a))
        self.assertEqual(sales.data, [])

    def test_each_manager_sees_only_their_store(self):
        for user, expected in [(self.manager_a, ['Customer A']), (self.manager_b, ['Customer B'])]:
            with self.subTest(user=user.email):
                response = self.client.get('/sales/api/customers/', **auth_header(user))
                self.assertEqual([customer['name'] for customer in response.data], expected)

    def test_admin_crosses_stores(self):
        response = self.client.patch(
            f'/sales/api/customers/{self.customer_b.pk}/', {'name': 'Renamed B'},
            format='json', **auth_header(self.admin),
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        created = self.client.post('/sales/api/customers/', {
            'name': 'Admin Pick', 'store_id': self.store_b.pk,
        }, format='json', **auth_header(self.admin))
        self.assertEqual(created.data['store_id'], self.store_b.pk)

    def test_non_admin_cannot_switch_store(self):
        response = self.client.post(
            '/stores/api/stores/current/', {'store_id': self.store_b.pk},
            format='json', **auth_header(self.manager_a),
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
