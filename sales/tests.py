import csv
import io
from decimal import Decimal

from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import AuditLog
from tests.utils import auth_header, create_store, create_user
from .models import Customer, Sale


class CustomerScopeTestMixin:
    def setUp(self):
        self.store1 = create_store('Main Store', floors=3)
        self.store2 = create_store('Branch Store', floors=2)

        self.admin = create_user('admin@test.com', role='platform_admin')
        self.manager = create_user('manager@test.com', role='manager', store=self.store1)
        self.seller = create_user('seller@test.com', role='inhouse_sales', store=self.store1)
        self.caller = create_user('caller@test.com', role='tele_calling', store=self.store1)
        self.associate = create_user('associate@test.com', role='sales_associate', store=self.store1)

        self.own = Customer.objects.create(store=self.store1, name='Asha', created_by=self.seller, status='active')
        self.assigned = Customer.objects.create(store=self.store2, name='Bina', assigned_to=self.seller)
        self.store1_other = Customer.objects.create(
            store=self.store1, name='Chitra', created_by=self.caller, status='inactive'
        )
        self.store2_other = Customer.objects.create(store=self.store2, name='Deepa')

    def names(self, response):
        return sorted(customer['name'] for customer in response.data)


class CustomerListTests(CustomerScopeTestMixin, APITestCase):
    url = '/sales/api/customers/'

    def test_admin_sees_all_customers(self):
        response = self.client.get(self.url, **auth_header(self.admin))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.names(response), ['Asha', 'Bina', 'Chitra', 'Deepa'])

    def test_manager_sees_store_customers(self):
        response = self.client.get(self.url, **auth_header(self.manager))
        self.assertEqual(self.names(response), ['Asha', 'Chitra'])

    def test_seller_sees_owned_customers_across_stores(self):
        response = self.client.get(self.url, **auth_header(self.seller))
        self.assertEqual(self.names(response), ['Asha', 'Bina'])

    def test_role_without_scope_sees_nothing(self):
        response = self.client.get(self.url, **auth_header(self.associate))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, [])

    def test_deleted_customers_are_hidden(self):
        self.own.soft_delete()
        response = self.client.get(self.url, **auth_header(self.manager))
        self.assertEqual(self.names(response), ['Chitra'])

    def test_filters(self):
        headers = auth_header(self.admin)

        by_store = self.client.get(f'{self.url}?store_id={self.store2.pk}', **headers)
        self.assertEqual(self.names(by_store), ['Bina', 'Deepa'])

        by_status = self.client.get(f'{self.url}?status=active&status=inactive', **headers)
        self.assertEqual(self.names(by_status), ['Asha', 'Chitra'])

        by_search = self.client.get(f'{self.url}?search=chi', **headers)
        self.assertEqual(self.names(by_search), ['Chitra'])

    def test_out_of_scope_customer_is_not_found(self):
        response = self.client.get(f'{self.url}{self.store2_other.pk}/', **auth_header(self.manager))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_customer_detail_needs_a_data_scope(self):
        response = self.client.get(f'{self.url}{self.own.pk}/', **auth_header(self.associate))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_statistics(self):
        response = self.client.get(f'{self.url}statistics/', **auth_header(self.manager))
        self.assertEqual(response.data, {'total': 2, 'active': 1, 'inactive': 1})


class CustomerWriteTests(CustomerScopeTestMixin, APITestCase):
    url = '/sales/api/customers/'

    def test_manager_create_is_pinned_to_own_store(self):
        response = self.client.post(self.url, {
            'name': 'Esha', 'store_id': self.store2.pk, 'floor': 2,
        }, format='json', **auth_header(self.manager))

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['store_id'], self.store1.pk)
        customer = Customer.objects.get(name='Esha')
        self.assertEqual(customer.created_by, self.manager)
        self.assertTrue(AuditLog.objects.filter(
            table_name='customers', action='create', record_id=str(customer.pk)
        ).exists())

    def test_admin_picks_any_store(self):
        response = self.client.post(self.url, {
            'name': 'Farah', 'store_id': self.store2.pk,
        }, format='json', **auth_header(self.admin))

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['store_id'], self.store2.pk)

    def test_admin_must_choose_a_store(self):
        response = self.client.post(self.url, {'name': 'Gita'}, format='json', **auth_header(self.admin))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('store_id', response.data)

    def test_floor_must_exist_in_store(self):
        response = self.client.post(self.url, {
            'name': 'Hema', 'floor': 5,
        }, format='json', **auth_header(self.manager))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('floor', response.data)

    def test_unassigned_user_cannot_create_in_a_store(self):
        roaming = create_user('roaming@test.com', role='inhouse_sales')
        response = self.client.post(self.url, {
            'name': 'Ira', 'store_id': self.store1.pk,
        }, format='json', **auth_header(roaming))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(str(response.data['detail']), 'You are not assigned to any store')

    def test_role_without_scope_cannot_create(self):
        response = self.client.post(self.url, {'name': 'Jaya'}, format='json', **auth_header(self.associate))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_seller_updates_own_customer(self):
        response = self.client.patch(
            f'{self.url}{self.own.pk}/', {'phone': '555-0100'}, format='json', **auth_header(self.seller)
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(table_name='customers', action='update')
        self.assertIsNone(log.old_values['phone'])
        self.assertEqual(log.new_values['phone'], '555-0100')

    def test_seller_cannot_reach_colleagues_customer(self):
        response = self.client.patch(
            f'{self.url}{self.store1_other.pk}/', {'phone': '1'}, format='json', **auth_header(self.seller)
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_assigned_customer_in_other_store_is_read_only(self):
        response = self.client.patch(
            f'{self.url}{self.assigned.pk}/', {'phone': '1'}, format='json', **auth_header(self.seller)
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(str(response.data['detail']), 'You can only perform this action on your assigned store')

    def test_manager_cannot_move_customer_to_other_store(self):
        response = self.client.patch(
            f'{self.url}{self.own.pk}/', {'store_id': self.store2.pk}, format='json', **auth_header(self.manager)
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.own.refresh_from_db()
        self.assertEqual(self.own.store, self.store1)

    def test_delete_moves_customer_to_trash(self):
        response = self.client.delete(f'{self.url}{self.own.pk}/', **auth_header(self.seller))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.own.refresh_from_db()
        self.assertTrue(self.own.is_deleted)
        self.assertIsNotNone(self.own.deleted_at)
        self.assertTrue(AuditLog.objects.filter(action='delete', record_id=str(self.own.pk)).exists())

    def test_trash_and_restore(self):
        self.own.soft_delete()
        headers = auth_header(self.manager)

        trash = self.client.get(f'{self.url}trash/', **headers)
        self.assertEqual(self.names(trash), ['Asha'])

        response = self.client.post(f'{self.url}{self.own.pk}/restore/', **headers)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.own.refresh_from_db()
        self.assertFalse(self.own.is_deleted)
        self.assertTrue(AuditLog.objects.filter(action='restore', record_id=str(self.own.pk)).exists())

    def test_sellers_cannot_restore(self):
        self.own.soft_delete()
        response = self.client.post(f'{self.url}{self.own.pk}/restore/', **auth_header(self.seller))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class CustomerExportTests(CustomerScopeTestMixin, APITestCase):
    def test_manager_exports_store_customers(self):
        response = self.client.get('/sales/api/customers/export/', **auth_header(self.manager))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'text/csv; charset=utf-8')
        rows = list(csv.reader(io.StringIO(response.content.decode('utf-8'))))
        self.assertEqual(rows[0][0], 'Name')
        self.assertEqual(sorted(row[0] for row in rows[1:]), ['Asha', 'Chitra'])

        log = AuditLog.objects.get(action='export')
        self.assertEqual(log.additional_context['record_count'], 2)
        self.assertEqual(log.additional_context['export_format'], 'csv')
        self.assertEqual(log.user, self.manager)

    def test_sellers_cannot_export(self):
        response = self.client.get('/sales/api/customers/export/', **auth_header(self.seller))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SaleApiTests(APITestCase):
    url = '/sales/api/sales/'

    def setUp(self):
        self.store1 = create_store('Main Store')
        self.store2 = create_store('Branch Store')
        self.manager = create_user('manager@test.com', role='floor_manager', store=self.store1)
        self.seller = create_user('seller@test.com', role='inhouse_sales', store=self.store1)

        customer = Customer.objects.create(store=self.store2, name='Kavya', assigned_to=self.seller)
        self.represented = Sale.objects.create(
            store=self.store1, floor=1, amount=Decimal('900.00'), sales_representative=self.seller
        )
        self.for_assigned_customer = Sale.objects.create(
            store=self.store2, floor=1, amount=Decimal('300.00'), customer=customer
        )
        self.unrelated = Sale.objects.create(store=self.store1, floor=2, amount=Decimal('120.00'))

    def amounts(self, response):
        return sorted(sale['amount'] for sale in response.data)

    def test_manager_sees_store_sales(self):
        response = self.client.get(self.url, **auth_header(self.manager))
        self.assertEqual(self.amounts(response), ['120.00', '900.00'])

    def test_seller_sees_attributed_sales(self):
        response = self.client.get(self.url, **auth_header(self.seller))
        self.assertEqual(self.amounts(response), ['300.00', '900.00'])

    def test_sales_are_read_only(self):
        response = self.client.post(self.url, {'amount': '10.00'}, format='json', **auth_header(self.manager))
        self.assertEqual(response.status_code, status.HTTP_405_METHOD_NOT_ALLOWED)

    def test_filters(self):
        response = self.client.get(f'{self.url}?amount_min=500', **auth_header(self.manager))
        self.assertEqual(self.amounts(response), ['900.00'])

    def test_sale_detail_within_scope(self):
        response = self.client.get(f'{self.url}{self.unrelated.pk}/', **auth_header(self.manager))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['amount'], '120.00')

    def test_sale_detail_needs_a_data_scope(self):
        associate = create_user('associate@test.com', role='sales_associate', store=self.store1)
        response = self.client.get(f'{self.url}{self.unrelated.pk}/', **auth_header(associate))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
