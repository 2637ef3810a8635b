from django.test import SimpleTestCase

from stores.isolation import (
    ASSIGNED_STORE_ONLY,
    NOT_ASSIGNED_TO_STORE,
    StoreAccessResult,
    can_access_store_data,
    create_store_aware_form_data,
    filter_data_by_store,
    get_store_context,
    get_store_display_info,
    get_store_query_params,
    get_store_selection_options,
    get_store_specific_endpoint,
    get_store_statistics,
    is_data_from_current_store,
    resolve_store_isolation,
    validate_store_access,
)
from tests.utils import STORES, make_principal


class ResolveStoreIsolationTests(SimpleTestCase):
    def test_anonymous(self):
        isolation = resolve_store_isolation(None)
        self.assertIsNone(isolation.current_store_id)
        self.assertEqual(isolation.user_role, 'none')
        self.assertFalse(isolation.can_access_all_stores)
        self.assertFalse(isolation.can_access_current_store)
        self.assertEqual(isolation.store_filter, {})

    def test_admin_has_no_store_filter(self):
        isolation = resolve_store_isolation(make_principal('platform_admin', store_id=4))
        self.assertTrue(isolation.can_access_all_stores)
        self.assertTrue(isolation.can_access_current_store)
        self.assertEqual(isolation.store_filter, {})
        self.assertEqual(isolation.current_store_id, 4)

    def test_non_admin_is_filtered_to_store(self):
        isolation = resolve_store_isolation(make_principal('inhouse_sales', store_id=2))
        self.assertFalse(isolation.can_access_all_stores)
        self.assertTrue(isolation.can_access_current_store)
        self.assertEqual(isolation.store_filter, {'store_id': 2})

    def test_missing_role_and_store(self):
        isolation = resolve_store_isolation(make_principal(None, store_id=None))
        self.assertEqual(isolation.user_role, 'unknown')
        self.assertFalse(isolation.can_access_current_store)


class ValidateStoreAccessTests(SimpleTestCase):
    def test_admin_is_always_allowed(self):
        result = validate_store_access('delete', 9, 1, 'business_admin')
        self.assertEqual(result, StoreAccessResult(allowed=True))

    def test_same_store(self):
        self.assertTrue(validate_store_access('update', '3', 3, 'manager').allowed)

    def test_other_store_is_rejected(self):
        result = validate_store_access('create', 2, 1, 'manager')
        self.assertFalse(result.allowed)
        self.assertEqual(result.reason, ASSIGNED_STORE_ONLY)

    def test_unassigned_principal_is_rejected(self):
        result = validate_store_access('create', 2, None, 'inhouse_sales')
        self.assertEqual(result.reason, NOT_ASSIGNED_TO_STORE)
        self.assertEqual(result.to_dict(), {'allowed': False, 'reason': NOT_ASSIGNED_TO_STORE})

    def test_record_without_store_is_allowed(self):
        self.assertTrue(validate_store_access('read', None, 1, 'manager').allowed)
        self.assertTrue(validate_store_access('read', None, None, 'manager').allowed)


class StoreFilteringTests(SimpleTestCase):
    def setUp(self):
        self.rows = [
            {'id': 'a', 'store_id': 1, 'status': 'active'},
            {'id': 'b', 'store_id': 2, 'status': 'inactive'},
            {'id': 'c', 'store': 1, 'status': 'inactive'},
            {'id': 'd', 'store_id': 1, 'status': 'lead'},
        ]

    def test_filter_by_store(self):
        result = filter_data_by_store(self.rows, 1)
        self.assertEqual([row['id'] for row in result], ['a', 'd'])

    def test_filter_falls_back_to_store_key(self):
        result = filter_data_by_store([{'store': 1}, {'store': 2}], '1', store_field=None)
        self.assertEqual(result, [{'store': 1}])

    def test_filter_passthrough(self):
        self.assertEqual(filter_data_by_store(self.rows, None), self.rows)
        self.assertEqual(filter_data_by_store(self.rows, 1, allow_all_stores=True), self.rows)

    def test_query_params_and_endpoint(self):
        self.assertEqual(get_store_query_params(3), {'store_id': '3'})
        self.assertEqual(get_store_query_params(3, allow_all_stores=True), {})
        self.assertEqual(get_store_query_params(None), {})
        self.assertEqual(get_store_specific_endpoint('/api/customers/', 3), '/api/customers/?store_id=3')
        self.assertEqual(get_store_specific_endpoint('/api/customers/', None), '/api/customers/')

    def test_can_access_store_data(self):
        self.assertTrue(can_access_store_data(5, 1, 'platform_admin'))
        self.assertTrue(can_access_store_data('1', 1, 'manager'))
        self.assertFalse(can_access_store_data(2, 1, 'manager'))
        self.assertFalse(can_access_store_data(None, 1, 'manager'))

    def test_is_data_from_current_store(self):
        self.assertTrue(is_data_from_current_store({'store_id': 1}, 1, 'tele_calling'))
        self.assertTrue(is_data_from_current_store({'store': 1}, 1, 'tele_calling'))
        self.assertFalse(is_data_from_current_store({}, 1, 'tele_calling'))
        self.assertFalse(is_data_from_current_store({'store_id': 1}, None, 'tele_calling'))
        self.assertTrue(is_data_from_current_store({}, None, 'business_admin'))

    def test_statistics(self):
        self.assertEqual(get_store_statistics(self.rows, None, 'platform_admin'),
                         {'total': 4, 'active': 1, 'inactive': 2})
        self.assertEqual(get_store_statistics(self.rows, 1, 'manager'),
                         {'total': 3, 'active': 1, 'inactive': 1})
        self.assertEqual(get_store_statistics(self.rows, None, 'manager'),
                         {'total': 0, 'active': 0, 'inactive': 0})


class StoreFormAndOptionsTests(SimpleTestCase):
    def test_non_admin_form_is_pinned_to_own_store(self):
        data = create_store_aware_form_data({'name': 'Ann', 'store_id': 2}, 1, 'manager')
        self.assertEqual(data, {'name': 'Ann', 'store_id': 1})

    def test_admin_form_is_untouched(self):
        form = {'name': 'Ann', 'store_id': 2}
        data = create_store_aware_form_data(form, 1, 'platform_admin')
        self.assertEqual(data, form)
        self.assertIsNot(data, form)

    def test_form_without_principal_store(self):
        self.assertEqual(create_store_aware_form_data({'name': 'Ann'}, None, 'manager'), {'name': 'Ann'})

    def test_admin_gets_every_store(self):
        options = get_store_selection_options(STORES, 1, 'business_admin')
        self.assertEqual([option['value'] for option in options], [1, 2])
        self.assertFalse(options[0]['disabled'])

    def test_non_admin_gets_own_store_only(self):
        options = get_store_selection_options(STORES, 2, 'manager')
        self.assertEqual(options, [{'value': 2, 'label': 'Branch Store', 'disabled': False}])
        self.assertEqual(get_store_selection_options(STORES, 9, 'manager'), [])
        self.assertEqual(get_store_selection_options(STORES, None, 'manager'), [])

    def test_display_info(self):
        self.assertEqual(get_store_display_info(None, STORES), {'name': 'All Stores', 'is_current_store': False})
        self.assertEqual(get_store_display_info(2, STORES)['name'], 'Branch Store')
        self.assertEqual(get_store_display_info(7, STORES)['name'], 'Store 7')

    def test_context(self):
        context = get_store_context(3, 'manager')
        self.assertEqual(context['store_id'], 3)
        self.assertEqual(context['user_role'], 'manager')
        self.assertIn('timestamp', context)
