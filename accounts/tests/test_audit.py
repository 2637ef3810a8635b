"""
Tests for AuditService

Run with: python manage.py test accounts.tests.test_audit
"""

from datetime import timedelta
from unittest.mock import patch

from django.contrib.auth.signals import user_logged_in
from django.test import RequestFactory, TestCase, override_settings
from django.utils import timezone

from accounts.audit import AUTH_TABLE, AuditService, get_client_ip, get_user_agent
from accounts.models import AuditLog
from accounts.tasks import record_audit_entry
from tests.utils import create_user


class RequestHelpersTests(TestCase):
    def setUp(self):
        self.factory = RequestFactory()

    def test_client_ip_prefers_forwarded_header(self):
        request = self.factory.get('/', HTTP_X_FORWARDED_FOR='10.0.0.5, 172.16.0.1', REMOTE_ADDR='127.0.0.1')
        self.assertEqual(get_client_ip(request), '10.0.0.5')

    def test_client_ip_falls_back_to_remote_addr(self):
        request = self.factory.get('/', REMOTE_ADDR='192.168.1.9')
        self.assertEqual(get_client_ip(request), '192.168.1.9')

    def test_missing_request(self):
        self.assertIsNone(get_client_ip(None))
        self.assertIsNone(get_user_agent(None))


class AuditServiceTests(TestCase):
    def setUp(self):
        self.user = create_user('admin@test.com', role='business_admin')

    def test_record_lifecycle_entries(self):
        created = AuditService.log_record_creation('customers', 12, {'name': 'Ann'}, user=self.user)
        updated = AuditService.log_record_update(
            'customers', 12, {'name': 'Ann'}, {'name': 'Anne'}, user=self.user
        )
        deleted = AuditService.log_record_deletion('customers', 12, {'name': 'Anne'}, user=self.user)
        restored = AuditService.log_record_restoration('customers', 12, {'name': 'Anne'})

        self.assertEqual(created.action, AuditLog.ACTION_CREATE)
        self.assertEqual(created.record_id, '12')
        self.assertEqual(created.new_values, {'name': 'Ann'})
        self.assertEqual(created.user_email, 'admin@test.com')
        self.assertEqual(updated.old_values, {'name': 'Ann'})
        self.assertEqual(deleted.action, AuditLog.ACTION_DELETE)
        self.assertIsNone(restored.user)
        self.assertEqual(AuditLog.objects.count(), 4)

    def test_action_without_record_defaults_to_zero(self):
        log = AuditService.log_action('stores', AuditLog.ACTION_EXPORT)
        self.assertEqual(log.record_id, '0')

    def test_login_and_logout(self):
        login = AuditService.log_user_login(self.user, '10.1.1.1', 'Mozilla/5.0')
        logout = AuditService.log_user_logout(self.user, '10.1.1.1')

        self.assertEqual(login.table_name, AUTH_TABLE)
        self.assertEqual(login.action, AuditLog.ACTION_LOGIN)
        self.assertEqual(login.user_agent, 'Mozilla/5.0')
        self.assertEqual(login.additional_context['event_type'], 'authentication')
        self.assertEqual(logout.action, AuditLog.ACTION_LOGOUT)

    def test_export_and_import_context(self):
        export = AuditService.log_data_export(self.user, 'customers', 25, 'csv')
        imported = AuditService.log_data_import(self.user, 'customers', 10, 8, 2)

        self.assertEqual(export.additional_context['record_count'], 25)
        self.assertEqual(export.additional_context['export_format'], 'csv')
        self.assertEqual(imported.additional_context['success_count'], 8)
        self.assertEqual(imported.additional_context['error_count'], 2)

    def test_write_failure_returns_none(self):
        with patch.object(AuditLog.objects, 'create', side_effect=RuntimeError('db down')):
            with self.assertLogs('accounts.audit', level='ERROR') as logs:
                result = AuditService.log_record_creation('customers', 1, {'name': 'x'})

        self.assertIsNone(result)
        self.assertIn('db down', logs.output[0])

    def test_get_audit_logs_filters_and_pages(self):
        for index in range(5):
            AuditService.log_record_creation('customers', index, {'n': index}, user=self.user)
        AuditService.log_record_creation('stores', 1, {'name': 'Main'})

        customers = AuditService.get_audit_logs(table_name='customers')
        self.assertEqual(len(customers), 5)

        page = AuditService.get_audit_logs(table_name='customers', limit=2, offset=1)
        self.assertEqual(len(page), 2)

        by_user = AuditService.get_user_audit_logs(self.user.pk, limit=3)
        self.assertEqual(len(by_user), 3)

        record = AuditService.get_record_audit_logs('stores', 1)
        self.assertEqual([log.table_name for log in record], ['stores'])

    def test_get_audit_logs_date_range(self):
        old = AuditService.log_record_creation('customers', 1, {'n': 1})
        AuditLog.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(days=10))
        AuditService.log_record_creation('customers', 2, {'n': 2})

        recent = AuditService.get_audit_logs(date_from=timezone.now() - timedelta(days=1))
        self.assertEqual([log.record_id for log in recent], ['2'])

    def test_summary(self):
        AuditService.log_record_creation('customers', 1, {'n': 1}, user=self.user)
        AuditService.log_record_update('customers', 1, {'n': 1}, {'n': 2}, user=self.user)
        AuditService.log_record_creation('stores', 1, {'name': 'Main'})

        summary = AuditService.get_audit_summary()

        self.assertEqual(summary['total_actions'], 3)
        self.assertEqual(summary['actions_by_type'], {'create': 2, 'update': 1})
        self.assertEqual(summary['actions_by_user'], {'admin@test.com': 2})
        self.assertEqual(summary['actions_by_table'], {'customers': 2, 'stores': 1})
        self.assertEqual(len(summary['recent_activity']), 3)

    def test_summary_keeps_ten_most_recent(self):
        for index in range(12):
            AuditService.log_record_creation('customers', index, {'n': index})
        self.assertEqual(len(AuditService.get_audit_summary()['recent_activity']), 10)


@override_settings(AUDIT_LOG_ASYNC=True)
class AsyncAuditTests(TestCase):
    def test_entry_is_queued(self):
        with patch.object(record_audit_entry, 'delay') as delay:
            result = AuditService.log_record_creation('customers', 3, {'name': 'Queued'})

        self.assertIsNone(result)
        entry = delay.call_args[0][0]
        self.assertEqual(entry['record_id'], '3')
        self.assertEqual(entry['action'], 'create')
        self.assertFalse(AuditLog.objects.exists())

    def test_falls_back_to_inline_write_when_broker_is_down(self):
        with patch.object(record_audit_entry, 'delay', side_effect=ConnectionError('no broker')):
            with self.assertLogs('accounts.audit', level='ERROR'):
                result = AuditService.log_record_creation('customers', 4, {'name': 'Inline'})

        self.assertIsNotNone(result)
        self.assertEqual(AuditLog.objects.get().record_id, '4')

    def test_task_writes_entry(self):
        result = record_audit_entry({
            'table_name': 'customers',
            'record_id': '5',
            'action': 'delete',
        })
        self.assertEqual(result, str(AuditLog.objects.get().pk))


class AuditSignalTests(TestCase):
    def test_login_signal_is_audited(self):
        user = create_user('seller@test.com', role='inhouse_sales')
        request = RequestFactory().post('/', REMOTE_ADDR='10.0.0.9', HTTP_USER_AGENT='tests')

        user_logged_in.send(sender=user.__class__, request=request, user=user)

        log = AuditLog.objects.get(action=AuditLog.ACTION_LOGIN)
        self.assertEqual(log.user, user)
        self.assertEqual(log.ip_address, '10.0.0.9')
        self.assertEqual(log.user_agent, 'tests')
