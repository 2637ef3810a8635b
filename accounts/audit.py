"""
Audit Service

Records every CRM mutation, sign-in and data transfer in ``AuditLog``.
Writes never raise: a failed audit write is logged and reported as
``None`` so the mutation that triggered it still succeeds.
"""

import logging
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from .models import AuditLog

logger = logging.getLogger(__name__)

AUTH_TABLE = 'auth.users'
NO_RECORD = '0'


def get_client_ip(request) -> Optional[str]:
    if request is None:
        return None
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def get_user_agent(request) -> Optional[str]:
    if request is None:
        return None
    return request.META.get('HTTP_USER_AGENT')


def _user_id(user) -> Optional[str]:
    if user is None or not getattr(user, 'is_authenticated', False):
        return None
    return str(user.pk)


def _user_email(user) -> Optional[str]:
    if user is None or not getattr(user, 'is_authenticated', False):
        return None
    return user.email


class AuditService:
    """Thin service over AuditLog. All methods are class-level."""

    @staticmethod
    def _write(entry: Dict[str, Any]) -> Optional[AuditLog]:
        try:
            with transaction.atomic():
                return AuditLog.objects.create(**entry)
        except Exception as e:
            logger.error(f"Error logging audit action {entry.get('action')} on {entry.get('table_name')}: {e}")
            return None

    @classmethod
    def log_action(
        cls,
        table_name: str,
        action: str,
        record_id: Any = NO_RECORD,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        user_email: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        additional_context: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        entry = {
            'table_name': table_name,
            'record_id': str(record_id if record_id is not None else NO_RECORD),
            'action': action,
            'old_values': old_values or None,
            'new_values': new_values or None,
            'user_id': user_id,
            'user_email': user_email,
            'ip_address': ip_address,
            'user_agent': user_agent,
            'additional_context': additional_context or None,
        }

        if getattr(settings, 'AUDIT_LOG_ASYNC', False):
            from .tasks import record_audit_entry

            try:
                record_audit_entry.delay(entry)
            except Exception as e:
                logger.error(f"Failed to queue audit entry, writing inline: {e}")
                return cls._write(entry)
            return None

        return cls._write(entry)

    @staticmethod
    def get_audit_logs(
        table_name=None,
        action=None,
        user_id=None,
        record_id=None,
        date_from=None,
        date_to=None,
        limit=None,
        offset=0,
    ) -> List[AuditLog]:
        """Newest-first audit rows matching every filter given."""
        queryset = AuditLog.objects.select_related('user').order_by('-created_at')

        if table_name:
            queryset = queryset.filter(table_name=table_name)
        if action:
            queryset = queryset.filter(action=action)
        if user_id:
            queryset = queryset.filter(user_id=user_id)
        if record_id is not None:
            queryset = queryset.filter(record_id=str(record_id))
        if date_from:
            queryset = queryset.filter(created_at__gte=date_from)
        if date_to:
            queryset = queryset.filter(created_at__lte=date_to)

        offset = offset or 0
        if limit:
            return list(queryset[offset:offset + limit])
        return list(queryset[offset:])

    @classmethod
    def get_record_audit_logs(cls, table_name: str, record_id) -> List[AuditLog]:
        return cls.get_audit_logs(table_name=table_name, record_id=record_id)

    @classmethod
    def get_user_audit_logs(cls, user_id, limit: int = 50) -> List[AuditLog]:
        return cls.get_audit_logs(user_id=user_id, limit=limit)

    @staticmethod
    def get_audit_summary(date_from=None, date_to=None) -> Dict[str, Any]:
        queryset = AuditLog.objects.all()
        if date_from:
            queryset = queryset.filter(created_at__gte=date_from)
        if date_to:
            queryset = queryset.filter(created_at__lte=date_to)

        def _counts(field):
            rows = (
                queryset.exclude(**{f'{field}__isnull': True})
                .values(field)
                .annotate(count=Count('id'))
                .order_by(field)
            )
            return {row[field]: row['count'] for row in rows}

        return {
            'total_actions': queryset.count(),
            'actions_by_type': _counts('action'),
            'actions_by_user': _counts('user_email'),
            'actions_by_table': _counts('table_name'),
            'recent_activity': list(queryset.order_by('-created_at')[:10]),
        }

    # Authentication

    @classmethod
    def log_user_login(cls, user, ip_address=None, user_agent=None):
        return cls.log_action(
            table_name=AUTH_TABLE,
            action=AuditLog.ACTION_LOGIN,
            user_id=_user_id(user),
            user_email=_user_email(user),
            ip_address=ip_address,
            user_agent=user_agent,
            additional_context={
                'event_type': 'authentication',
                'timestamp': timezone.now().isoformat(),
            },
        )

    @classmethod
    def log_user_logout(cls, user, ip_address=None):
        return cls.log_action(
            table_name=AUTH_TABLE,
            action=AuditLog.ACTION_LOGOUT,
            user_id=_user_id(user),
            user_email=_user_email(user),
            ip_address=ip_address,
            additional_context={
                'event_type': 'authentication',
                'timestamp': timezone.now().isoformat(),
            },
        )

    # Data transfer

    @classmethod
    def log_data_export(cls, user, table_name, record_count, export_format):
        return cls.log_action(
            table_name=table_name,
            action=AuditLog.ACTION_EXPORT,
            user_id=_user_id(user),
            user_email=_user_email(user),
            additional_context={
                'event_type': 'data_export',
                'record_count': record_count,
                'export_format': export_format,
                'timestamp': timezone.now().isoformat(),
            },
        )

    @classmethod
    def log_data_import(cls, user, table_name, record_count, success_count, error_count):
        return cls.log_action(
            table_name=table_name,
            action=AuditLog.ACTION_IMPORT,
            user_id=_user_id(user),
            user_email=_user_email(user),
            additional_context={
                'event_type': 'data_import',
                'total_records': record_count,
                'success_count': success_count,
                'error_count': error_count,
                'timestamp': timezone.now().isoformat(),
            },
        )

    # Record lifecycle

    @classmethod
    def log_record_creation(cls, table_name, record_id, new_values, user=None):
        return cls.log_action(
            table_name=table_name,
            record_id=record_id,
            action=AuditLog.ACTION_CREATE,
            new_values=new_values,
            user_id=_user_id(user),
            user_email=_user_email(user),
        )

    @classmethod
    def log_record_update(cls, table_name, record_id, old_values, new_values, user=None):
        return cls.log_action(
            table_name=table_name,
            record_id=record_id,
            action=AuditLog.ACTION_UPDATE,
            old_values=old_values,
            new_values=new_values,
            user_id=_user_id(user),
            user_email=_user_email(user),
        )

    @classmethod
    def log_record_deletion(cls, table_name, record_id, old_values, user=None):
        return cls.log_action(
            table_name=table_name,
            record_id=record_id,
            action=AuditLog.ACTION_DELETE,
            old_values=old_values,
            user_id=_user_id(user),
            user_email=_user_email(user),
        )

    @classmethod
    def log_record_restoration(cls, table_name, record_id, new_values, user=None):
        return cls.log_action(
            table_name=table_name,
            record_id=record_id,
            action=AuditLog.ACTION_RESTORE,
            new_values=new_values,
            user_id=_user_id(user),
            user_email=_user_email(user),
        )
