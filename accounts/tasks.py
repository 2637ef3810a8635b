from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task
def record_audit_entry(entry):
    """
    Write an audit row off the request cycle (AUDIT_LOG_ASYNC).
    """
    from .audit import AuditService

    log = AuditService._write(entry)
    if log is None:
        return f"Failed to record audit entry {entry.get('action')} on {entry.get('table_name')}"

    logger.info(f"Recorded audit entry {log.id}")
    return str(log.id)
