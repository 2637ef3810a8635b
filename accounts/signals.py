import logging

from django.contrib.auth.signals import user_logged_in, user_logged_out
from django.db.models.signals import post_save
from django.dispatch import receiver

from .audit import AuditService, get_client_ip, get_user_agent
from .models import TeamMember, User

logger = logging.getLogger(__name__)


@receiver(user_logged_in)
def audit_user_login(sender, request, user, **kwargs):
    AuditService.log_user_login(user, get_client_ip(request), get_user_agent(request))


@receiver(user_logged_out)
def audit_user_logout(sender, request, user, **kwargs):
    if user is None:
        return
    AuditService.log_user_logout(user, get_client_ip(request))


@receiver(post_save, sender=TeamMember)
def sync_team_member_assignment(sender, instance, **kwargs):
    """Keep the linked user's role, store and floor in step with the roster."""
    user = instance.user
    if user is None:
        user = User.objects.filter(email__iexact=instance.email).first()
        if user is None:
            return
        TeamMember.objects.filter(pk=instance.pk).update(user=user)

    metadata = dict(user.metadata or {})
    metadata['role'] = instance.role
    changed = (
        user.role != instance.role
        or user.store_id != instance.store_id
        or user.floor != instance.floor
        or user.metadata != metadata
    )
    if not changed:
        return

    user.role = instance.role
    user.store_id = instance.store_id
    user.floor = instance.floor
    user.metadata = metadata
    user.save(update_fields=['role', 'store', 'floor', 'metadata', 'updated_at'])
    logger.info('Synced assignment for %s from team roster.', user.email)
