"""
Access guards.

``AccessGuard`` turns the auth state into one of four outcomes for a
protected area: still loading, redirecting to sign-in, access denied, or
render. A guard issues its redirect at most once no matter how many times
it is evaluated. ``RequiredRolePermission`` applies the same role rule to
DRF views.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Union

import rules
from django.conf import settings
from rest_framework import permissions

from .auth_state import AuthStateStore
from .identity import principal_from_user
from .roles import role_in

logger = logging.getLogger(__name__)

RequiredRole = Optional[Union[str, Iterable[str]]]


class GuardState(str, Enum):
    LOADING = 'loading'
    REDIRECTING = 'redirecting'
    ACCESS_DENIED = 'access_denied'
    RENDER = 'render'


@dataclass(frozen=True)
class Redirect:
    target: str


@dataclass(frozen=True)
class GuardDecision:
    state: GuardState
    redirect: Optional[Redirect] = None
    message: str = ''

    @property
    def render_children(self):
        return self.state is GuardState.RENDER

    def to_dict(self):
        return {
            'state': self.state.value,
            'redirect': self.redirect.target if self.redirect else None,
            'message': self.message,
            'render_children': self.render_children,
        }


class AccessGuard:
    def __init__(self, auth_state: AuthStateStore, required_role: RequiredRole = None, sign_in_url: Optional[str] = None):
        self.auth_state = auth_state
        self.required_role = required_role
        self.sign_in_url = sign_in_url or getattr(settings, 'LOGIN_URL', '/login')
        self._redirect_issued = False

    def _redirect_once(self) -> Optional[Redirect]:
        if self._redirect_issued:
            return None
        self._redirect_issued = True
        logger.info(f"Redirecting to {self.sign_in_url}")
        return Redirect(self.sign_in_url)

    def evaluate(self) -> GuardDecision:
        state = self.auth_state

        if state.is_loading or not state.is_hydrated:
            return GuardDecision(GuardState.LOADING, message='Loading...')

        principal = state.principal
        if principal is None:
            return GuardDecision(GuardState.REDIRECTING, self._redirect_once(), 'Redirecting to login...')

        if self.required_role and not role_in(principal.role, self.required_role):
            logger.info(f"Access denied for {principal.email}: role {principal.role!r}")
            return GuardDecision(
                GuardState.ACCESS_DENIED,
                self._redirect_once(),
                "You don't have permission to access this page.",
            )

        return GuardDecision(GuardState.RENDER)


class RequiredRolePermission(permissions.BasePermission):
    """
    Permission class for views that declare ``required_role``.

    Usage:
        class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
            permission_classes = [RequiredRolePermission]
            required_role = ['platform_admin', 'business_admin']
    """

    message = "You don't have permission to access this page."

    def has_permission(self, request, view):
        principal = principal_from_user(request.user)
        if principal is None:
            return False

        required = getattr(view, 'required_role', None)
        if not required:
            return True
        return role_in(principal.role, required)


class RulesPermission(permissions.BasePermission):
    """
    Check django-rules permissions declared on the view, keyed by action.

    ``permission_required`` maps a viewset action to a model-level perm,
    ``object_permission_required`` to a perm checked against the instance.
    """

    def _perm_for(self, view, attr):
        perms = getattr(view, attr, None) or {}
        return perms.get(getattr(view, 'action', None))

    def has_permission(self, request, view):
        perm = self._perm_for(view, 'permission_required')
        if perm is None:
            return True
        return rules.has_perm(perm, request.user)

    def has_object_permission(self, request, view, obj):
        perm = self._perm_for(view, 'object_permission_required')
        if perm is None:
            return True
        return rules.has_perm(perm, request.user, obj)
