from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import (
    AuditLogViewSet,
    TeamMemberViewSet,
    LoginView,
    LogoutView,
    SignUpView,
    SessionView,
    GuardView,
)

router = DefaultRouter()
router.register(r'audit-logs', AuditLogViewSet)
router.register(r'team-members', TeamMemberViewSet)

urlpatterns = [
    path('api/', include(router.urls)),

    # Authentication routes
    path('api/auth/login/', LoginView.as_view(), name='login'),
    path('api/auth/logout/', LogoutView.as_view(), name='logout'),
    path('api/auth/signup/', SignUpView.as_view(), name='signup'),
    path('api/auth/session/', SessionView.as_view(), name='session'),
    path('api/auth/guard/', GuardView.as_view(), name='guard'),
]
