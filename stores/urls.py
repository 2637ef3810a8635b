from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import StoreViewSet, FloorListView

router = DefaultRouter()
router.register(r'stores', StoreViewSet)

urlpatterns = [
    path('api/', include(router.urls)),
    path('api/floors/', FloorListView.as_view(), name='floor-list'),
]
