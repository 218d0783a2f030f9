from django.urls import path, include
from rest_framework.routers import DefaultRouter
from care.views import AssignmentViewSet, CareUserViewSet, ProviderViewSet

router = DefaultRouter()
router.register(r'assignments', AssignmentViewSet, basename='assignment')
router.register(r'providers', ProviderViewSet)
router.register(r'users', CareUserViewSet, basename='careuser')

urlpatterns = [
    path('api/v1/', include(router.urls)),
]
