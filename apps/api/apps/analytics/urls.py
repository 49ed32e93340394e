"""Analytics URLs."""
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import DashboardView, DocumentAnalyticsViewSet

router = DefaultRouter()
router.register(r'documents', DocumentAnalyticsViewSet, basename='document-analytics')

urlpatterns = [
    path('dashboard/', DashboardView.as_view(), name='analytics-dashboard'),
    path('', include(router.urls)),
]
