"""
Public viewer URLs, mounted at /api/public/.
"""
from django.urls import path

from . import views

urlpatterns = [
    path('document/<str:identifier>/', views.public_document, name='public-document'),
    path('document/<str:identifier>/view/', views.track_view, name='public-document-view'),
    path('document/<str:identifier>/contact/', views.submit_contact_view, name='public-document-contact'),
    path('document/<str:identifier>/download/', views.download, name='public-document-download'),
    path('document/<str:identifier>/stream/', views.stream, name='public-document-stream'),
    path('document/<str:identifier>/event/', views.viewer_event, name='public-document-event'),
    path('unlock-video/', views.unlock_video_view, name='public-unlock-video'),
]
