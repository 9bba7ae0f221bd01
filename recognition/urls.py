# recognition/urls.py
from django.urls import path

from .views import (
    AnalyzeView,
    CameraView,
    CapturedImageView,
    ClientLogView,
    HomeView,
    PrivacyView,
    ProcessingView,
    ProfileImageView,
    ResultDownloadView,
    ResultsView,
    StatusView,
    UploadView,
)

urlpatterns = [
    path("", HomeView.as_view(), name="home"),
    path("camera/", CameraView.as_view(), name="camera"),
    path("upload/", UploadView.as_view(), name="upload"),
    path("processing/", ProcessingView.as_view(), name="processing"),
    path("analyze/", AnalyzeView.as_view(), name="analyze"),
    path("results/", ResultsView.as_view(), name="results"),
    path("results/download/", ResultDownloadView.as_view(), name="results_download"),
    path("privacy/", PrivacyView.as_view(), name="privacy"),
    path("capture/image/", CapturedImageView.as_view(), name="capture_image"),
    path("profiles/<str:profile_id>/image/", ProfileImageView.as_view(), name="profile_image"),
    path("status/", StatusView.as_view(), name="status"),
    path("client-log/", ClientLogView.as_view(), name="client_log"),
]
