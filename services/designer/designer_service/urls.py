"""URL configuration for the designer service."""
from django.urls import include, path

urlpatterns = [
    path("api/", include("form_versions.urls")),
]
