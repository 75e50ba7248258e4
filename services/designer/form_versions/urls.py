"""Route registration for the designer service."""
from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import FormDesignerViewSet, health

router = DefaultRouter()
router.register("forms", FormDesignerViewSet, basename="form")

urlpatterns = [
    path("healthz/", health, name="designer-health"),
    path("", include(router.urls)),
]
