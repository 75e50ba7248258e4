"""WSGI config for the designer service."""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "designer_service.settings")

application = get_wsgi_application()
