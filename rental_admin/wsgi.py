"""
WSGI config for the rental_admin project.

It exposes the WSGI callable as a module-level variable named ``application``.

For more information on this file, see
https://docs.djangoproject.com/en/5.0/howto/deployment/wsgi/
"""

import logging
import os

from django.conf import settings
from django.core.wsgi import get_wsgi_application
from whitenoise import WhiteNoise

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'rental_admin.settings')

django_application = get_wsgi_application()

logger = logging.getLogger(__name__)
logger.info(
    "Database engine=%s debug=%s",
    settings.DATABASES['default']['ENGINE'],
    settings.DEBUG,
)

# Serve collected static assets (admin CSS/JS) from the process itself so the
# app runs on hosts without a separate static file server.
application = WhiteNoise(django_application)

static_root = getattr(settings, 'STATIC_ROOT', None)
if static_root:
    application.add_files(static_root, prefix='static/')
