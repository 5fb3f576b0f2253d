"""
WSGI entry point for the BloodLink coordination API.

Exposes the WSGI callable as a module-level variable named ``application``.
"""

import os

from dotenv import load_dotenv
from django.core.wsgi import get_wsgi_application

load_dotenv(override=False)

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'bloodlink.settings')

application = get_wsgi_application()
