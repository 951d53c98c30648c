"""
ASGI config for inkwell project.

Required for the notification stream, which holds an open connection per client.
"""
import os
from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'inkwell.settings')
application = get_asgi_application()
