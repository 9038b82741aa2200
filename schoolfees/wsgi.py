# schoolfees/wsgi.py

"""
WSGI config for the schoolfees project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'schoolfees.settings')

application = get_wsgi_application()
