"""
Celery configuration for the ticket portal.
"""
import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'ticket_portal.settings')

app = Celery('ticket_portal')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
