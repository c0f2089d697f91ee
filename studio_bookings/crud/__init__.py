# studio_bookings/crud/__init__.py

from .crud_course import course
from .crud_signup import signup
from .crud_webhook_event import webhook_event
