# studio_bookings/models/__init__.py
# Import every model so Base.metadata knows about all tables.

from .organization import Organization
from .course import Course, CourseSession
from .signup import Signup
from .processed_webhook_event import ProcessedWebhookEvent
