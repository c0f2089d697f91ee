# studio_bookings/api/v1/api.py

from fastapi import APIRouter
from studio_bookings.api.v1.endpoints import (
    courses,
    signups,
    waitlist,
    webhooks,
)

# This is the main router for the v1 API.
api_router = APIRouter()

api_router.include_router(signups.router)
api_router.include_router(courses.router)
api_router.include_router(waitlist.router, prefix="/waitlist", tags=["waitlist"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
