# studio_bookings/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studio_bookings.api.v1.api import api_router
from studio_bookings.core.config import settings
from studio_bookings.core.logging_config import configure_logging
from studio_bookings.db.base_class import Base
from studio_bookings.db.session import engine
from studio_bookings import models  # noqa: F401  registers every table on Base.metadata
from studio_bookings.scheduler import init_scheduler, shutdown_scheduler

logger = logging.getLogger(__name__)


# Runs once when the application starts up, and again on shutdown.
@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("Application starting up...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables checked and created if necessary.")
    if settings.SCHEDULER_ENABLED:
        init_scheduler()
    yield
    shutdown_scheduler()
    logger.info("Application shutting down...")


app = FastAPI(
    title="Studio Bookings Service",
    version="1.0.0",
    description="""
        **Studio Bookings**

        Booking backend for yoga studios.

        ## Features

        * **Teacher dashboard**: Signups grouped per class with payment and waitlist exceptions
        * **Stripe checkout**: Idempotent webhook reconciliation of payments and refunds
        * **Waitlist**: Time-limited seat offers with single-use claim links
        * **Teacher actions**: Mark as paid, cancel with optional refund

        ## Authentication

        Dashboard endpoints require a JWT via the `Authorization: Bearer <token>` header.
        Internal endpoints require the `X-Internal-Api-Key` header.
        """,
    lifespan=lifespan,
)

origins = [
    "http://localhost:3000",
    settings.SITE_URL,
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {"status": "Studio Bookings Service is running"}
