import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from booking_agent import __version__
from booking_agent.api.router import api_router
from booking_agent.config import settings
from booking_agent.middleware.logging import RequestLoggingMiddleware

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting booking agent backend (env=%s, drafts_service=%s)",
        settings.environment, settings.drafts_service_url,
    )
    if not settings.xindus_api_token:
        logger.warning("XINDUS_API_TOKEN is not set; submissions to Xindus will be refused")
    yield
    logger.info("Shutting down booking agent backend")


app = FastAPI(
    title="Booking Agent - Shipment Draft Review",
    description="Batch tracking, draft corrections and Xindus hand-off for B2B shipment drafts",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router, prefix="/api")
