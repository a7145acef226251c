"""
Diagnosis Service - Main Application

FastAPI backend that scores public social-media profiles and local-business
listings. Listing pages are rendered with Playwright, results are cached in
Redis and each diagnosis route is rate-limited per client.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from browser_pool import close_browser_pool
from config import settings
from redis_client import close_redis_client
from routes import root_router, router

# Load environment variables
load_dotenv()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Release the browser pool and Redis connections on shutdown."""
    logger.info(f"🚀 Diagnosis Service starting ({settings.APP_VERSION})")
    try:
        yield
    finally:
        await close_browser_pool()
        await close_redis_client()
        logger.info("🛑 Diagnosis Service stopped")


# Initialize FastAPI app
app = FastAPI(title="Diagnosis Service", version=settings.APP_VERSION, lifespan=lifespan)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
app.include_router(root_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.PORT,
        timeout_keep_alive=60,
        workers=settings.API_WORKERS,
        proxy_headers=True,
        forwarded_allow_ips=settings.FORWARDED_ALLOW_IPS,
    )
