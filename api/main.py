"""
DoggyWalk Provider Onboarding — FastAPI Backend
Service setup wizard and identity verification for pet-care providers
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from db.database import engine
from routers import admin, identity_verifications, onboarding
from services.object_store import storage_client

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Provider onboarding API starting...")
    yield
    await storage_client.aclose()
    await engine.dispose()
    logger.info("Provider onboarding API shut down.")


app = FastAPI(
    title="DoggyWalk Provider Onboarding API",
    description="Provider classification, service setup and identity verification",
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ───────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ────────────────────────────────────────────────
app.include_router(onboarding.router, prefix="/api/onboarding", tags=["Onboarding"])
app.include_router(
    identity_verifications.router,
    prefix="/api/identity-verifications",
    tags=["Identity Verification"],
)
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "DoggyWalk Provider Onboarding API"}
