import os
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portal import (
    auth,
    billing_routes,
    client_routes,
    onboarding_routes,
    portal_routes,
    settings_routes,
    setup_routes,
    system_routes,
)
from portal.storage import STORAGE_BACKEND, check_storage_backend
from portal.supabase_client import get_supabase

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="CPA Firm Portal API",
    description="Client onboarding, setup tracking, billing and client portal for an accounting practice",
    version=system_routes.VERSION
)

allowed_origins = ["*"]

# Get additional allowed origins from environment
extra_origins = os.environ.get("CORS_ORIGINS", "")
if extra_origins:
    allowed_origins.extend([o.strip() for o in extra_origins.split(",") if o.strip()])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Log startup information."""
    port = os.environ.get("PORT", "8000")
    logger.info(f"CPA Firm Portal API starting on port {port}")
    try:
        check_storage_backend(STORAGE_BACKEND)
    except ValueError as e:
        logger.error(str(e))
        raise
    logger.info(f"Storage backend: {STORAGE_BACKEND}")
    if STORAGE_BACKEND != "memory":
        logger.info(f"Supabase connected: {get_supabase() is not None}")


@app.get("/")
async def root():
    return {"message": "CPA Firm Portal API", "version": system_routes.VERSION}


# Register Routers
app.include_router(auth.router)
app.include_router(onboarding_routes.router)
app.include_router(client_routes.router)
app.include_router(setup_routes.router)
app.include_router(billing_routes.router)
app.include_router(settings_routes.router)
app.include_router(portal_routes.router)
app.include_router(system_routes.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
