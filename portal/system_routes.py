"""
System Routes - Health Check

Public health endpoint with a storage probe.
"""

import os
import logging
from typing import Dict
from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel

from portal.storage import build_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/system", tags=["system"])

VERSION = "1.0.0"


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str
    environment: str
    services: Dict[str, str]


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Basic health check endpoint.
    Public - no auth required.
    """
    services = {}

    try:
        store = build_store()
        if store and store.ping():
            services["database"] = "healthy"
        else:
            services["database"] = "unavailable"
    except Exception as e:
        logger.warning(f"[Health] Storage probe failed: {e}")
        services["database"] = f"error: {str(e)[:50]}"

    environment = os.getenv("ENVIRONMENT", "development")
    status = "healthy" if all(v == "healthy" for v in services.values()) else "degraded"

    return HealthResponse(
        status=status,
        timestamp=datetime.utcnow().isoformat(),
        version=VERSION,
        environment=environment,
        services=services,
    )
