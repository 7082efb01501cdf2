import logging
from typing import Any, Dict

from fastapi import HTTPException

from portal.storage import PortalStore, StorageError, build_store

logger = logging.getLogger(__name__)


def get_store() -> PortalStore:
    """Dependency returning the configured store, 503 when storage is not configured."""
    try:
        store = build_store()
    except ValueError as e:
        logger.error(f"Storage misconfigured: {e}")
        raise HTTPException(status_code=503, detail="Database misconfigured")
    if store is None:
        raise HTTPException(status_code=503, detail="Database not available")
    return store


def get_owned_client(store: PortalStore, user: dict, client_id: str) -> Dict[str, Any]:
    """Load a client the caller owns, 404 otherwise."""
    try:
        client = store.get_client(user["id"], client_id)
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


def storage_failure(action: str, error: Exception) -> HTTPException:
    """Log a storage failure and build the 500 to raise."""
    logger.error(f"Error {action}: {error}")
    return HTTPException(status_code=500, detail=f"Failed to {action}")
