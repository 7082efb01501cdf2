"""
Client Routes - Admin Dashboard

Owner-scoped client list with search and status filters, plus the
add/edit/delete operations behind the dashboard.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from portal.auth import get_current_user
from portal.catalog import ClientStatus, ClientType
from portal.router_utils import get_owned_client, get_store, storage_failure
from portal.storage import PortalStore, StorageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/clients", tags=["clients"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

# Request bodies use the dashboard's camelCase keys; rows are snake_case.

class ClientCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: ClientType = ClientType.INDIVIDUAL
    assignedTo: Optional[str] = None


class ClientUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    type: Optional[ClientType] = None
    assignedTo: Optional[str] = None
    status: Optional[ClientStatus] = None
    setupProgress: Optional[int] = Field(default=None, ge=0, le=100)


COLUMN_NAMES = {
    "assignedTo": "assigned_to",
    "setupProgress": "setup_progress",
}


def to_columns(body: BaseModel) -> dict:
    """Only the fields the caller sent, renamed to their column names."""
    updates = {}
    for key, value in body.model_dump(exclude_unset=True).items():
        if hasattr(value, "value"):
            value = value.value
        updates[COLUMN_NAMES.get(key, key)] = value
    return updates


def dashboard_stats(clients: list) -> dict:
    return {
        "total": len(clients),
        "new": len([c for c in clients if c.get("status") == ClientStatus.NEW.value]),
        "in_progress": len([c for c in clients if c.get("status") == ClientStatus.IN_PROGRESS.value]),
        "ready": len([c for c in clients if c.get("status") == ClientStatus.READY.value]),
    }


def filter_clients(clients: list, search: Optional[str], status: Optional[str]) -> list:
    query = (search or "").strip().lower()
    return [
        c for c in clients
        if query in (c.get("name") or "").lower()
        and (not status or status == "all" or c.get("status") == status)
    ]


# =============================================================================
# ROUTES
# =============================================================================

@router.get("")
async def list_clients(
    search: Optional[str] = Query(None),
    status: Optional[str] = Query("all"),
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    """All of the caller's clients, newest first, with dashboard counts."""
    if status and status != "all" and status not in [s.value for s in ClientStatus]:
        raise HTTPException(status_code=400, detail=f"Unknown status '{status}'")

    try:
        clients = store.list_clients(user["id"])
    except StorageError as e:
        raise storage_failure("fetch clients", e)

    return {
        "clients": filter_clients(clients, search, status),
        "stats": dashboard_stats(clients),
    }


@router.get("/{client_id}")
async def get_client(
    client_id: str,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    return {"client": get_owned_client(store, user, client_id)}


@router.post("")
async def create_client(
    request: ClientCreateRequest,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    """Manual add from the dashboard. New clients start at status 'new' with no progress."""
    record = {
        "name": request.name,
        "type": request.type.value,
        "assigned_to": request.assignedTo,
        "status": ClientStatus.NEW.value,
        "setup_progress": 0,
    }
    try:
        client = store.create_client(user["id"], record)
    except StorageError as e:
        raise storage_failure("create client", e)

    logger.info(f"Client {client['id']} added by {user.get('email')}")
    return {"client": client}


@router.put("/{client_id}")
async def update_client(
    client_id: str,
    request: ClientUpdateRequest,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    updates = to_columns(request)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    try:
        client = store.update_client(user["id"], client_id, updates)
    except StorageError as e:
        raise storage_failure("update client", e)

    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    return {"client": client}


@router.delete("/{client_id}")
async def delete_client(
    client_id: str,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    try:
        deleted = store.delete_client(user["id"], client_id)
    except StorageError as e:
        raise storage_failure("delete client", e)

    if not deleted:
        raise HTTPException(status_code=404, detail="Client not found")
    return {"success": True}
