"""
Setup Checklist Routes

Per-client admin checklist. Every change is saved, then the client's
setup_progress and status are brought in line with the checklist.
"""

import logging
from typing import Any, Dict, List, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from portal import setup_checklist
from portal.auth import get_current_user
from portal.router_utils import get_owned_client, get_store, storage_failure
from portal.setup_checklist import ChecklistError
from portal.storage import PortalStore, StorageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/clients/{client_id}/setup", tags=["setup"])


class FieldValueRequest(BaseModel):
    value: Union[bool, str]


def load_checklist(store: PortalStore, client: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Saved checklist, or a fresh one prefilled from the client and its intake uploads."""
    steps = store.get_setup(client["id"])
    if steps:
        return steps
    return setup_checklist.build_checklist(client, store.list_documents(client["id"]))


def save_checklist(store: PortalStore, user: dict, client: Dict[str, Any], steps: List[Dict[str, Any]]) -> Dict[str, Any]:
    store.save_setup(client["id"], steps)

    percent = setup_checklist.progress(steps)
    status = setup_checklist.status_for_progress(percent, client.get("status"))
    updated = store.update_client(user["id"], client["id"], {"setup_progress": percent, "status": status})
    if updated is None:
        logger.warning(f"Checklist saved but client {client['id']} was not updated")

    return {**setup_checklist.summarize(steps), "client": updated or client}


@router.get("")
async def get_setup(
    client_id: str,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    client = get_owned_client(store, user, client_id)
    try:
        steps = load_checklist(store, client)
    except StorageError as e:
        raise storage_failure("load setup checklist", e)
    return {**setup_checklist.summarize(steps), "client": client}


@router.post("/steps/{step_id}/toggle")
async def toggle_step(
    client_id: str,
    step_id: str,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    """Mark a setup step complete, or reopen it."""
    client = get_owned_client(store, user, client_id)
    try:
        steps = load_checklist(store, client)
        steps = setup_checklist.toggle_step(steps, step_id)
        return save_checklist(store, user, client, steps)
    except ChecklistError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        raise storage_failure("save setup checklist", e)


@router.put("/steps/{step_id}/fields/{field_id}")
async def update_field(
    client_id: str,
    step_id: str,
    field_id: str,
    request: FieldValueRequest,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    client = get_owned_client(store, user, client_id)
    try:
        steps = load_checklist(store, client)
        steps = setup_checklist.update_field(steps, step_id, field_id, request.value)
        return save_checklist(store, user, client, steps)
    except ChecklistError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        raise storage_failure("save setup checklist", e)
