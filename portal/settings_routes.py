"""
Settings Routes - Integrations & Workflow Automation

Firm-wide settings screen: company name, integration credentials and the
workflow-automation toggles.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ValidationError

from portal import settings as workflow_settings
from portal.auth import get_current_user
from portal.router_utils import get_store, storage_failure
from portal.settings import SettingsError
from portal.storage import PortalStore, StorageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])


class SaveSettingsRequest(BaseModel):
    settings: Dict[str, Any]


class IntegrationFieldRequest(BaseModel):
    field: str
    value: Optional[str] = None


def _load(store: PortalStore) -> Optional[Dict[str, Any]]:
    try:
        return workflow_settings.load_settings(store)
    except StorageError as e:
        raise storage_failure("load settings", e)


def _apply(store: PortalStore, user: dict, reducer, *args) -> Dict[str, Any]:
    """Run a reducer over the current settings and save the result."""
    try:
        updated = reducer(_load(store), *args)
    except SettingsError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        workflow_settings.save_settings(store, updated, user["id"])
    except StorageError as e:
        raise storage_failure("save settings", e)
    return {"success": True, "settings": updated}


@router.get("")
async def get_settings(
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    """Stored settings; null when they have never been saved."""
    return {"settings": _load(store)}


@router.get("/effective")
async def get_effective_settings(
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    return {"settings": workflow_settings.with_defaults(_load(store))}


@router.post("")
async def save_settings(
    request: SaveSettingsRequest,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    try:
        validated = workflow_settings.validate_settings(request.settings)
    except (SettingsError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        workflow_settings.save_settings(store, validated, user["id"])
    except StorageError as e:
        raise storage_failure("save settings", e)
    return {"success": True, "settings": validated}


@router.post("/integrations/{key}/toggle")
async def toggle_integration(
    key: str,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    return _apply(store, user, workflow_settings.toggle_integration, key)


@router.put("/integrations/{key}")
async def update_integration(
    key: str,
    request: IntegrationFieldRequest,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    return _apply(store, user, workflow_settings.update_integration_config, key, request.field, request.value)


@router.post("/integrations/{key}/test")
async def test_integration(
    key: str,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    """Report whether an integration is configured well enough to connect."""
    try:
        result = workflow_settings.check_connection(_load(store), key)
    except SettingsError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"[Settings] Connection check for {key}: {'ok' if result['success'] else result['problems']}")
    return result


@router.post("/workflow/{key}/toggle")
async def toggle_workflow_step(
    key: str,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    return _apply(store, user, workflow_settings.toggle_workflow_step, key)
