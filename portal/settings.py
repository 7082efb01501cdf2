"""
Workflow Settings

The firm-wide settings blob: company name, per-integration configuration and
workflow-automation flags. One shared record, not scoped per user.
Reads are cached with a TTL and invalidated on save.
"""

import os
import copy
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from portal.catalog import DEFAULT_WORKFLOW_STEPS, INTEGRATION_KEYS

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = int(os.environ.get("SETTINGS_CACHE_TTL_SECONDS", "300"))

# Integration fields editable from the settings screen
CONFIG_FIELDS = ["apiKey", "apiUrl", "webhookUrl"]

# In-memory cache with TTL
_settings_cache: Optional[Dict[str, Any]] = None
_cache_timestamp: Optional[datetime] = None


class SettingsError(Exception):
    """Raised for unknown integrations, flags or fields."""


class IntegrationConfig(BaseModel):
    enabled: bool = False
    apiKey: Optional[str] = None
    apiUrl: Optional[str] = None
    webhookUrl: Optional[str] = None
    additionalSettings: Optional[Dict[str, str]] = None


class WorkflowSettings(BaseModel):
    companyName: Optional[str] = None
    integrations: Dict[str, IntegrationConfig] = Field(default_factory=dict)
    workflowSteps: Dict[str, bool] = Field(default_factory=dict)


def default_settings() -> Dict[str, Any]:
    """Every integration disabled, workflow flags at their defaults."""
    return {
        "integrations": {key: {"enabled": False} for key in INTEGRATION_KEYS},
        "workflowSteps": dict(DEFAULT_WORKFLOW_STEPS),
    }


def with_defaults(settings: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Fill any integration or flag missing from stored settings with its default."""
    merged = default_settings()
    if not settings:
        return merged

    if settings.get("companyName") is not None:
        merged["companyName"] = settings["companyName"]
    for key, config in (settings.get("integrations") or {}).items():
        merged["integrations"][key] = {**merged["integrations"].get(key, {}), **(config or {})}
    merged["workflowSteps"].update(settings.get("workflowSteps") or {})
    return merged


def validate_settings(settings: Dict[str, Any]) -> Dict[str, Any]:
    """Validate shape and reject unknown integration or workflow keys."""
    parsed = WorkflowSettings(**settings)

    unknown = [k for k in parsed.integrations if k not in INTEGRATION_KEYS]
    unknown += [k for k in parsed.workflowSteps if k not in DEFAULT_WORKFLOW_STEPS]
    if unknown:
        raise SettingsError(f"Unknown settings keys: {', '.join(unknown)}")

    return parsed.model_dump(exclude_none=True)


# =============================================================================
# REDUCERS
# =============================================================================

def _require_integration(key: str):
    if key not in INTEGRATION_KEYS:
        raise SettingsError(f"Unknown integration '{key}'")


def toggle_integration(settings: Dict[str, Any], key: str) -> Dict[str, Any]:
    _require_integration(key)
    updated = copy.deepcopy(with_defaults(settings))
    config = updated["integrations"][key]
    config["enabled"] = not config.get("enabled", False)
    return updated


def update_integration_config(settings: Dict[str, Any], key: str, field: str, value: str) -> Dict[str, Any]:
    _require_integration(key)
    if field not in CONFIG_FIELDS:
        raise SettingsError(f"Field must be one of {CONFIG_FIELDS}")
    updated = copy.deepcopy(with_defaults(settings))
    updated["integrations"][key][field] = value
    return updated


def toggle_workflow_step(settings: Dict[str, Any], key: str) -> Dict[str, Any]:
    if key not in DEFAULT_WORKFLOW_STEPS:
        raise SettingsError(f"Unknown workflow step '{key}'")
    updated = copy.deepcopy(with_defaults(settings))
    updated["workflowSteps"][key] = not updated["workflowSteps"][key]
    return updated


def check_connection(settings: Dict[str, Any], key: str) -> Dict[str, Any]:
    """
    Check that an integration is ready to connect.
    No outbound call is made; the result reports what configuration is missing.
    """
    _require_integration(key)
    config = with_defaults(settings)["integrations"][key]

    problems = []
    if not config.get("enabled"):
        problems.append("integration is disabled")
    if not config.get("apiKey"):
        problems.append("apiKey is not set")

    return {
        "integration": key,
        "success": not problems,
        "problems": problems,
    }


def workflow_enabled(settings: Optional[Dict[str, Any]], key: str) -> bool:
    return bool(with_defaults(settings)["workflowSteps"].get(key))


# =============================================================================
# CACHED ACCESS
# =============================================================================

def load_settings(store, force_refresh: bool = False) -> Optional[Dict[str, Any]]:
    """
    Get the stored settings with caching.

    Returns the raw stored blob (None when never saved).
    """
    global _settings_cache, _cache_timestamp

    now = datetime.utcnow()

    if not force_refresh and _settings_cache is not None and _cache_timestamp:
        if (now - _cache_timestamp).total_seconds() < CACHE_TTL_SECONDS:
            return _settings_cache

    settings = store.get_settings()
    if settings is not None:
        _settings_cache = settings
        _cache_timestamp = now
    return settings


def save_settings(store, settings: Dict[str, Any], user_id: str) -> None:
    store.save_settings(settings, user_id)
    invalidate_cache()
    logger.info(f"Settings saved by {user_id}")


def invalidate_cache():
    global _settings_cache, _cache_timestamp
    _settings_cache = None
    _cache_timestamp = None
