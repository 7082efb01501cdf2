"""
Admin Setup Checklist

Tracks the manual integration steps (practice management, tax software,
client portal, workpaper folders) the firm performs for each new client.
Checklist progress drives the client's setup_progress and status.
"""

import copy
import logging
from typing import Any, Dict, List, Optional

from portal.catalog import SETUP_TEMPLATE, ClientStatus, documents_for

logger = logging.getLogger(__name__)


class ChecklistError(Exception):
    pass


def build_checklist(client: Dict[str, Any], documents: Optional[List[Dict[str, Any]]] = None) -> List[Dict[str, Any]]:
    """Fresh checklist for a client, prefilled from the client record and intake uploads."""
    steps = copy.deepcopy(SETUP_TEMPLATE)
    for step in steps:
        step["completed"] = False

    client_type = client.get("type") or "individual"
    prefill = {
        "client-name": client.get("name") or "",
        "client-type": client_type.capitalize(),
    }

    if documents:
        names = {d.id: d.name for d in documents_for(client_type)}
        lines = []
        for doc in documents:
            label = names.get(doc.get("document_type"), doc.get("document_type"))
            lines.append(f"- {label} ({doc.get('file_name')})")
        prefill["imported-docs"] = "\n".join(lines)

    for step in steps:
        for field in step["fields"]:
            if field["id"] in prefill:
                field["value"] = prefill[field["id"]]
    return steps


def _find_step(steps: List[Dict[str, Any]], step_id: str) -> Dict[str, Any]:
    for step in steps:
        if step["id"] == step_id:
            return step
    raise ChecklistError(f"Unknown setup step '{step_id}'")


def toggle_step(steps: List[Dict[str, Any]], step_id: str) -> List[Dict[str, Any]]:
    updated = copy.deepcopy(steps)
    step = _find_step(updated, step_id)
    step["completed"] = not step.get("completed", False)
    return updated


def update_field(steps: List[Dict[str, Any]], step_id: str, field_id: str, value: Any) -> List[Dict[str, Any]]:
    updated = copy.deepcopy(steps)
    step = _find_step(updated, step_id)

    for field in step["fields"]:
        if field["id"] != field_id:
            continue
        if field["type"] == "checkbox" and not isinstance(value, bool):
            raise ChecklistError(f"Field '{field_id}' takes true or false")
        if field["type"] != "checkbox" and not isinstance(value, str):
            raise ChecklistError(f"Field '{field_id}' takes text")
        if field["type"] == "select" and value not in field.get("options", []):
            raise ChecklistError(f"Field '{field_id}' must be one of {field.get('options')}")
        field["value"] = value
        return updated

    raise ChecklistError(f"Unknown field '{field_id}' in step '{step_id}'")


def progress(steps: List[Dict[str, Any]]) -> int:
    """Completed steps as an integer percentage."""
    if not steps:
        return 0
    completed = len([s for s in steps if s.get("completed")])
    return int(round(completed / len(steps) * 100))


def status_for_progress(percent: int, current_status: Optional[str] = None) -> str:
    # A completed engagement is never pulled back by checklist edits
    if current_status == ClientStatus.COMPLETE.value:
        return current_status
    if percent >= 100:
        return ClientStatus.READY.value
    if percent > 0:
        return ClientStatus.IN_PROGRESS.value
    return ClientStatus.NEW.value


def summarize(steps: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "steps": steps,
        "completed": len([s for s in steps if s.get("completed")]),
        "total": len(steps),
        "progress": progress(steps),
    }
