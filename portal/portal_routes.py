"""
Client Portal Routes

Document requests (tasks) and messages for one client. Access goes through
the client row, so only the client's owner can read or change them.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from portal.auth import get_current_user
from portal.router_utils import get_owned_client, get_store, storage_failure
from portal.storage import PortalStore, StorageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/portal/{client_id}", tags=["portal"])


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM


class MessageCreateRequest(BaseModel):
    subject: Optional[str] = None
    body: str = Field(..., min_length=1)


def preview(body: str, length: int = 80) -> str:
    body = " ".join((body or "").split())
    return body if len(body) <= length else body[:length - 3].rstrip() + "..."


# =============================================================================
# TASKS
# =============================================================================

@router.get("/tasks")
async def list_tasks(
    client_id: str,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    """Open requests (pending or in progress) and completed ones."""
    get_owned_client(store, user, client_id)
    try:
        tasks = store.list_tasks(client_id)
    except StorageError as e:
        raise storage_failure("fetch tasks", e)

    return {
        "pending": [t for t in tasks if t.get("status") != TaskStatus.COMPLETE.value],
        "completed": [t for t in tasks if t.get("status") == TaskStatus.COMPLETE.value],
    }


@router.post("/tasks")
async def create_task(
    client_id: str,
    request: TaskCreateRequest,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    get_owned_client(store, user, client_id)
    try:
        task = store.create_task(client_id, {
            "title": request.title,
            "description": request.description,
            "due_date": request.due_date,
            "priority": request.priority.value,
            "status": TaskStatus.PENDING.value,
            "requested_by": user.get("email"),
        })
    except StorageError as e:
        raise storage_failure("create task", e)

    logger.info(f"[Portal] Task '{request.title}' requested from client {client_id}")
    return {"task": task}


@router.post("/tasks/{task_id}/complete")
async def complete_task(
    client_id: str,
    task_id: str,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    get_owned_client(store, user, client_id)
    try:
        task = store.update_task(client_id, task_id, {
            "status": TaskStatus.COMPLETE.value,
            "completed_at": datetime.utcnow().isoformat(),
        })
    except StorageError as e:
        raise storage_failure("complete task", e)

    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return {"task": task}


# =============================================================================
# MESSAGES
# =============================================================================

@router.get("/messages")
async def list_messages(
    client_id: str,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    get_owned_client(store, user, client_id)
    try:
        messages = store.list_messages(client_id)
    except StorageError as e:
        raise storage_failure("fetch messages", e)

    messages = [{**m, "preview": preview(m.get("body"))} for m in messages]
    return {
        "messages": messages,
        "unread": len([m for m in messages if m.get("unread")]),
    }


@router.post("/messages")
async def send_message(
    client_id: str,
    request: MessageCreateRequest,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    get_owned_client(store, user, client_id)
    try:
        message = store.create_message(client_id, {
            "from": user.get("email") or "Your CPA team",
            "subject": request.subject,
            "body": request.body,
            "unread": True,
        })
    except StorageError as e:
        raise storage_failure("send message", e)
    return {"message": message}


@router.post("/messages/{message_id}/read")
async def mark_message_read(
    client_id: str,
    message_id: str,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    get_owned_client(store, user, client_id)
    try:
        message = store.update_message(client_id, message_id, {"unread": False})
    except StorageError as e:
        raise storage_failure("update message", e)

    if not message:
        raise HTTPException(status_code=404, detail="Message not found")
    return {"message": message}
