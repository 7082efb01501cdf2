"""
Portal Storage

Interchangeable implementations of the portal's CRUD surface:

- SupabaseTableStore: direct queries against one Supabase table per entity.
- KVStore: every entity in a single key/value table, listed by key prefix.
  Runs on Supabase (SupabaseKV) or in process (MemoryKV) for local development.

All client access is owner-scoped (created_by == owner), mirroring the
row-level security policies on the hosted database. Missing rows come back as
None; backend failures are raised as StorageError.
"""

import os
import copy
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from portal.supabase_client import get_supabase, DOCUMENTS_BUCKET

logger = logging.getLogger(__name__)

BACKENDS = ("table", "kv", "memory")
STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "table")
KV_TABLE = os.environ.get("KV_TABLE", "kv_store")

SETTINGS_KEY = "app:settings"


class StorageError(Exception):
    """A storage backend call failed."""


def _now() -> str:
    return datetime.utcnow().isoformat()


def _newest_first(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(rows, key=lambda r: r.get("created_at") or "", reverse=True)


# =============================================================================
# FILE STORAGE
# =============================================================================

class SupabaseFiles:
    """Uploaded documents in a Supabase storage bucket."""

    def __init__(self, supabase, bucket: str = DOCUMENTS_BUCKET):
        self.supabase = supabase
        self.bucket = bucket

    def upload(self, path: str, content: bytes, content_type: Optional[str] = None) -> str:
        options = {"upsert": "true"}
        if content_type:
            options["content-type"] = content_type
        try:
            self.supabase.storage.from_(self.bucket).upload(path, content, options)
        except Exception as e:
            logger.error(f"[Storage] Upload of {path} to {self.bucket} failed: {e}")
            raise StorageError(f"Failed to upload document: {e}")
        return path


class MemoryFiles:
    def __init__(self):
        self.files: Dict[str, bytes] = {}

    def upload(self, path: str, content: bytes, content_type: Optional[str] = None) -> str:
        self.files[path] = content
        return path


# =============================================================================
# STORE INTERFACE
# =============================================================================

class PortalStore:
    """CRUD surface shared by every backend."""

    files = None

    # Clients
    def list_clients(self, owner_id: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def get_client(self, owner_id: str, client_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def create_client(self, owner_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def update_client(self, owner_id: str, client_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def delete_client(self, owner_id: str, client_id: str) -> bool:
        raise NotImplementedError

    # Onboarding responses
    def get_onboarding(self, client_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def upsert_onboarding(self, client_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    # Documents
    def add_document(self, record: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def list_documents(self, client_id: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def upload_file(self, path: str, content: bytes, content_type: Optional[str] = None) -> str:
        return self.files.upload(path, content, content_type)

    # Settings
    def get_settings(self) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def save_settings(self, settings: Dict[str, Any], user_id: str) -> None:
        raise NotImplementedError

    # Setup checklist and billing sheet, one JSON document per client
    def get_setup(self, client_id: str) -> Optional[List[Dict[str, Any]]]:
        raise NotImplementedError

    def save_setup(self, client_id: str, steps: List[Dict[str, Any]]) -> None:
        raise NotImplementedError

    def get_billing(self, client_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def save_billing(self, client_id: str, sheet: Dict[str, Any]) -> None:
        raise NotImplementedError

    # Client portal
    def list_tasks(self, client_id: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def create_task(self, client_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def update_task(self, client_id: str, task_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def list_messages(self, client_id: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def create_message(self, client_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def update_message(self, client_id: str, message_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def ping(self) -> bool:
        raise NotImplementedError


# =============================================================================
# TABLE BACKEND
# =============================================================================

class SupabaseTableStore(PortalStore):
    """One table per entity, queried directly."""

    def __init__(self, supabase, files=None):
        self.supabase = supabase
        self.files = files or SupabaseFiles(supabase)

    def _run(self, action: str, query) -> List[Dict[str, Any]]:
        try:
            result = query.execute()
        except Exception as e:
            logger.error(f"[Storage] Error {action}: {e}")
            raise StorageError(f"Failed {action}")
        return result.data or []

    def _first(self, action: str, query) -> Optional[Dict[str, Any]]:
        rows = self._run(action, query)
        return rows[0] if rows else None

    # Clients

    def list_clients(self, owner_id):
        return self._run(
            "fetching clients",
            self.supabase.table("clients").select("*")
            .eq("created_by", owner_id)
            .order("created_at", desc=True),
        )

    def get_client(self, owner_id, client_id):
        return self._first(
            "fetching client",
            self.supabase.table("clients").select("*")
            .eq("id", client_id)
            .eq("created_by", owner_id)
            .limit(1),
        )

    def create_client(self, owner_id, record):
        payload = {"id": str(uuid4()), **record, "created_by": owner_id, "created_at": _now()}
        created = self._first("creating client", self.supabase.table("clients").insert(payload))
        return created or payload

    def update_client(self, owner_id, client_id, updates):
        return self._first(
            "updating client",
            self.supabase.table("clients").update(updates)
            .eq("id", client_id)
            .eq("created_by", owner_id),
        )

    def delete_client(self, owner_id, client_id):
        deleted = self._run(
            "deleting client",
            self.supabase.table("clients").delete()
            .eq("id", client_id)
            .eq("created_by", owner_id),
        )
        return bool(deleted)

    # Onboarding responses

    def get_onboarding(self, client_id):
        return self._first(
            "fetching onboarding response",
            self.supabase.table("onboarding_responses").select("*").eq("client_id", client_id).limit(1),
        )

    def upsert_onboarding(self, client_id, record):
        payload = {**record, "client_id": client_id}
        saved = self._first(
            "saving onboarding response",
            self.supabase.table("onboarding_responses").upsert(payload, on_conflict="client_id"),
        )
        return saved or payload

    # Documents

    def add_document(self, record):
        payload = {"id": str(uuid4()), **record, "created_at": _now()}
        saved = self._first("saving document metadata", self.supabase.table("documents").insert(payload))
        return saved or payload

    def list_documents(self, client_id):
        return self._run(
            "fetching documents",
            self.supabase.table("documents").select("*").eq("client_id", client_id).order("created_at"),
        )

    # Settings

    def get_settings(self):
        row = self._first(
            "fetching settings",
            self.supabase.table("app_settings").select("*").eq("setting_key", SETTINGS_KEY).limit(1),
        )
        return row.get("setting_value") if row else None

    def save_settings(self, settings, user_id):
        self._run(
            "saving settings",
            self.supabase.table("app_settings").upsert(
                {"setting_key": SETTINGS_KEY, "setting_value": settings, "updated_by": user_id},
                on_conflict="setting_key",
            ),
        )

    # Setup checklist / billing

    def get_setup(self, client_id):
        row = self._first(
            "fetching setup checklist",
            self.supabase.table("client_setup").select("*").eq("client_id", client_id).limit(1),
        )
        return row.get("steps") if row else None

    def save_setup(self, client_id, steps):
        self._run(
            "saving setup checklist",
            self.supabase.table("client_setup").upsert(
                {"client_id": client_id, "steps": steps, "updated_at": _now()},
                on_conflict="client_id",
            ),
        )

    def get_billing(self, client_id):
        row = self._first(
            "fetching billing sheet",
            self.supabase.table("billing_sheets").select("*").eq("client_id", client_id).limit(1),
        )
        return row.get("sheet") if row else None

    def save_billing(self, client_id, sheet):
        self._run(
            "saving billing sheet",
            self.supabase.table("billing_sheets").upsert(
                {"client_id": client_id, "sheet": sheet, "updated_at": _now()},
                on_conflict="client_id",
            ),
        )

    # Client portal

    def list_tasks(self, client_id):
        return self._run(
            "fetching tasks",
            self.supabase.table("portal_tasks").select("*").eq("client_id", client_id).order("due_date"),
        )

    def create_task(self, client_id, record):
        payload = {"id": str(uuid4()), **record, "client_id": client_id, "created_at": _now()}
        saved = self._first("creating task", self.supabase.table("portal_tasks").insert(payload))
        return saved or payload

    def update_task(self, client_id, task_id, updates):
        return self._first(
            "updating task",
            self.supabase.table("portal_tasks").update(updates).eq("id", task_id).eq("client_id", client_id),
        )

    def list_messages(self, client_id):
        return self._run(
            "fetching messages",
            self.supabase.table("portal_messages").select("*")
            .eq("client_id", client_id)
            .order("created_at", desc=True),
        )

    def create_message(self, client_id, record):
        payload = {"id": str(uuid4()), **record, "client_id": client_id, "created_at": _now()}
        saved = self._first("creating message", self.supabase.table("portal_messages").insert(payload))
        return saved or payload

    def update_message(self, client_id, message_id, updates):
        return self._first(
            "updating message",
            self.supabase.table("portal_messages").update(updates).eq("id", message_id).eq("client_id", client_id),
        )

    def ping(self):
        self._run("checking database", self.supabase.table("clients").select("id").limit(1))
        return True


# =============================================================================
# KEY-VALUE BACKEND
# =============================================================================

class SupabaseKV:
    """Key/value rows (key text primary key, value jsonb) in a single Supabase table."""

    def __init__(self, supabase, table: str = KV_TABLE):
        self.supabase = supabase
        self.table = table

    def _execute(self, action: str, query) -> List[Dict[str, Any]]:
        try:
            return query.execute().data or []
        except Exception as e:
            logger.error(f"[KV] Error {action}: {e}")
            raise StorageError(f"Failed {action}")

    def get(self, key: str) -> Optional[Any]:
        rows = self._execute(f"reading {key}", self.supabase.table(self.table).select("value").eq("key", key).limit(1))
        return rows[0]["value"] if rows else None

    def set(self, key: str, value: Any) -> None:
        self._execute(f"writing {key}", self.supabase.table(self.table).upsert({"key": key, "value": value}))

    def delete(self, key: str) -> None:
        self._execute(f"deleting {key}", self.supabase.table(self.table).delete().eq("key", key))

    def scan(self, prefix: str) -> List[Any]:
        rows = self._execute(
            f"scanning {prefix}",
            self.supabase.table(self.table).select("key, value").like("key", f"{prefix}%"),
        )
        return [row["value"] for row in rows]


class MemoryKV:
    """In-process key/value map with the same interface as SupabaseKV."""

    def __init__(self):
        self.data: Dict[str, Any] = {}

    def get(self, key):
        return copy.deepcopy(self.data.get(key))

    def set(self, key, value):
        self.data[key] = copy.deepcopy(value)

    def delete(self, key):
        self.data.pop(key, None)

    def scan(self, prefix):
        return [copy.deepcopy(value) for key, value in sorted(self.data.items()) if key.startswith(prefix)]


class KVStore(PortalStore):
    """
    Every entity stored under a prefixed key:

        client:<owner>:<id>        onboarding:<client_id>
        document:<client_id>:<id>  setup:<client_id>
        billing:<client_id>        task:<client_id>:<id>
        message:<client_id>:<id>   settings:app
    """

    def __init__(self, kv, files=None):
        self.kv = kv
        self.files = files or MemoryFiles()

    def _update(self, key: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        current = self.kv.get(key)
        if current is None:
            return None
        updated = {**current, **updates}
        self.kv.set(key, updated)
        return updated

    # Clients

    def list_clients(self, owner_id):
        return _newest_first(self.kv.scan(f"client:{owner_id}:"))

    def get_client(self, owner_id, client_id):
        return self.kv.get(f"client:{owner_id}:{client_id}")

    def create_client(self, owner_id, record):
        client = {"id": str(uuid4()), **record, "created_by": owner_id, "created_at": _now()}
        self.kv.set(f"client:{owner_id}:{client['id']}", client)
        return client

    def update_client(self, owner_id, client_id, updates):
        return self._update(f"client:{owner_id}:{client_id}", updates)

    def delete_client(self, owner_id, client_id):
        key = f"client:{owner_id}:{client_id}"
        if self.kv.get(key) is None:
            return False
        self.kv.delete(key)
        return True

    # Onboarding responses

    def get_onboarding(self, client_id):
        return self.kv.get(f"onboarding:{client_id}")

    def upsert_onboarding(self, client_id, record):
        payload = {**record, "client_id": client_id}
        self.kv.set(f"onboarding:{client_id}", payload)
        return payload

    # Documents

    def add_document(self, record):
        document = {"id": str(uuid4()), **record, "created_at": _now()}
        self.kv.set(f"document:{document['client_id']}:{document['id']}", document)
        return document

    def list_documents(self, client_id):
        return sorted(self.kv.scan(f"document:{client_id}:"), key=lambda d: d.get("created_at") or "")

    # Settings

    def get_settings(self):
        row = self.kv.get("settings:app")
        return row.get("setting_value") if row else None

    def save_settings(self, settings, user_id):
        self.kv.set("settings:app", {"setting_value": settings, "updated_by": user_id, "updated_at": _now()})

    # Setup checklist / billing

    def get_setup(self, client_id):
        return self.kv.get(f"setup:{client_id}")

    def save_setup(self, client_id, steps):
        self.kv.set(f"setup:{client_id}", steps)

    def get_billing(self, client_id):
        return self.kv.get(f"billing:{client_id}")

    def save_billing(self, client_id, sheet):
        self.kv.set(f"billing:{client_id}", sheet)

    # Client portal

    def list_tasks(self, client_id):
        return sorted(self.kv.scan(f"task:{client_id}:"), key=lambda t: t.get("due_date") or "")

    def create_task(self, client_id, record):
        task = {"id": str(uuid4()), **record, "client_id": client_id, "created_at": _now()}
        self.kv.set(f"task:{client_id}:{task['id']}", task)
        return task

    def update_task(self, client_id, task_id, updates):
        return self._update(f"task:{client_id}:{task_id}", updates)

    def list_messages(self, client_id):
        return _newest_first(self.kv.scan(f"message:{client_id}:"))

    def create_message(self, client_id, record):
        message = {"id": str(uuid4()), **record, "client_id": client_id, "created_at": _now()}
        self.kv.set(f"message:{client_id}:{message['id']}", message)
        return message

    def update_message(self, client_id, message_id, updates):
        return self._update(f"message:{client_id}:{message_id}", updates)

    def ping(self):
        self.kv.get("settings:app")
        return True


# =============================================================================
# FACTORY
# =============================================================================

_memory_store: Optional[KVStore] = None


def check_storage_backend(backend: str) -> str:
    if backend not in BACKENDS:
        raise ValueError(f"Unknown STORAGE_BACKEND '{backend}'. Expected one of: {', '.join(BACKENDS)}")
    return backend


def build_store(backend: str = STORAGE_BACKEND) -> Optional[PortalStore]:
    """
    Build the configured store. Returns None when the backend needs Supabase
    and it is not configured; raises ValueError for an unknown backend.
    """
    global _memory_store

    check_storage_backend(backend)

    if backend == "memory":
        # One shared instance so data survives across requests
        if _memory_store is None:
            logger.info("[Storage] Using in-memory store; data is lost on restart")
            _memory_store = KVStore(MemoryKV())
        return _memory_store

    supabase = get_supabase()
    if not supabase:
        return None

    if backend == "kv":
        return KVStore(SupabaseKV(supabase), files=SupabaseFiles(supabase))
    return SupabaseTableStore(supabase)
