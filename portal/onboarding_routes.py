"""
Onboarding Routes for the Prospective-Client Intake Wizard

The caller keeps the wizard draft and sends it with every action. Once a
client exists, its saved progress decides the step, the documents and every
action-owned field; the draft only supplies free-form answers. Each action is
validated and applied by the onboarding engine, then saved: the client row
is created on the first contact-info save and the onboarding response is
upserted on every change after that.
"""

import time
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form
from pydantic import BaseModel, Field

from portal import onboarding_engine as engine
from portal import settings as workflow_settings
from portal.auth import get_current_user
from portal.billing_engine import default_sheet
from portal.catalog import ClientStatus, ClientType, documents_for, services_for
from portal.onboarding_engine import WizardError, WizardState
from portal.router_utils import get_owned_client, get_store, storage_failure
from portal.storage import PortalStore, StorageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/onboarding", tags=["onboarding"])


# ============================================================================
# Pydantic Models
# ============================================================================

class StateRequest(BaseModel):
    state: WizardState = Field(default_factory=WizardState)


class UpdateRequest(StateRequest):
    updates: Dict[str, Any]


class SelectTypeRequest(StateRequest):
    client_type: ClientType


class PoaRequest(StateRequest):
    grant: bool
    signature: Optional[str] = None


class SignEngagementRequest(StateRequest):
    selected_services: List[str]
    agreed_to_terms: bool = False
    signature: Optional[str] = None


class PaymentRequest(StateRequest):
    payment_method: str


# ============================================================================
# Helper Functions
# ============================================================================

def persist(store: PortalStore, user: dict, state: WizardState) -> WizardState:
    """
    Save the wizard state.
    Nothing is written until the contact section has been completed; that first
    save creates the client. Client and onboarding writes are independent.
    """
    if not state.client_id:
        if not engine.contact_saved(state):
            return state

        client = store.create_client(user["id"], {
            "name": state.data.contact_info.name,
            "type": state.data.client_type or ClientType.INDIVIDUAL.value,
            "status": ClientStatus.NEW.value,
            "setup_progress": 0,
            "assigned_to": None,
            "onboarded_date": datetime.utcnow().isoformat(),
        })
        logger.info(f"[Onboarding] Created client {client['id']} for {user.get('email')}")
        state = state.model_copy(deep=True)
        state.client_id = client["id"]
    else:
        client = get_owned_client(store, user, state.client_id)
        _sync_client(store, user, client, state)

    store.upsert_onboarding(state.client_id, engine.state_to_record(state))

    if engine.is_complete(state):
        _seed_billing(store, state)

    return state


def load_trusted_state(store: PortalStore, user: dict, submitted: WizardState) -> WizardState:
    """Merge the submitted draft over the saved progress for its client."""
    stored = None
    if submitted.client_id:
        get_owned_client(store, user, submitted.client_id)
        try:
            record = store.get_onboarding(submitted.client_id)
        except StorageError as e:
            raise storage_failure("load onboarding record", e)
        if record:
            stored = engine.record_to_state(record)
            stored.client_id = submitted.client_id
    return engine.merge_submitted(submitted, stored)


def _sync_client(store: PortalStore, user: dict, client: Dict[str, Any], state: WizardState):
    """Carry name and type changes from the wizard onto the client row."""
    changes = {}
    name = state.data.contact_info.name.strip()
    if name and name != client.get("name"):
        changes["name"] = name
    if state.data.client_type and state.data.client_type != client.get("type"):
        changes["type"] = state.data.client_type
    if changes:
        store.update_client(user["id"], state.client_id, changes)
        logger.info(f"[Onboarding] Client {state.client_id} updated from wizard: {', '.join(sorted(changes))}")


def _seed_billing(store: PortalStore, state: WizardState):
    """Create the billing sheet from the engagement selection when automation is on."""
    stored = workflow_settings.load_settings(store)
    if not workflow_settings.workflow_enabled(stored, "autoCreateBillingEntry"):
        return
    if store.get_billing(state.client_id):
        return
    sheet = default_sheet(state.data.client_type, state.data.selected_services)
    store.save_billing(state.client_id, sheet.model_dump())
    logger.info(f"[Onboarding] Billing entry created for client {state.client_id}")


def _wizard_error(e: WizardError) -> HTTPException:
    return HTTPException(status_code=400, detail={"message": e.message, "missing": e.missing})


def _transition(store: PortalStore, user: dict, state: WizardState, action, *args) -> Dict[str, Any]:
    try:
        state = load_trusted_state(store, user, state)
        updated = action(state, *args)
    except WizardError as e:
        raise _wizard_error(e)

    try:
        updated = persist(store, user, updated)
    except StorageError as e:
        raise storage_failure("save onboarding progress", e)

    return engine.describe(updated)


# ============================================================================
# Wizard Endpoints
# ============================================================================

@router.get("/catalog/{client_type}")
async def get_catalog(client_type: ClientType):
    """Documents requested and services offered for a client type."""
    return {
        "client_type": client_type.value,
        "documents": [d.model_dump() for d in documents_for(client_type)],
        "services": [s.model_dump() for s in services_for(client_type)],
    }


@router.post("/start")
async def start_onboarding(user: dict = Depends(get_current_user)):
    """Fresh wizard state positioned on the client-type screen."""
    return engine.describe(engine.new_state())


@router.post("/update")
async def update_onboarding(
    request: UpdateRequest,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    return _transition(store, user, request.state, engine.apply_updates, request.updates)


@router.post("/select-type")
async def select_type(
    request: SelectTypeRequest,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    return _transition(store, user, request.state, engine.select_client_type, request.client_type)


@router.post("/next")
async def next_step(
    request: StateRequest,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    return _transition(store, user, request.state, engine.next_step)


@router.post("/back")
async def previous_step(
    request: StateRequest,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    return _transition(store, user, request.state, engine.prev_step)


@router.post("/poa")
async def power_of_attorney(
    request: PoaRequest,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    return _transition(store, user, request.state, engine.grant_poa, request.grant, request.signature)


@router.post("/engagement/sign")
async def sign_engagement(
    request: SignEngagementRequest,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    return _transition(
        store, user, request.state, engine.sign_engagement,
        request.selected_services, request.agreed_to_terms, request.signature,
    )


@router.post("/engagement/payment")
async def add_payment_method(
    request: PaymentRequest,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    return _transition(store, user, request.state, engine.complete_payment, request.payment_method)


@router.post("/documents")
async def upload_document(
    client_id: str = Form(...),
    doc_id: str = Form(...),
    file: UploadFile = File(...),
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    """
    Upload one requested document.
    Stores the file, records its metadata and marks it uploaded on the client's
    onboarding record.
    """
    client = get_owned_client(store, user, client_id)

    try:
        record = store.get_onboarding(client_id)
    except StorageError as e:
        raise storage_failure("load onboarding record", e)

    state = engine.record_to_state(record) if record else WizardState(client_id=client_id)
    if not state.data.client_type:
        state.data.client_type = client.get("type")

    filename = file.filename or doc_id
    try:
        state = engine.mark_document_uploaded(state, doc_id, filename)
    except WizardError as e:
        raise _wizard_error(e)

    contents = await file.read()
    if not contents:
        raise HTTPException(status_code=400, detail="File is empty")

    file_ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
    path = f"{client_id}/{doc_id}-{int(time.time() * 1000)}.{file_ext}"
    required = {d.id: d.required for d in documents_for(state.data.client_type)}

    try:
        store.upload_file(path, contents, file.content_type)
        document = store.add_document({
            "client_id": client_id,
            "document_type": doc_id,
            "document_category": state.data.client_type,
            "file_name": filename,
            "file_path": path,
            "file_size": len(contents),
            "file_type": file_ext,
            "is_required": required.get(doc_id, False),
        })
        store.upsert_onboarding(client_id, engine.state_to_record(state))
    except StorageError as e:
        raise storage_failure("upload document", e)

    logger.info(f"[Onboarding] {filename} uploaded for client {client_id} as {doc_id}")
    return {**engine.describe(state), "document": document}


@router.get("/{client_id}")
async def resume_onboarding(
    client_id: str,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    """Rebuild the wizard state from the saved onboarding record."""
    get_owned_client(store, user, client_id)
    try:
        record = store.get_onboarding(client_id)
    except StorageError as e:
        raise storage_failure("load onboarding record", e)
    if not record:
        raise HTTPException(status_code=404, detail="No onboarding record for this client")
    return engine.describe(engine.record_to_state(record))
