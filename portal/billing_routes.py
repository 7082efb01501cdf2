"""
Billing Routes - Fee Builder

Per-client fee sheet, draft invoice export and fee-confirmation proposal.
Both outbound actions are held while a large discount awaits partner approval.
"""

import io
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field, ValidationError

from portal import billing_engine
from portal import settings as workflow_settings
from portal.auth import get_current_user
from portal.billing_engine import BillingError, FeeSheet
from portal.catalog import ClientStatus
from portal.invoice_generator import generate_invoice
from portal.router_utils import get_owned_client, get_store, storage_failure
from portal.storage import PortalStore, StorageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/clients/{client_id}/billing", tags=["billing"])


class FeeSheetUpdate(BaseModel):
    services: Optional[List[billing_engine.ServiceLine]] = None
    adjustments: Optional[billing_engine.Adjustments] = None
    prior_year_fee: Optional[float] = Field(default=None, ge=0)
    approval_confirmed: Optional[bool] = None


class LineUpdate(BaseModel):
    name: Optional[str] = None
    price_per_form: Optional[float] = Field(default=None, ge=0)
    form_count: Optional[int] = Field(default=None, ge=0)
    complexity: Optional[str] = None


def load_sheet(store: PortalStore, client: Dict[str, Any]) -> FeeSheet:
    """Saved fee sheet, or a default one seeded from the engagement selection."""
    saved = store.get_billing(client["id"])
    if saved:
        return FeeSheet(**saved)

    onboarding = store.get_onboarding(client["id"]) or {}
    return billing_engine.default_sheet(client.get("type"), onboarding.get("selected_services"))


def _response(client: Dict[str, Any], sheet: FeeSheet) -> Dict[str, Any]:
    return {
        "client": client,
        "sheet": sheet.model_dump(),
        "summary": billing_engine.summarize(sheet),
    }


@router.get("")
async def get_billing(
    client_id: str,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    client = get_owned_client(store, user, client_id)
    try:
        sheet = load_sheet(store, client)
    except StorageError as e:
        raise storage_failure("load fee sheet", e)
    return _response(client, sheet)


@router.put("")
async def update_billing(
    client_id: str,
    request: FeeSheetUpdate,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    client = get_owned_client(store, user, client_id)
    try:
        sheet = load_sheet(store, client)
        merged = {**sheet.model_dump(), **request.model_dump(exclude_unset=True)}
        sheet = billing_engine.validate_sheet(FeeSheet(**merged))
        store.save_billing(client_id, sheet.model_dump())
    except (BillingError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        raise storage_failure("save fee sheet", e)
    return _response(client, sheet)


@router.put("/lines/{line_id}")
async def update_line(
    client_id: str,
    line_id: str,
    request: LineUpdate,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    """Change one line item; its subtotal is recomputed from price and count."""
    client = get_owned_client(store, user, client_id)
    try:
        sheet = load_sheet(store, client)
        sheet = billing_engine.update_line(sheet, line_id, request.model_dump(exclude_unset=True))
        store.save_billing(client_id, sheet.model_dump())
    except (BillingError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        raise storage_failure("save fee sheet", e)
    return _response(client, sheet)


@router.post("/invoice")
async def generate_draft_invoice(
    client_id: str,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    """Draft invoice workbook. Marks the client's engagement complete."""
    client = get_owned_client(store, user, client_id)
    try:
        sheet = load_sheet(store, client)
        billing_engine.ensure_actionable(sheet)

        stored_settings = workflow_settings.load_settings(store)
        company_name = workflow_settings.with_defaults(stored_settings).get("companyName")
        content = generate_invoice(client, sheet, company_name)

        sheet.invoice_generated_at = datetime.utcnow().isoformat()
        store.save_billing(client_id, sheet.model_dump())
        store.update_client(user["id"], client_id, {"status": ClientStatus.COMPLETE.value})
    except BillingError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StorageError as e:
        raise storage_failure("generate invoice", e)

    filename = f"draft_invoice_{client_id}.xlsx"
    return StreamingResponse(
        io.BytesIO(content),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/proposal")
async def send_fee_proposal(
    client_id: str,
    user: dict = Depends(get_current_user),
    store: PortalStore = Depends(get_store),
):
    """Post a fee confirmation to the client's portal inbox."""
    client = get_owned_client(store, user, client_id)
    try:
        sheet = load_sheet(store, client)
        billing_engine.ensure_actionable(sheet)
        summary = billing_engine.summarize(sheet)

        message = store.create_message(client_id, {
            "from": user.get("email") or "Your CPA team",
            "subject": "Fee confirmation",
            "body": (
                f"Your engagement fee has been confirmed at ${summary['total']:,.2f}. "
                "Reply here with any questions."
            ),
            "unread": True,
        })
        sheet.proposal_sent_at = datetime.utcnow().isoformat()
        store.save_billing(client_id, sheet.model_dump())
    except BillingError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StorageError as e:
        raise storage_failure("send fee proposal", e)

    logger.info(f"Fee proposal sent to client {client_id}: {summary['total']}")
    return {"success": True, "message": message, "summary": summary}
