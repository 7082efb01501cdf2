"""
Client Onboarding Wizard Engine
===============================
Six ordered steps (client type -> information -> documents -> authorization ->
engagement & billing -> welcome) over a single mutable intake record.

Transitions are pure: every operation takes a WizardState and returns a new one,
raising WizardError when the current step's required fields are not satisfied.
Persistence is left to the routes.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from portal.catalog import ClientType, documents_for, services_for

logger = logging.getLogger(__name__)

# =============================================================================
# STEPS
# =============================================================================

STEPS: List[Dict[str, Any]] = [
    {"id": 1, "key": "client_type", "name": "Client Type"},
    {"id": 2, "key": "information", "name": "Your Information"},
    {"id": 3, "key": "documents", "name": "Documents"},
    {"id": 4, "key": "authorization", "name": "Authorization"},
    {"id": 5, "key": "engagement", "name": "Engagement & Billing"},
    {"id": 6, "key": "welcome", "name": "Welcome"},
]

FIRST_STEP = 1
LAST_STEP = len(STEPS)

STEP_CLIENT_TYPE = 1
STEP_INFORMATION = 2
STEP_DOCUMENTS = 3
STEP_AUTHORIZATION = 4
STEP_ENGAGEMENT = 5
STEP_WELCOME = 6

# Sub-sections of the information step
SECTION_CONTACT = "contact"
SECTION_SCREENING = "screening"
SECTION_SPECIFIC = "specific"

REQUIRED_CONTACT_FIELDS = ["name", "email", "phone", "address"]

PAYMENT_METHODS = ["card", "ach"]

# Only changed through their own actions, never through a free-form update
PROTECTED_FIELDS = {"client_type", "poa_granted", "engagement_signed", "estimated_fee", "payment_method"}

# Nested objects merged field by field on update
MERGED_FIELDS = {"contact_info", "screening", "business_info", "trust_info", "nonprofit_info", "documents"}


class WizardError(Exception):
    """Raised when a transition is not allowed from the current state."""

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.missing = missing or []


# =============================================================================
# INTAKE RECORD
# =============================================================================

class ContactInfo(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    filing_status: Optional[str] = None
    preferred_contact: str = "email"
    referral_source: str = ""


class Screening(BaseModel):
    delinquent_returns: bool = False
    irs_notices: bool = False
    bankruptcies: bool = False
    prior_accountant_issues: str = ""


class BusinessInfo(BaseModel):
    entity_type: str = ""
    year_formed: str = ""
    bookkeeping_needs: bool = False
    payroll_needs: bool = False
    sales_tax_needs: bool = False
    needs_1099_prep: bool = False


class Beneficiary(BaseModel):
    name: str = ""
    address: str = ""
    ssn: str = ""


class TrustInfo(BaseModel):
    trust_type: str = ""
    year_established: str = ""
    beneficiaries: List[Beneficiary] = Field(default_factory=list)


class BoardMember(BaseModel):
    name: str = ""
    role: str = ""


class NonprofitInfo(BaseModel):
    has_501c3: bool = False
    board_members: List[BoardMember] = Field(default_factory=list)
    typical_revenue: str = ""


class DocumentFlag(BaseModel):
    uploaded: bool = False
    file_name: Optional[str] = None


class OnboardingData(BaseModel):
    """Every answer collected by the wizard."""
    client_type: Optional[ClientType] = None
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    screening: Screening = Field(default_factory=Screening)
    business_info: Optional[BusinessInfo] = None
    trust_info: Optional[TrustInfo] = None
    nonprofit_info: Optional[NonprofitInfo] = None
    documents: Dict[str, DocumentFlag] = Field(default_factory=dict)
    poa_granted: bool = False
    engagement_signed: bool = False
    selected_services: List[str] = Field(default_factory=list)
    estimated_fee: float = 0
    payment_method: Optional[Literal["card", "ach"]] = None

    model_config = ConfigDict(use_enum_values=True)


class WizardState(BaseModel):
    """Position in the wizard plus the record being filled in."""
    current_step: int = Field(default=FIRST_STEP, ge=FIRST_STEP, le=LAST_STEP)
    section: Optional[str] = None
    awaiting_payment: bool = False
    client_id: Optional[str] = None
    data: OnboardingData = Field(default_factory=OnboardingData)


def new_state() -> WizardState:
    return WizardState()


def step_key(step: int) -> str:
    return STEPS[step - 1]["key"]


# =============================================================================
# VALIDATION
# =============================================================================

def _has_specific_section(state: WizardState) -> bool:
    return state.data.client_type not in (None, ClientType.INDIVIDUAL.value)


def get_missing_fields(state: WizardState) -> List[str]:
    """Required fields still missing before the current step (or section) can be left."""
    data = state.data
    step = state.current_step

    if step == STEP_CLIENT_TYPE:
        return [] if data.client_type else ["client_type"]

    if step == STEP_INFORMATION:
        if state.section in (None, SECTION_CONTACT):
            contact = data.contact_info.model_dump()
            return [f for f in REQUIRED_CONTACT_FIELDS if not str(contact.get(f) or "").strip()]
        return []

    if step == STEP_DOCUMENTS:
        return [
            doc.id for doc in documents_for(data.client_type)
            if doc.required and not (data.documents.get(doc.id) and data.documents[doc.id].uploaded)
        ]

    if step == STEP_ENGAGEMENT:
        if not data.engagement_signed:
            return ["engagement_signed"]
        if not data.payment_method:
            return ["payment_method"]
        return []

    return []


def can_proceed(state: WizardState) -> bool:
    return not get_missing_fields(state)


def document_progress(state: WizardState) -> Dict[str, Any]:
    """Uploaded vs. required documents for the client type."""
    requested = documents_for(state.data.client_type)
    required = [doc for doc in requested if doc.required]
    uploaded = [
        doc for doc in required
        if state.data.documents.get(doc.id) and state.data.documents[doc.id].uploaded
    ]
    percent = (len(uploaded) / len(required)) * 100 if required else 0
    return {
        "uploaded": len(uploaded),
        "required": len(required),
        "percent": round(percent, 1),
    }


# =============================================================================
# TRANSITIONS
# =============================================================================

def apply_updates(state: WizardState, updates: Dict[str, Any]) -> WizardState:
    """
    Merge a partial update into the intake record.
    Nested sub-objects are merged field by field, lists and scalars replaced.
    """
    unknown = [k for k in updates if k not in OnboardingData.model_fields]
    if unknown:
        raise WizardError(f"Unknown fields: {', '.join(sorted(unknown))}")

    protected = [k for k in updates if k in PROTECTED_FIELDS]
    if protected:
        raise WizardError(f"Fields can only be changed by their wizard action: {', '.join(sorted(protected))}")

    merged = state.data.model_dump()
    for key, value in updates.items():
        if key in MERGED_FIELDS and isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value

    try:
        data = OnboardingData(**merged)
    except ValidationError as e:
        raise WizardError(f"Invalid onboarding data: {e}")

    updated = state.model_copy(deep=True)
    updated.data = data
    return updated


def merge_submitted(submitted: WizardState, stored: Optional[WizardState]) -> WizardState:
    """
    Combine the caller's draft with what the server has saved.

    The saved state owns the wizard position, the documents and every field an
    action sets; the caller only contributes its free-form answers. Without a
    saved state the caller may not be past the information step.
    """
    if stored is None:
        if submitted.current_step > STEP_INFORMATION:
            raise WizardError(
                f"No saved onboarding progress to continue from {step_key(submitted.current_step)}"
            )
        fresh = OnboardingData()
        merged = submitted.model_copy(deep=True)
        merged.awaiting_payment = False
        merged.data.documents = {}
        for key in PROTECTED_FIELDS - {"client_type"}:
            setattr(merged.data, key, getattr(fresh, key))
        return merged

    merged = stored.model_copy(deep=True)
    answers = submitted.data.model_copy(deep=True)
    for key in OnboardingData.model_fields:
        if key in PROTECTED_FIELDS or key == "documents":
            continue
        setattr(merged.data, key, getattr(answers, key))
    return merged


def select_client_type(state: WizardState, client_type: ClientType) -> WizardState:
    """Choosing a type on the first screen moves straight to the questionnaire."""
    if state.current_step != STEP_CLIENT_TYPE:
        raise WizardError("Client type can only be selected on the first step")

    updated = state.model_copy(deep=True)
    updated.data.client_type = ClientType(client_type).value
    updated.current_step = STEP_INFORMATION
    updated.section = SECTION_CONTACT
    return updated


def next_step(state: WizardState) -> WizardState:
    missing = get_missing_fields(state)
    if missing:
        raise WizardError(
            f"Cannot continue from {step_key(state.current_step)}: missing {', '.join(missing)}",
            missing=missing,
        )

    updated = state.model_copy(deep=True)

    if updated.current_step == STEP_INFORMATION:
        section = updated.section or SECTION_CONTACT
        if section == SECTION_CONTACT:
            updated.section = SECTION_SCREENING
            return updated
        if section == SECTION_SCREENING and _has_specific_section(updated):
            updated.section = SECTION_SPECIFIC
            return updated

    if updated.current_step >= LAST_STEP:
        return updated

    updated.current_step += 1
    updated.section = SECTION_CONTACT if updated.current_step == STEP_INFORMATION else None
    updated.awaiting_payment = False
    return updated


def prev_step(state: WizardState) -> WizardState:
    updated = state.model_copy(deep=True)
    updated.awaiting_payment = False

    if updated.current_step == STEP_INFORMATION:
        if updated.section == SECTION_SPECIFIC:
            updated.section = SECTION_SCREENING
            return updated
        if updated.section == SECTION_SCREENING:
            updated.section = SECTION_CONTACT
            return updated

    if updated.current_step <= FIRST_STEP:
        return updated

    updated.current_step -= 1
    # Re-entering the questionnaire starts again at the contact section
    updated.section = SECTION_CONTACT if updated.current_step == STEP_INFORMATION else None
    return updated


def mark_document_uploaded(state: WizardState, doc_id: str, file_name: str) -> WizardState:
    known = {doc.id for doc in documents_for(state.data.client_type)}
    if doc_id not in known:
        raise WizardError(f"Unknown document '{doc_id}' for client type {state.data.client_type}")

    updated = state.model_copy(deep=True)
    updated.data.documents[doc_id] = DocumentFlag(uploaded=True, file_name=file_name)
    return updated


def grant_poa(state: WizardState, grant: bool, signature: Optional[str]) -> WizardState:
    """Record the power-of-attorney decision and move on. Granting requires a signature."""
    if state.current_step != STEP_AUTHORIZATION:
        raise WizardError("Power of attorney is handled on the authorization step")
    if grant and not (signature or "").strip():
        raise WizardError("A signature is required to grant power of attorney", missing=["signature"])

    updated = state.model_copy(deep=True)
    updated.data.poa_granted = bool(grant)
    updated.current_step = STEP_ENGAGEMENT
    updated.section = None
    return updated


def default_services(state: WizardState) -> List[str]:
    """Current selection, or the recommended services for the client type."""
    if state.data.selected_services:
        return list(state.data.selected_services)
    return [s.id for s in services_for(state.data.client_type) if s.recommended]


def estimate_fee(client_type: Optional[ClientType], service_ids: List[str]) -> float:
    catalog = {s.id: s for s in services_for(client_type)}
    unknown = [sid for sid in service_ids if sid not in catalog]
    if unknown:
        raise WizardError(f"Unknown services for {client_type or 'individual'}: {', '.join(unknown)}")
    return float(sum(catalog[sid].base_fee for sid in service_ids))


def sign_engagement(
    state: WizardState,
    selected_services: List[str],
    agreed_to_terms: bool,
    signature: Optional[str],
) -> WizardState:
    if state.current_step != STEP_ENGAGEMENT:
        raise WizardError("The engagement letter is signed on the engagement step")

    missing = []
    if not selected_services:
        missing.append("selected_services")
    if not agreed_to_terms:
        missing.append("agreed_to_terms")
    if not (signature or "").strip():
        missing.append("signature")
    if missing:
        raise WizardError(f"Cannot sign engagement letter: missing {', '.join(missing)}", missing=missing)

    # Preserve selection order, drop duplicates
    services = list(dict.fromkeys(selected_services))
    fee = estimate_fee(state.data.client_type, services)

    updated = state.model_copy(deep=True)
    updated.data.selected_services = services
    updated.data.estimated_fee = fee
    updated.data.engagement_signed = True
    updated.awaiting_payment = True
    return updated


def complete_payment(state: WizardState, payment_method: str) -> WizardState:
    """Store the billing method (never card details) and move to the welcome screen."""
    if state.current_step != STEP_ENGAGEMENT or not state.data.engagement_signed:
        raise WizardError("Sign the engagement letter before adding a payment method")
    if payment_method not in PAYMENT_METHODS:
        raise WizardError(f"Payment method must be one of {PAYMENT_METHODS}")

    updated = state.model_copy(deep=True)
    updated.data.payment_method = payment_method
    updated.awaiting_payment = False
    updated.current_step = STEP_WELCOME
    return updated


def is_complete(state: WizardState) -> bool:
    return state.current_step == STEP_WELCOME


def contact_saved(state: WizardState) -> bool:
    """True once the contact section has been left with every required field."""
    if state.current_step < STEP_INFORMATION:
        return False
    if state.current_step == STEP_INFORMATION and state.section in (None, SECTION_CONTACT):
        return False
    contact = state.data.contact_info
    return all(str(getattr(contact, f) or "").strip() for f in REQUIRED_CONTACT_FIELDS)


def describe(state: WizardState) -> Dict[str, Any]:
    """State plus the derived values a client needs to render the current step."""
    return {
        "state": state.model_dump(),
        "step": STEPS[state.current_step - 1],
        "steps": STEPS,
        "missing_fields": get_missing_fields(state),
        "can_proceed": can_proceed(state),
        "document_progress": document_progress(state),
        "suggested_services": default_services(state),
        "complete": is_complete(state),
    }


# =============================================================================
# PERSISTENCE MAPPING
# =============================================================================

def state_to_record(state: WizardState) -> Dict[str, Any]:
    """Flatten the wizard state into an onboarding_responses row."""
    data = state.data
    contact = data.contact_info
    screening = data.screening
    return {
        "client_id": state.client_id,
        "client_type": data.client_type,
        "name": contact.name,
        "email": contact.email,
        "phone": contact.phone,
        "address": contact.address,
        "filing_status": contact.filing_status,
        "preferred_contact": contact.preferred_contact,
        "referral_source": contact.referral_source,
        "delinquent_returns": screening.delinquent_returns,
        "irs_notices": screening.irs_notices,
        "bankruptcies": screening.bankruptcies,
        "prior_accountant_issues": screening.prior_accountant_issues,
        "business_info": data.business_info.model_dump() if data.business_info else None,
        "trust_info": data.trust_info.model_dump() if data.trust_info else None,
        "nonprofit_info": data.nonprofit_info.model_dump() if data.nonprofit_info else None,
        "documents": {k: v.model_dump() for k, v in data.documents.items()},
        "poa_granted": data.poa_granted,
        "engagement_signed": data.engagement_signed,
        "selected_services": list(data.selected_services),
        "estimated_fee": data.estimated_fee,
        "payment_method": data.payment_method,
        "completion_step": state.current_step,
        "current_section": state.section,
        "updated_at": datetime.utcnow().isoformat(),
    }


def record_to_state(record: Dict[str, Any]) -> WizardState:
    """Rebuild a wizard state from a stored onboarding_responses row."""
    data = OnboardingData(
        client_type=record.get("client_type"),
        contact_info=ContactInfo(
            name=record.get("name") or "",
            email=record.get("email") or "",
            phone=record.get("phone") or "",
            address=record.get("address") or "",
            filing_status=record.get("filing_status"),
            preferred_contact=record.get("preferred_contact") or "email",
            referral_source=record.get("referral_source") or "",
        ),
        screening=Screening(
            delinquent_returns=bool(record.get("delinquent_returns")),
            irs_notices=bool(record.get("irs_notices")),
            bankruptcies=bool(record.get("bankruptcies")),
            prior_accountant_issues=record.get("prior_accountant_issues") or "",
        ),
        business_info=record.get("business_info"),
        trust_info=record.get("trust_info"),
        nonprofit_info=record.get("nonprofit_info"),
        documents=record.get("documents") or {},
        poa_granted=bool(record.get("poa_granted")),
        engagement_signed=bool(record.get("engagement_signed")),
        selected_services=record.get("selected_services") or [],
        estimated_fee=record.get("estimated_fee") or 0,
        payment_method=record.get("payment_method"),
    )
    step = int(record.get("completion_step") or FIRST_STEP)
    return WizardState(
        current_step=step,
        section=record.get("current_section"),
        awaiting_payment=step == STEP_ENGAGEMENT and data.engagement_signed and not data.payment_method,
        client_id=record.get("client_id"),
        data=data,
    )
