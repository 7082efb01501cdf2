"""
Billing & Fee Recommendation Engine
===================================
Builds a client's fee from per-form line items, applies courtesy discounts and
additional fees, flags discounts that need partner approval, and compares the
result with the prior year's fee.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from portal.catalog import (
    APPROVAL_DISCOUNT_THRESHOLD_PERCENT,
    DEFAULT_BILLING_LINES,
    DEFAULT_PRIOR_YEAR_FEE,
    services_for,
)

logger = logging.getLogger(__name__)

COMPLEXITIES = ["standard", "moderate", "complex"]


class BillingError(Exception):
    pass


class ServiceLine(BaseModel):
    id: str
    name: str
    price_per_form: float = Field(default=0, ge=0)
    form_count: int = Field(default=1, ge=0)
    complexity: str = "standard"

    @property
    def subtotal(self) -> float:
        return self.price_per_form * self.form_count


class Adjustments(BaseModel):
    discount: float = Field(default=0, ge=0)
    discount_reason: str = ""
    additional_fees: float = Field(default=0, ge=0)
    additional_fees_reason: str = ""


class FeeSheet(BaseModel):
    services: List[ServiceLine] = Field(default_factory=list)
    adjustments: Adjustments = Field(default_factory=Adjustments)
    prior_year_fee: float = Field(default=DEFAULT_PRIOR_YEAR_FEE, ge=0)
    approval_confirmed: bool = False
    proposal_sent_at: Optional[str] = None
    invoice_generated_at: Optional[str] = None


def default_sheet(client_type: Optional[str] = None, selected_services: Optional[List[str]] = None) -> FeeSheet:
    """
    Starting fee sheet for a client.
    Uses the services chosen in the engagement letter when there are any.
    """
    if selected_services:
        catalog = {s.id: s for s in services_for(client_type)}
        lines = [
            ServiceLine(id=sid, name=catalog[sid].name, price_per_form=catalog[sid].base_fee, form_count=1)
            for sid in selected_services
            if sid in catalog
        ]
        if lines:
            return FeeSheet(services=lines)
    return FeeSheet(services=[ServiceLine(**line) for line in DEFAULT_BILLING_LINES])


def validate_sheet(sheet: FeeSheet) -> FeeSheet:
    bad = [s.id for s in sheet.services if s.complexity not in COMPLEXITIES]
    if bad:
        raise BillingError(f"Complexity must be one of {COMPLEXITIES} (lines: {', '.join(bad)})")
    ids = [s.id for s in sheet.services]
    if len(ids) != len(set(ids)):
        raise BillingError("Service line ids must be unique")
    return sheet


def update_line(sheet: FeeSheet, line_id: str, changes: Dict[str, Any]) -> FeeSheet:
    """Change one line's price, count, name or complexity; the subtotal follows."""
    allowed = {"name", "price_per_form", "form_count", "complexity"}
    unknown = set(changes) - allowed
    if unknown:
        raise BillingError(f"Cannot change {', '.join(sorted(unknown))}")

    lines = []
    found = False
    for line in sheet.services:
        if line.id == line_id:
            line = ServiceLine(**{**line.model_dump(), **changes})
            found = True
        lines.append(line)
    if not found:
        raise BillingError(f"Unknown service line '{line_id}'")

    updated = sheet.model_copy(deep=True)
    updated.services = lines
    return validate_sheet(updated)


def summarize(sheet: FeeSheet) -> Dict[str, Any]:
    """Totals, discount share, approval gate and prior-year comparison."""
    subtotal = sum(line.subtotal for line in sheet.services)
    adj = sheet.adjustments
    total = subtotal - adj.discount + adj.additional_fees
    discount_percent = (adj.discount / subtotal) * 100 if subtotal > 0 else 0
    approval_needed = discount_percent > APPROVAL_DISCOUNT_THRESHOLD_PERCENT

    prior = sheet.prior_year_fee
    change = total - prior
    change_percent = (change / prior) * 100 if prior > 0 else None

    return {
        "lines": [{**line.model_dump(), "subtotal": line.subtotal} for line in sheet.services],
        "subtotal": subtotal,
        "system_suggested_fee": subtotal,
        "discount": adj.discount,
        "additional_fees": adj.additional_fees,
        "total": total,
        "discount_percent": round(discount_percent, 1),
        "needs_approval": approval_needed,
        "approval_confirmed": sheet.approval_confirmed,
        "actions_blocked": approval_needed and not sheet.approval_confirmed,
        "prior_year_fee": prior,
        "change_vs_prior_year": change,
        "change_vs_prior_year_percent": round(change_percent, 1) if change_percent is not None else None,
    }


def ensure_actionable(sheet: FeeSheet):
    """Raise when the discount needs partner approval that has not been confirmed."""
    summary = summarize(sheet)
    if summary["actions_blocked"]:
        raise BillingError(
            f"Partner approval required: discount of {summary['discount_percent']}% exceeds "
            f"{APPROVAL_DISCOUNT_THRESHOLD_PERCENT:g}% threshold"
        )
