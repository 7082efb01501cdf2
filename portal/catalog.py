"""
Reference Catalog

Static, type-keyed reference data shared by the onboarding wizard, the admin
setup checklist, the fee builder and the integration settings.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ClientType(str, Enum):
    """Categories of client the firm onboards."""
    INDIVIDUAL = "individual"
    BUSINESS = "business"
    TRUST = "trust"
    NONPROFIT = "nonprofit"


class ClientStatus(str, Enum):
    """Client lifecycle, in order."""
    NEW = "new"
    IN_PROGRESS = "in-progress"
    READY = "ready"
    COMPLETE = "complete"


# =============================================================================
# INTAKE DOCUMENTS
# =============================================================================

class DocumentRequest(BaseModel):
    id: str
    name: str
    reason: str
    required: bool


DOCUMENTS_BY_TYPE: Dict[ClientType, List[DocumentRequest]] = {
    ClientType.INDIVIDUAL: [
        DocumentRequest(
            id="prior-returns",
            name="Last 2 Years of Tax Returns",
            reason="Helps us understand your tax history and carry-forward items",
            required=True,
        ),
        DocumentRequest(
            id="w2s",
            name="Prior Year W-2s, 1099s, K-1s",
            reason="Creates a better organizer and catches opportunities",
            required=True,
        ),
        DocumentRequest(
            id="workpapers",
            name="Prior Year Supporting Documents",
            reason="Deductions, credits, and other tax planning documentation",
            required=False,
        ),
    ],
    ClientType.BUSINESS: [
        DocumentRequest(
            id="business-returns",
            name="Last 2 Years of Business Tax Returns",
            reason="Understanding your business structure and tax positions",
            required=True,
        ),
        DocumentRequest(
            id="depreciation",
            name="Depreciation Schedule",
            reason="Track assets and maximize deductions",
            required=True,
        ),
        DocumentRequest(
            id="articles",
            name="Articles of Organization",
            reason="Verify entity structure and ownership",
            required=True,
        ),
        DocumentRequest(
            id="operating-agreement",
            name="Operating Agreement",
            reason="Understand member/shareholder arrangements",
            required=False,
        ),
    ],
    ClientType.TRUST: [
        DocumentRequest(
            id="trust-returns",
            name="Prior Trust Tax Returns (Form 1041)",
            reason="Review prior year positions and distributions",
            required=True,
        ),
        DocumentRequest(
            id="trust-agreement",
            name="Trust Agreement",
            reason="Understand terms, beneficiaries, and distribution rules",
            required=True,
        ),
        DocumentRequest(
            id="beneficiary-info",
            name="Beneficiary Information Sheet",
            reason="Names, addresses, SSNs for K-1 preparation",
            required=True,
        ),
    ],
    ClientType.NONPROFIT: [
        DocumentRequest(
            id="form-990",
            name="Prior Year Form 990 or 990-N",
            reason="Review prior year filing and maintain compliance",
            required=True,
        ),
        DocumentRequest(
            id="501c3-letter",
            name="501(c)(3) Determination Letter",
            reason="Verify tax-exempt status",
            required=True,
        ),
        DocumentRequest(
            id="board-list",
            name="Board Member List",
            reason="Required disclosure on Form 990",
            required=True,
        ),
    ],
}


def documents_for(client_type: Optional[ClientType]) -> List[DocumentRequest]:
    """Documents requested from a client type. Untyped drafts get the individual list."""
    return DOCUMENTS_BY_TYPE[ClientType(client_type or ClientType.INDIVIDUAL)]


# =============================================================================
# ENGAGEMENT SERVICES
# =============================================================================

class Service(BaseModel):
    id: str
    name: str
    base_fee: float
    description: str
    recommended: bool = False


SERVICES_BY_TYPE: Dict[ClientType, List[Service]] = {
    ClientType.INDIVIDUAL: [
        Service(id="tax-prep", name="Individual Tax Return Preparation", base_fee=750,
                description="Form 1040 with standard schedules", recommended=True),
        Service(id="year-end-planning", name="Year-End Tax Planning", base_fee=300,
                description="Strategic consultation for tax optimization"),
        Service(id="amended-return", name="Amended Return Prep", base_fee=450,
                description="If corrections are needed"),
    ],
    ClientType.BUSINESS: [
        Service(id="business-return", name="Business Tax Return", base_fee=950,
                description="Form 1120, 1120-S, or 1065", recommended=True),
        Service(id="payroll", name="Payroll Processing", base_fee=150,
                description="Monthly payroll service (per month)"),
        Service(id="sales-tax", name="Sales Tax Filings", base_fee=100,
                description="Quarterly sales tax returns (per quarter)"),
        Service(id="1099-prep", name="1099 Preparation", base_fee=200,
                description="Annual contractor reporting"),
        Service(id="bookkeeping", name="Monthly Bookkeeping", base_fee=400,
                description="Full-service accounting (per month)"),
    ],
    ClientType.TRUST: [
        Service(id="trust-return", name="Trust Tax Return (Form 1041)", base_fee=1200,
                description="Including K-1 preparation for beneficiaries", recommended=True),
        Service(id="estate-coordination", name="Estate Planning Coordination", base_fee=500,
                description="Work with your estate attorney"),
    ],
    ClientType.NONPROFIT: [
        Service(id="form-990", name="Form 990 Preparation", base_fee=2500,
                description="Standard nonprofit tax return", recommended=True),
        Service(id="form-990n", name="Form 990-N (E-Postcard)", base_fee=250,
                description="For small nonprofits under $50k revenue"),
        Service(id="board-support", name="Board Meeting Support", base_fee=400,
                description="Financial reporting and guidance"),
    ],
}


def services_for(client_type: Optional[ClientType]) -> List[Service]:
    return SERVICES_BY_TYPE[ClientType(client_type or ClientType.INDIVIDUAL)]


# =============================================================================
# INTEGRATIONS & WORKFLOW AUTOMATION
# =============================================================================

INTEGRATION_CATEGORIES: List[Dict[str, Any]] = [
    {
        "name": "Practice Management",
        "integrations": [
            {"key": "practiceCS", "label": "Practice CS", "description": "Thomson Reuters practice management", "domain": "thomsonreuters.com"},
            {"key": "cchAxcessPractice", "label": "CCH Axcess Practice", "description": "Wolters Kluwer practice management", "domain": "wolterskluwer.com"},
            {"key": "karbon", "label": "Karbon", "description": "Modern practice management platform", "domain": "karbonhq.com"},
            {"key": "taxDome", "label": "TaxDome", "description": "All-in-one practice management", "domain": "taxdome.com"},
            {"key": "canopy", "label": "Canopy", "description": "Practice management for tax & accounting", "domain": "getcanopy.com"},
            {"key": "financialCents", "label": "Financial Cents", "description": "Client accounting services platform", "domain": "financialcents.com"},
        ],
    },
    {
        "name": "Tax Software",
        "integrations": [
            {"key": "ultraTaxCS", "label": "UltraTax CS", "description": "Thomson Reuters tax preparation", "domain": "thomsonreuters.com"},
            {"key": "proSeries", "label": "ProSeries", "description": "Intuit professional tax software", "domain": "intuit.com"},
            {"key": "lacerte", "label": "Lacerte", "description": "Intuit premium tax software", "domain": "intuit.com"},
            {"key": "drakeTax", "label": "Drake Tax", "description": "Drake Software tax preparation", "domain": "drakesoftware.com"},
            {"key": "atx", "label": "ATX", "description": "Wolters Kluwer tax software", "domain": "wolterskluwer.com"},
        ],
    },
    {
        "name": "Document Management",
        "integrations": [
            {"key": "workpapersCS", "label": "Workpapers CS", "description": "Thomson Reuters workpaper management", "domain": "thomsonreuters.com"},
            {"key": "shareFile", "label": "ShareFile", "description": "Citrix secure file sharing", "domain": "sharefile.com"},
            {"key": "smartVault", "label": "SmartVault", "description": "Cloud document management", "domain": "smartvault.com"},
            {"key": "safeSendReturns", "label": "SafeSend Returns", "description": "Tax return delivery & e-signature", "domain": "safesend.com"},
        ],
    },
    {
        "name": "Accounting",
        "integrations": [
            {"key": "quickBooksOnline", "label": "QuickBooks Online", "description": "Intuit cloud accounting", "domain": "quickbooks.intuit.com"},
            {"key": "xero", "label": "Xero", "description": "Cloud accounting platform", "domain": "xero.com"},
            {"key": "sage", "label": "Sage", "description": "Sage accounting solutions", "domain": "sage.com"},
            {"key": "freshBooks", "label": "FreshBooks", "description": "Cloud accounting for small business", "domain": "freshbooks.com"},
        ],
    },
    {
        "name": "E-Signature",
        "integrations": [
            {"key": "docuSign", "label": "DocuSign", "description": "Electronic signature platform", "domain": "docusign.com"},
            {"key": "adobeSign", "label": "Adobe Sign", "description": "Adobe e-signature solution", "domain": "adobe.com"},
            {"key": "rightSignature", "label": "RightSignature", "description": "Citrix e-signature service", "domain": "rightsignature.com"},
        ],
    },
    {
        "name": "Payment Processing",
        "integrations": [
            {"key": "lawPay", "label": "LawPay", "description": "Professional payment processing", "domain": "lawpay.com"},
            {"key": "billCom", "label": "Bill.com", "description": "Business payments platform", "domain": "bill.com"},
            {"key": "stripe", "label": "Stripe", "description": "Online payment processing", "domain": "stripe.com"},
            {"key": "paypal", "label": "PayPal", "description": "PayPal business payments", "domain": "paypal.com"},
        ],
    },
    {
        "name": "Time & Billing",
        "integrations": [
            {"key": "quickBooksTime", "label": "QuickBooks Time", "description": "Time tracking for accounting", "domain": "quickbooks.intuit.com"},
            {"key": "tSheets", "label": "TSheets", "description": "Employee time tracking", "domain": "quickbooks.intuit.com"},
            {"key": "bqeCore", "label": "BQE Core", "description": "Professional services automation", "domain": "bqe.com"},
        ],
    },
]

INTEGRATION_KEYS: List[str] = [
    integration["key"]
    for category in INTEGRATION_CATEGORIES
    for integration in category["integrations"]
]

DEFAULT_WORKFLOW_STEPS: Dict[str, bool] = {
    "autoCreateInPracticeCS": False,
    "autoSendToLiscio": False,
    "autoSetupQuickBooks": False,
    "autoGenerateEngagementLetter": True,
    "requireDocuSignBeforeProceeding": False,
    "autoCreateBillingEntry": False,
}


# =============================================================================
# ADMIN SETUP CHECKLIST TEMPLATE
# =============================================================================

SETUP_TEMPLATE: List[Dict[str, Any]] = [
    {
        "id": "practice-cs",
        "title": "Practice CS Setup",
        "description": "Create client record and attach standard projects",
        "fields": [
            {"id": "client-name", "label": "Client Name", "type": "text", "value": ""},
            {"id": "ssn-ein", "label": "SSN/EIN", "type": "text", "value": "",
             "help_text": "Social Security Number or Employer ID Number"},
            {"id": "address", "label": "Address", "type": "textarea", "value": ""},
            {"id": "client-type", "label": "Client Type", "type": "select", "value": "Individual",
             "options": ["Individual", "Business", "Trust", "Nonprofit"]},
            {"id": "attach-tax-return", "label": "Attach Tax Return Project", "type": "checkbox", "value": True},
            {"id": "attach-payroll", "label": "Attach Payroll Project", "type": "checkbox", "value": False},
            {"id": "attach-1099", "label": "Attach 1099 Prep Project", "type": "checkbox", "value": False},
            {"id": "attach-sales-tax", "label": "Attach Sales Tax Project", "type": "checkbox", "value": False},
        ],
    },
    {
        "id": "ultratax-cs",
        "title": "UltraTax CS Setup",
        "description": "Configure tax software and data sharing",
        "fields": [
            {"id": "data-sharing", "label": "Data Sharing from Practice CS", "type": "checkbox", "value": True,
             "help_text": "Pull core fields automatically"},
            {"id": "tax-year", "label": "Tax Year for First Engagement", "type": "select", "value": "2024",
             "options": ["2024", "2023", "2022"]},
            {"id": "price-per-form", "label": "Configure Price Per Form Defaults", "type": "checkbox", "value": False,
             "help_text": "Optional: Pre-configure pricing structure"},
        ],
    },
    {
        "id": "liscio",
        "title": "Liscio Setup",
        "description": "Create portal contact and configure delivery",
        "fields": [
            {"id": "create-contact", "label": "Create Liscio Contact", "type": "checkbox", "value": False},
            {"id": "attach-entities", "label": "Attach Related Entities", "type": "textarea", "value": "",
             "help_text": "Link multiple businesses/trusts to one login if applicable"},
            {"id": "delivery-method", "label": "Default Delivery Method", "type": "select", "value": "Portal",
             "options": ["Portal", "Paper Exception"]},
            {"id": "welcome-message", "label": "Send Welcome Message", "type": "textarea",
             "value": "Welcome to our client portal! You can now securely message our team, "
                      "upload documents, and review your tax returns."},
        ],
    },
    {
        "id": "workpapers",
        "title": "Workpapers Setup",
        "description": "Create folders and organize uploaded documents",
        "fields": [
            {"id": "create-folder", "label": "Create 2024 Workpapers Folder", "type": "checkbox", "value": False},
            {"id": "auto-subfolders", "label": "Auto-create Standard Sub-folders", "type": "checkbox", "value": True,
             "help_text": "W-2, 1099, K-1, Depreciation, etc."},
            {"id": "imported-docs", "label": "Documents Imported from Client Intake", "type": "textarea", "value": ""},
        ],
    },
]


# =============================================================================
# BILLING DEFAULTS
# =============================================================================

DEFAULT_BILLING_LINES: List[Dict[str, Any]] = [
    {"id": "1", "name": "Form 1040 - Individual Return", "price_per_form": 500, "form_count": 1, "complexity": "standard"},
    {"id": "2", "name": "Schedule C - Business Income", "price_per_form": 250, "form_count": 1, "complexity": "standard"},
]

DEFAULT_PRIOR_YEAR_FEE = 750.0

# Discounts above this share of the subtotal need partner sign-off
APPROVAL_DISCOUNT_THRESHOLD_PERCENT = 10.0
