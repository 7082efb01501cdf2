"""
Tests for the fee builder and draft invoice workbook.
"""

import io

import pytest
from openpyxl import load_workbook

from portal import billing_engine
from portal.billing_engine import Adjustments, BillingError, FeeSheet, ServiceLine
from portal.invoice_generator import generate_invoice


def sheet_with_discount(discount, confirmed=False):
    sheet = billing_engine.default_sheet()
    sheet.adjustments = Adjustments(discount=discount, discount_reason="Loyal client")
    sheet.approval_confirmed = confirmed
    return sheet


class TestDefaultSheet:

    def test_standard_lines_without_selection(self):
        sheet = billing_engine.default_sheet()
        assert [line.name for line in sheet.services] == [
            "Form 1040 - Individual Return",
            "Schedule C - Business Income",
        ]
        assert sheet.prior_year_fee == 750

    def test_lines_from_engagement_selection(self):
        sheet = billing_engine.default_sheet("business", ["business-return", "payroll", "unknown"])
        assert [(line.id, line.price_per_form) for line in sheet.services] == [
            ("business-return", 950),
            ("payroll", 150),
        ]


class TestSummary:

    def test_totals(self):
        sheet = billing_engine.default_sheet()
        sheet.adjustments = Adjustments(discount=50, additional_fees=120)
        summary = billing_engine.summarize(sheet)

        assert summary["subtotal"] == 750
        assert summary["system_suggested_fee"] == 750
        assert summary["total"] == 820
        assert summary["change_vs_prior_year"] == 70
        assert summary["change_vs_prior_year_percent"] == 9.3

    def test_subtotal_follows_form_count(self):
        sheet = billing_engine.update_line(billing_engine.default_sheet(), "1", {"form_count": 3})
        summary = billing_engine.summarize(sheet)
        assert summary["lines"][0]["subtotal"] == 1500
        assert summary["subtotal"] == 1750

    def test_no_prior_year_fee(self):
        sheet = billing_engine.default_sheet()
        sheet.prior_year_fee = 0
        assert billing_engine.summarize(sheet)["change_vs_prior_year_percent"] is None

    def test_empty_sheet(self):
        summary = billing_engine.summarize(FeeSheet())
        assert summary["subtotal"] == 0
        assert summary["discount_percent"] == 0
        assert summary["needs_approval"] is False


class TestApprovalGate:

    def test_discount_at_threshold_needs_no_approval(self):
        summary = billing_engine.summarize(sheet_with_discount(75))
        assert summary["discount_percent"] == 10.0
        assert summary["needs_approval"] is False

    def test_large_discount_blocks_actions(self):
        sheet = sheet_with_discount(100)
        summary = billing_engine.summarize(sheet)
        assert summary["needs_approval"] is True
        assert summary["actions_blocked"] is True

        with pytest.raises(BillingError):
            billing_engine.ensure_actionable(sheet)

    def test_confirmed_approval_unblocks(self):
        sheet = sheet_with_discount(100, confirmed=True)
        assert billing_engine.summarize(sheet)["actions_blocked"] is False
        billing_engine.ensure_actionable(sheet)


class TestValidation:

    def test_unknown_complexity(self):
        sheet = FeeSheet(services=[ServiceLine(id="1", name="Form 1040", complexity="heroic")])
        with pytest.raises(BillingError):
            billing_engine.validate_sheet(sheet)

    def test_duplicate_line_ids(self):
        line = ServiceLine(id="1", name="Form 1040")
        with pytest.raises(BillingError):
            billing_engine.validate_sheet(FeeSheet(services=[line, line]))

    def test_update_unknown_line(self):
        with pytest.raises(BillingError):
            billing_engine.update_line(billing_engine.default_sheet(), "99", {"form_count": 2})

    def test_update_disallowed_field(self):
        with pytest.raises(BillingError):
            billing_engine.update_line(billing_engine.default_sheet(), "1", {"id": "2"})


class TestInvoiceWorkbook:

    def test_invoice_contents(self):
        sheet = sheet_with_discount(100, confirmed=True)
        content = generate_invoice({"id": "c1", "name": "Jane Smith", "type": "individual"}, sheet, "Smith & Co CPAs")

        wb = load_workbook(io.BytesIO(content))
        ws = wb["Draft Invoice"]
        assert ws["A1"].value == "Smith & Co CPAs"
        assert ws["B2"].value == "Jane Smith"

        rows = {row[0]: row[4] for row in ws.iter_rows(values_only=True) if row and row[0]}
        assert rows["Form 1040 - Individual Return"] == 500
        assert rows["Subtotal"] == 750
        assert rows["Total"] == 650
        assert any(str(label).startswith("Partner approval confirmed") for label in rows)
