# tests/test_adapters.py
"""
Tests for the domain posting adapters (AP bill, AP payment, AR invoice,
AR payment, COGS) and for payment recording with non-fatal GL posting.
"""

import uuid
from datetime import date
from decimal import Decimal

import pytest

from general_ledger.exceptions import ValidationFailed
from general_ledger.models import JournalEntry
from general_ledger.services import coa_service, ledger_service
from general_ledger.services.posting_adapters import (
    BillPaymentEvent, CustomerPaymentEvent, InvoiceEvent, PosCogsEvent, PosSaleEvent, PostingResult, ReceiptEvent,
    ShipmentEvent, ShipmentItem, calculate_cogs, calculate_pos_cogs, post_ap_bill, post_ap_payment, post_ar_invoice,
    post_ar_payment, post_cogs, post_pos_cogs, post_pos_sale, record_payment_with_gl,
)
from ledger_core.enums import ReferenceType, SourceModule

RECEIPT_DATE = date(2025, 4, 2)


class FakeValuation:
    """In-memory stand-in for the inventory system's valuation lookups."""

    def __init__(self, rates=None, prices=None):
        self.rates = rates or {}
        self.prices = prices or {}

    def latest_valuation_rate(self, item_id, warehouse_id):
        if item_id not in self.rates and item_id not in self.prices:
            raise LookupError(item_id)
        return self.rates.get(item_id)

    def purchase_price(self, item_id):
        return self.prices.get(item_id)


def _lines(entry_id):
    entry = JournalEntry.objects.get(pk=entry_id)
    return entry, [(line.account.account_number, line.debit, line.credit) for line in entry.lines.order_by("line_number")]


# =============================================================================
# AP / AR Adapter Tests
# =============================================================================

@pytest.mark.django_db
class TestAccountsPayableAdapters:

    def test_ap_bill_debits_inventory_credits_payable(self, company, chart):
        result = post_ap_bill(company, ReceiptEvent(
            receipt_id="rcpt-1", receipt_code="PR-2025-0001", receipt_date=RECEIPT_DATE,
            total_amount=Decimal("1000"),
        ))

        assert result.success is True
        entry, lines = _lines(result.journal_entry_id)
        assert entry.source_module == SourceModule.AP
        assert entry.reference_type == ReferenceType.PURCHASE_RECEIPT
        assert entry.reference_code == "PR-2025-0001"
        assert entry.description == "Purchase receipt PR-2025-0001"
        assert lines == [("A-1200", Decimal("1000.0000"), Decimal("0.0000")),
                         ("L-2000", Decimal("0.0000"), Decimal("1000.0000"))]

    def test_receipt_shows_on_inventory_ledger(self, company, chart):
        post_ap_bill(company, ReceiptEvent("rcpt-1", "PR-2025-0001", RECEIPT_DATE, Decimal("1000")))

        ledger = ledger_service.query_ledger(company, chart["A-1200"], RECEIPT_DATE, RECEIPT_DATE)

        assert len(ledger["entries"]) == 1
        assert ledger["entries"][0]["debit"] == Decimal("1000.0000")
        assert ledger["entries"][0]["balance"] == ledger["opening_balance"] + Decimal("1000")

    def test_ap_payment_references_the_payment(self, company, chart):
        result = post_ap_payment(company, BillPaymentEvent(
            payment_id="pay-7", receipt_id="rcpt-1", receipt_code="PR-2025-0001", payment_date=RECEIPT_DATE,
            amount=Decimal("400"), payment_method="bank_transfer",
        ))

        entry, lines = _lines(result.journal_entry_id)
        assert entry.reference_type == ReferenceType.BILL_PAYMENT
        assert entry.reference_id == "pay-7"
        assert lines == [("L-2000", Decimal("400.0000"), Decimal("0.0000")),
                         ("A-1000", Decimal("0.0000"), Decimal("400.0000"))]

    def test_missing_account_is_reported_not_raised(self, company, chart):
        coa_service.update_account(company, chart["L-2000"].pk, {"is_active": False})

        result = post_ap_bill(company, ReceiptEvent("rcpt-1", "PR-2025-0001", RECEIPT_DATE, Decimal("10")))

        assert result.success is False
        assert result.error_code == "account_not_configured"
        assert "L-2000" in result.error
        assert not JournalEntry.objects.exists()

    def test_unseeded_company_fails_cleanly(self, company):
        result = post_ap_bill(company, ReceiptEvent("rcpt-1", "PR-2025-0001", RECEIPT_DATE, Decimal("10")))
        assert result.success is False
        assert result.error_code == "account_not_configured"
        assert result.journal_entry_id is None

    def test_zero_amount_is_a_validation_failure(self, company, chart):
        result = post_ap_bill(company, ReceiptEvent("rcpt-1", "PR-2025-0001", RECEIPT_DATE, Decimal("0")))
        assert result.success is False
        assert result.error_code == "validation_failed"


@pytest.mark.django_db
class TestAccountsReceivableAdapters:

    def test_ar_invoice(self, company, chart):
        result = post_ar_invoice(company, InvoiceEvent("inv-1", "SI-2025-0001", RECEIPT_DATE, Decimal("1500")))

        entry, lines = _lines(result.journal_entry_id)
        assert entry.source_module == SourceModule.AR
        assert entry.reference_type == ReferenceType.SALES_INVOICE
        assert lines == [("A-1100", Decimal("1500.0000"), Decimal("0.0000")),
                         ("R-4000", Decimal("0.0000"), Decimal("1500.0000"))]

    def test_ar_payment(self, company, chart):
        result = post_ar_payment(company, CustomerPaymentEvent(
            payment_id="rcv-1", invoice_id="inv-1", invoice_code="SI-2025-0001", payment_date=RECEIPT_DATE,
            amount=Decimal("1500"), payment_method="cash",
        ))

        entry, lines = _lines(result.journal_entry_id)
        assert entry.reference_type == ReferenceType.INVOICE_PAYMENT
        assert entry.reference_id == "rcv-1"
        assert lines == [("A-1000", Decimal("1500.0000"), Decimal("0.0000")),
                         ("A-1100", Decimal("0.0000"), Decimal("1500.0000"))]


# =============================================================================
# COGS Tests
# =============================================================================

class TestCalculateCogs:

    def test_valuation_rate_with_purchase_price_fallback(self):
        valuation = FakeValuation(rates={"widget": Decimal("2.50")}, prices={"gadget": Decimal("4")})
        costed, total = calculate_cogs(
            [ShipmentItem("widget", Decimal("10")), ShipmentItem("gadget", Decimal("3"))], "wh-1", valuation,
        )

        assert [item.valuation_rate for item in costed] == [Decimal("2.50"), Decimal("4")]
        assert total == Decimal("37.0000")

    def test_missing_price_counts_as_zero(self):
        valuation = FakeValuation(rates={"freebie": None}, prices={"widget": Decimal("1.005")})
        _costed, total = calculate_cogs([ShipmentItem("freebie", 5), ShipmentItem("widget", 1)], "wh-1", valuation)
        assert total == Decimal("1.0050")

    def test_unknown_item_fails(self):
        with pytest.raises(ValidationFailed, match="Item not found: ghost"):
            calculate_cogs([ShipmentItem("ghost", 1)], "wh-1", FakeValuation())


@pytest.mark.django_db
class TestPostCogs:

    def test_cogs_posting(self, company, chart):
        event = ShipmentEvent(
            invoice_id="inv-1", invoice_code="SI-2025-0001", warehouse_id="wh-1", shipment_date=RECEIPT_DATE,
            items=(ShipmentItem("widget", Decimal("10")), ShipmentItem("gadget", Decimal("2"))),
        )
        result = post_cogs(company, event, FakeValuation(rates={"widget": Decimal("3"), "gadget": Decimal("5")}))

        entry, lines = _lines(result.journal_entry_id)
        assert entry.source_module == SourceModule.COGS
        assert entry.description == "COGS for invoice SI-2025-0001 (2 items)"
        assert lines == [("C-5000", Decimal("40.0000"), Decimal("0.0000")),
                         ("A-1200", Decimal("0.0000"), Decimal("40.0000"))]

    def test_zero_cost_is_successful_noop(self, company, chart):
        event = ShipmentEvent("inv-1", "SI-2025-0001", "wh-1", RECEIPT_DATE, (ShipmentItem("sample", 1),))
        result = post_cogs(company, event, FakeValuation(rates={"sample": Decimal("0")}))

        assert result == PostingResult(success=True)
        assert not JournalEntry.objects.exists()

    def test_unknown_item_is_reported(self, company, chart):
        event = ShipmentEvent("inv-1", "SI-2025-0001", "wh-1", RECEIPT_DATE, (ShipmentItem("ghost", 1),))
        result = post_cogs(company, event, FakeValuation())

        assert result.success is False
        assert "ghost" in result.error


# =============================================================================
# POS Tests
# =============================================================================

def _pos_sale(**overrides):
    values = dict(
        transaction_id="pos-1", transaction_code="POS-2025-0001", transaction_date=RECEIPT_DATE,
        subtotal=Decimal("100"), total_discount=Decimal("10"), total_tax=Decimal("5"),
        total_amount=Decimal("105"), amount_paid=Decimal("120"),
    )
    values.update(overrides)
    return PosSaleEvent(**values)


@pytest.mark.django_db
class TestPostPosSale:

    def test_sale_with_discount_and_tax(self, company, chart):
        result = post_pos_sale(company, _pos_sale())

        assert result.success is True
        entry, lines = _lines(result.journal_entry_id)
        assert entry.source_module == SourceModule.POS
        assert entry.reference_type == ReferenceType.POS_TRANSACTION
        assert entry.reference_code == "POS-2025-0001"
        assert entry.description == "POS Sale - POS-2025-0001"
        assert lines == [("A-1000", Decimal("105.0000"), Decimal("0.0000")),
                         ("R-4000", Decimal("0.0000"), Decimal("90.0000")),
                         ("R-4010", Decimal("0.0000"), Decimal("10.0000")),
                         ("L-2100", Decimal("0.0000"), Decimal("5.0000"))]

    def test_plain_sale_has_two_lines(self, company, chart):
        result = post_pos_sale(company, _pos_sale(total_discount=Decimal("0"), total_tax=Decimal("0"),
                                                  total_amount=Decimal("100")))

        _entry, lines = _lines(result.journal_entry_id)
        assert [number for number, _dr, _cr in lines] == ["A-1000", "R-4000"]

    def test_optional_accounts_only_needed_when_used(self, company, chart):
        coa_service.update_account(company, chart["L-2100"].pk, {"is_active": False})

        untaxed = post_pos_sale(company, _pos_sale(total_tax=Decimal("0"), total_amount=Decimal("100")))
        taxed = post_pos_sale(company, _pos_sale(transaction_id="pos-2"))

        assert untaxed.success is True
        assert taxed.success is False
        assert taxed.error_code == "account_not_configured"
        assert "L-2100" in taxed.error

    def test_mismatched_totals_post_nothing(self, company, chart):
        result = post_pos_sale(company, _pos_sale(total_amount=Decimal("95")))

        assert result.success is False
        assert result.error_code == "validation_failed"
        assert not JournalEntry.objects.exists()


class TestCalculatePosCogs:

    def test_unknown_item_costs_zero(self):
        valuation = FakeValuation(rates={"widget": Decimal("2")})
        costed, total = calculate_pos_cogs([ShipmentItem("widget", 3), ShipmentItem("ghost", 4)], valuation)

        assert [item.total_cost for item in costed] == [Decimal("6"), Decimal("0")]
        assert total == Decimal("6.0000")


@pytest.mark.django_db
class TestPostPosCogs:

    def test_pos_cogs_posting(self, company, chart):
        event = PosCogsEvent("pos-1", "POS-2025-0001", RECEIPT_DATE,
                             (ShipmentItem("widget", Decimal("4")), ShipmentItem("gadget", Decimal("1"))))
        result = post_pos_cogs(company, event, FakeValuation(rates={"widget": Decimal("2.5")},
                                                             prices={"gadget": Decimal("7")}))

        entry, lines = _lines(result.journal_entry_id)
        assert entry.source_module == SourceModule.COGS
        assert entry.reference_type == ReferenceType.POS_TRANSACTION
        assert entry.description == "COGS - POS Sale POS-2025-0001 (2 items)"
        assert lines == [("C-5000", Decimal("17.0000"), Decimal("0.0000")),
                         ("A-1200", Decimal("0.0000"), Decimal("17.0000"))]

    def test_zero_cost_is_successful_noop(self, company, chart):
        event = PosCogsEvent("pos-1", "POS-2025-0001", RECEIPT_DATE, (ShipmentItem("ghost", 2),))
        result = post_pos_cogs(company, event, FakeValuation())

        assert result == PostingResult(success=True)
        assert not JournalEntry.objects.exists()


# =============================================================================
# Payment Recording Tests
# =============================================================================

@pytest.mark.django_db
class TestRecordPaymentWithGl:

    def test_gl_failure_does_not_undo_payment(self, company):
        payment = {"id": str(uuid.uuid4()), "amount": Decimal("50")}
        outcome = record_payment_with_gl(
            company,
            payment_recorder=lambda: payment,
            gl_poster=lambda p: PostingResult(success=False, error="Accounts Payable missing",
                                              error_code="account_not_configured"),
        )

        assert outcome.payment is payment
        assert outcome.gl_posting_success is False
        assert outcome.gl_posting_error == "Accounts Payable missing"

    def test_gl_exception_is_contained(self, company):
        def explode(_payment):
            raise RuntimeError("broker down")

        outcome = record_payment_with_gl(company, payment_recorder=lambda: "payment-1", gl_poster=explode)

        assert outcome.payment == "payment-1"
        assert outcome.gl_posting_success is False
        assert outcome.gl_posting_error

    def test_recorder_error_propagates(self, company):
        def fail():
            raise ValueError("amount exceeds balance")

        with pytest.raises(ValueError):
            record_payment_with_gl(company, payment_recorder=fail, gl_poster=lambda p: PostingResult(success=True))

    def test_successful_posting(self, company, chart):
        outcome = record_payment_with_gl(
            company,
            payment_recorder=lambda: CustomerPaymentEvent("rcv-1", "inv-1", "SI-2025-0001", RECEIPT_DATE,
                                                          Decimal("20"), "cash"),
            gl_poster=lambda event: post_ar_payment(company, event),
        )

        assert outcome.gl_posting_success is True
        assert JournalEntry.objects.filter(pk=outcome.journal_entry_id).exists()
