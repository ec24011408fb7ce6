# general_ledger/services/posting_adapters.py
"""
Automatic GL postings for business events raised by purchasing, sales and
inventory. Each adapter resolves its fixed accounts by number, builds a
PostingRequest and hands it to the posting engine:

    post_ap_bill      DR Inventory (A-1200)           CR Accounts Payable (L-2000)
    post_ap_payment   DR Accounts Payable (L-2000)    CR Cash/Bank (A-1000)
    post_ar_invoice   DR Accounts Receivable (A-1100) CR Sales Revenue (R-4000)
    post_ar_payment   DR Cash/Bank (A-1000)           CR Accounts Receivable (A-1100)
    post_cogs         DR Cost of Goods Sold (C-5000)  CR Inventory (A-1200)
    post_pos_sale     DR Cash/Bank (A-1000)           CR Sales Revenue (R-4000), Sales Discounts (R-4010),
                                                    Sales Tax Payable (L-2100)
    post_pos_cogs     DR Cost of Goods Sold (C-5000)  CR Inventory (A-1200)

Adapters never raise ledger errors; they return a PostingResult.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Iterable, List, Optional, Protocol, Tuple, TypeVar

from django.utils.translation import gettext_lazy as _

from company.models import Company
from ledger_core import constants
from ledger_core.enums import ReferenceType, SourceModule
from ..exceptions import AccountNotConfigured, Internal, LedgerError, PostingFailed, ValidationFailed
from ..models.coa import Account
from . import posting_service
from .posting_service import PostingLine, PostingRequest

logger = logging.getLogger("general_ledger.services.adapters")

ZERO = Decimal('0.0000')
AMOUNT_QUANTUM = Decimal('0.0001')

P = TypeVar('P')


# =============================================================================
# Domain events
# =============================================================================

@dataclass(frozen=True)
class ReceiptEvent:
    receipt_id: Any
    receipt_code: str
    receipt_date: date
    total_amount: Decimal
    supplier_id: Any = None
    description: str = ''


@dataclass(frozen=True)
class BillPaymentEvent:
    payment_id: Any
    receipt_id: Any
    receipt_code: str
    payment_date: date
    amount: Decimal
    payment_method: str
    supplier_id: Any = None
    description: str = ''


@dataclass(frozen=True)
class InvoiceEvent:
    invoice_id: Any
    invoice_code: str
    invoice_date: date
    total_amount: Decimal
    customer_id: Any = None
    description: str = ''


@dataclass(frozen=True)
class CustomerPaymentEvent:
    payment_id: Any
    invoice_id: Any
    invoice_code: str
    payment_date: date
    amount: Decimal
    payment_method: str
    customer_id: Any = None
    description: str = ''


@dataclass(frozen=True)
class ShipmentItem:
    item_id: Any
    quantity: Decimal
    item_code: str = ''


@dataclass(frozen=True)
class ShipmentEvent:
    invoice_id: Any
    invoice_code: str
    warehouse_id: Any
    shipment_date: date
    items: Tuple[ShipmentItem, ...]
    description: str = ''


@dataclass(frozen=True)
class PosSaleEvent:
    transaction_id: Any
    transaction_code: str
    transaction_date: date
    subtotal: Decimal
    total_discount: Decimal
    total_tax: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    description: str = ''


@dataclass(frozen=True)
class PosCogsEvent:
    transaction_id: Any
    transaction_code: str
    transaction_date: date
    items: Tuple[ShipmentItem, ...]
    description: str = ''


@dataclass(frozen=True)
class PostingResult:
    success: bool
    journal_entry_id: Optional[uuid.UUID] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


@dataclass(frozen=True)
class PaymentRecordingOutcome:
    """The domain write and the GL posting are reported as separate signals."""
    payment: Any
    gl_posting_success: bool
    journal_entry_id: Optional[uuid.UUID] = None
    gl_posting_error: Optional[str] = None


# =============================================================================
# Collaborators
# =============================================================================

class InventoryValuation(Protocol):
    """
    Read-only view of stock valuation owned by the inventory system.
    Both lookups raise LookupError for an unknown item.
    """

    def latest_valuation_rate(self, item_id: Any, warehouse_id: Any) -> Optional[Decimal]:
        """
        Most recent non-null valuation rate from stock ledger activity, or None.
        `warehouse_id=None` asks across all warehouses.
        """
        ...

    def purchase_price(self, item_id: Any) -> Optional[Decimal]:
        """Recorded purchase price from the item master, or None."""
        ...


@dataclass(frozen=True)
class CostedItem:
    item_id: Any
    quantity: Decimal
    valuation_rate: Decimal
    total_cost: Decimal


def _cost_items(items: Iterable[ShipmentItem], warehouse_id: Any, valuation: InventoryValuation,
                unknown_items_cost_zero: bool) -> Tuple[List[CostedItem], Decimal]:
    costed: List[CostedItem] = []
    total = ZERO
    for item in items:
        quantity = Decimal(str(item.quantity))
        if quantity < ZERO:
            raise ValidationFailed(_("Quantity for item %(item)s cannot be negative.") % {'item': item.item_id})
        try:
            rate = valuation.latest_valuation_rate(item.item_id, warehouse_id)
            if rate is None:
                rate = valuation.purchase_price(item.item_id)
        except LookupError:
            if not unknown_items_cost_zero:
                raise ValidationFailed(_("Item not found: %(item)s") % {'item': item.item_id})
            logger.warning(f"Item {item.item_id} not found in inventory; costed at zero.")
            rate = None
        rate = Decimal(str(rate)) if rate is not None else ZERO
        if rate < ZERO:
            raise ValidationFailed(_("Valuation rate for item %(item)s cannot be negative.") % {'item': item.item_id})
        line_cost = quantity * rate
        costed.append(CostedItem(item.item_id, quantity, rate, line_cost))
        total += line_cost
    return costed, total.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)


def calculate_cogs(items: Iterable[ShipmentItem], warehouse_id: Any,
                   valuation: InventoryValuation) -> Tuple[List[CostedItem], Decimal]:
    """
    Prices each shipped item at its latest valuation rate in the warehouse,
    falling back to the purchase price (a missing price counts as 0).
    Returns (costed_items, total_cogs).
    """
    return _cost_items(items, warehouse_id, valuation, unknown_items_cost_zero=False)


def calculate_pos_cogs(items: Iterable[ShipmentItem],
                       valuation: InventoryValuation) -> Tuple[List[CostedItem], Decimal]:
    """
    Like calculate_cogs, but a till sale names no warehouse, so the latest rate
    across all warehouses is asked for (warehouse_id=None). An item unknown to
    the inventory system is costed at zero instead of failing the sale.
    """
    return _cost_items(items, None, valuation, unknown_items_cost_zero=True)


# =============================================================================
# Helpers
# =============================================================================

def resolve_account(company: Company, account_number: str, role: str) -> Account:
    """Well-known account by number among the company's active, live accounts."""
    account = Account.objects.for_company(company).filter(account_number=account_number, is_active=True).first()
    if account is None:
        raise AccountNotConfigured(account_number, role=role)
    return account


def _amount(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)


def _two_line_request(
        *, posting_date: date, source_module: str, reference_type: str, reference_id: Any,
        reference_code: str, description: str, amount: Decimal,
        debit_account: Account, debit_description: str,
        credit_account: Account, credit_description: str,
) -> PostingRequest:
    return PostingRequest(
        posting_date=posting_date,
        source_module=source_module,
        reference_type=reference_type,
        reference_id=str(reference_id),
        reference_code=reference_code,
        description=description,
        lines=(
            PostingLine(account_id=debit_account.pk, debit=amount, description=debit_description, line_number=1),
            PostingLine(account_id=credit_account.pk, credit=amount, description=credit_description, line_number=2),
        ),
    )


def _post(company: Company, adapter: str, reference: str, build: Callable[[], PostingRequest],
          user=None) -> PostingResult:
    """Runs `build` and the engine; any LedgerError becomes a failed result."""
    log_prefix = f"[{adapter}][Co:{company.pk}][Ref:{reference}]"
    try:
        request = build()
        entry_id = posting_service.post(company, request, user=user)
    except LedgerError as exc:
        opaque = isinstance(exc, (PostingFailed, Internal))
        logger.error(f"{log_prefix} GL posting failed ({exc.code}): {exc.message}", exc_info=exc if opaque else None)
        message = str(exc.default_message) if opaque else exc.message
        return PostingResult(success=False, error=message, error_code=exc.code)
    logger.info(f"{log_prefix} GL posting succeeded (JE ID: {entry_id}).")
    return PostingResult(success=True, journal_entry_id=entry_id)


# =============================================================================
# Adapters
# =============================================================================

def post_ap_bill(company: Company, event: ReceiptEvent, user=None) -> PostingResult:
    """Goods received against a purchase receipt."""
    def build():
        inventory = resolve_account(company, constants.INVENTORY_ACCOUNT, 'Inventory')
        payable = resolve_account(company, constants.ACCOUNTS_PAYABLE_ACCOUNT, 'Accounts Payable')
        return _two_line_request(
            posting_date=event.receipt_date,
            source_module=SourceModule.AP.value,
            reference_type=ReferenceType.PURCHASE_RECEIPT.value,
            reference_id=event.receipt_id,
            reference_code=event.receipt_code,
            description=event.description or f"Purchase receipt {event.receipt_code}",
            amount=_amount(event.total_amount),
            debit_account=inventory,
            debit_description=f"Inventory purchase - Receipt {event.receipt_code}",
            credit_account=payable,
            credit_description=f"AP to supplier - Receipt {event.receipt_code}",
        )
    return _post(company, 'APBill', f"purchase_receipt/{event.receipt_id}", build, user)


def post_ap_payment(company: Company, event: BillPaymentEvent, user=None) -> PostingResult:
    def build():
        payable = resolve_account(company, constants.ACCOUNTS_PAYABLE_ACCOUNT, 'Accounts Payable')
        cash = resolve_account(company, constants.CASH_BANK_ACCOUNT, 'Cash/Bank')
        return _two_line_request(
            posting_date=event.payment_date,
            source_module=SourceModule.AP.value,
            reference_type=ReferenceType.BILL_PAYMENT.value,
            reference_id=event.payment_id,
            reference_code=event.receipt_code,
            description=(event.description
                         or f"Payment for purchase receipt {event.receipt_code} via {event.payment_method}"),
            amount=_amount(event.amount),
            debit_account=payable,
            debit_description=f"AP payment for Receipt {event.receipt_code}",
            credit_account=cash,
            credit_description=f"Payment via {event.payment_method} - Receipt {event.receipt_code}",
        )
    return _post(company, 'APPayment', f"bill_payment/{event.payment_id}", build, user)


def post_ar_invoice(company: Company, event: InvoiceEvent, user=None) -> PostingResult:
    def build():
        receivable = resolve_account(company, constants.ACCOUNTS_RECEIVABLE_ACCOUNT, 'Accounts Receivable')
        revenue = resolve_account(company, constants.SALES_REVENUE_ACCOUNT, 'Sales Revenue')
        return _two_line_request(
            posting_date=event.invoice_date,
            source_module=SourceModule.AR.value,
            reference_type=ReferenceType.SALES_INVOICE.value,
            reference_id=event.invoice_id,
            reference_code=event.invoice_code,
            description=event.description or f"Sales invoice {event.invoice_code}",
            amount=_amount(event.total_amount),
            debit_account=receivable,
            debit_description=f"AR from customer - Invoice {event.invoice_code}",
            credit_account=revenue,
            credit_description=f"Sales revenue - Invoice {event.invoice_code}",
        )
    return _post(company, 'ARInvoice', f"sales_invoice/{event.invoice_id}", build, user)


def post_ar_payment(company: Company, event: CustomerPaymentEvent, user=None) -> PostingResult:
    def build():
        cash = resolve_account(company, constants.CASH_BANK_ACCOUNT, 'Cash/Bank')
        receivable = resolve_account(company, constants.ACCOUNTS_RECEIVABLE_ACCOUNT, 'Accounts Receivable')
        return _two_line_request(
            posting_date=event.payment_date,
            source_module=SourceModule.AR.value,
            reference_type=ReferenceType.INVOICE_PAYMENT.value,
            reference_id=event.payment_id,
            reference_code=event.invoice_code,
            description=(event.description
                         or f"Payment received for Invoice {event.invoice_code} via {event.payment_method}"),
            amount=_amount(event.amount),
            debit_account=cash,
            debit_description=f"Payment received via {event.payment_method} - Invoice {event.invoice_code}",
            credit_account=receivable,
            credit_description=f"AR payment for Invoice {event.invoice_code}",
        )
    return _post(company, 'ARPayment', f"invoice_payment/{event.payment_id}", build, user)


def post_cogs(company: Company, event: ShipmentEvent, valuation: InventoryValuation, user=None) -> PostingResult:
    """
    Costs the shipped items and posts the total. A zero total (e.g. items with
    no cost) is a successful no-op with no journal entry.
    """
    reference = f"sales_invoice/{event.invoice_id}"
    try:
        _costed, total = calculate_cogs(event.items, event.warehouse_id, valuation)
    except LedgerError as exc:
        logger.error(f"[COGS][Co:{company.pk}][Ref:{reference}] COGS calculation failed: {exc.message}")
        return PostingResult(success=False, error=exc.message, error_code=exc.code)

    if total == ZERO:
        logger.info(f"[COGS][Co:{company.pk}][Ref:{reference}] Total COGS is zero; nothing to post.")
        return PostingResult(success=True)

    item_count = len(event.items)

    def build():
        cogs = resolve_account(company, constants.COGS_ACCOUNT, 'Cost of Goods Sold')
        inventory = resolve_account(company, constants.INVENTORY_ACCOUNT, 'Inventory')
        return _two_line_request(
            posting_date=event.shipment_date,
            source_module=SourceModule.COGS.value,
            reference_type=ReferenceType.SALES_INVOICE.value,
            reference_id=event.invoice_id,
            reference_code=event.invoice_code,
            description=event.description or f"COGS for invoice {event.invoice_code} ({item_count} items)",
            amount=total,
            debit_account=cogs,
            debit_description=f"COGS for {item_count} items sold - Invoice {event.invoice_code}",
            credit_account=inventory,
            credit_description=f"Inventory reduction - Invoice {event.invoice_code}",
        )
    return _post(company, 'COGS', reference, build, user)


def post_pos_sale(company: Company, event: PosSaleEvent, user=None) -> PostingResult:
    """
    A till sale, posted straight to the ledger. Cash is debited for
    `total_amount`; change handed back to the customer is not tracked, so
    `amount_paid` does not affect the entry. The discount and tax credits are
    added, and their accounts resolved, only when the amount is positive.
    """
    code = event.transaction_code
    reference = f"pos_transaction/{event.transaction_id}"

    def build():
        cash = resolve_account(company, constants.CASH_BANK_ACCOUNT, 'Cash/Bank')
        revenue = resolve_account(company, constants.SALES_REVENUE_ACCOUNT, 'Sales Revenue')
        discount = _amount(event.total_discount)
        tax = _amount(event.total_tax)

        credits = [(revenue, _amount(event.subtotal) - discount, f"Sales revenue - POS {code}")]
        if discount > ZERO:
            credits.append((resolve_account(company, constants.SALES_DISCOUNT_ACCOUNT, 'Sales Discounts'),
                            discount, f"Sales discount - POS {code}"))
        if tax > ZERO:
            credits.append((resolve_account(company, constants.SALES_TAX_PAYABLE_ACCOUNT, 'Sales Tax Payable'),
                            tax, f"Sales tax collected - POS {code}"))

        lines = [PostingLine(account_id=cash.pk, debit=_amount(event.total_amount),
                             description=f"Cash received - POS {code}", line_number=1)]
        lines.extend(
            PostingLine(account_id=account.pk, credit=amount, description=description, line_number=number)
            for number, (account, amount, description) in enumerate(credits, start=2)
        )
        return PostingRequest(
            posting_date=event.transaction_date,
            source_module=SourceModule.POS.value,
            reference_type=ReferenceType.POS_TRANSACTION.value,
            reference_id=str(event.transaction_id),
            reference_code=code,
            description=event.description or f"POS Sale - {code}",
            lines=lines,
        )
    return _post(company, 'POSSale', reference, build, user)


def post_pos_cogs(company: Company, event: PosCogsEvent, valuation: InventoryValuation,
                  user=None) -> PostingResult:
    """Cost of the goods sold at the till; a zero total posts nothing."""
    reference = f"pos_transaction/{event.transaction_id}"
    try:
        _costed, total = calculate_pos_cogs(event.items, valuation)
    except LedgerError as exc:
        logger.error(f"[POSCOGS][Co:{company.pk}][Ref:{reference}] COGS calculation failed: {exc.message}")
        return PostingResult(success=False, error=exc.message, error_code=exc.code)

    if total == ZERO:
        logger.info(f"[POSCOGS][Co:{company.pk}][Ref:{reference}] Total COGS is zero; nothing to post.")
        return PostingResult(success=True)

    code = event.transaction_code
    item_count = len(event.items)

    def build():
        cogs = resolve_account(company, constants.COGS_ACCOUNT, 'Cost of Goods Sold')
        inventory = resolve_account(company, constants.INVENTORY_ACCOUNT, 'Inventory')
        return _two_line_request(
            posting_date=event.transaction_date,
            source_module=SourceModule.COGS.value,
            reference_type=ReferenceType.POS_TRANSACTION.value,
            reference_id=event.transaction_id,
            reference_code=code,
            description=event.description or f"COGS - POS Sale {code} ({item_count} items)",
            amount=total,
            debit_account=cogs,
            debit_description=f"COGS for {item_count} items sold - POS {code}",
            credit_account=inventory,
            credit_description=f"Inventory reduction - POS {code}",
        )
    return _post(company, 'POSCOGS', reference, build, user)


# =============================================================================
# Payment recording with non-fatal GL posting
# =============================================================================

def record_payment_with_gl(
        company: Company,
        payment_recorder: Callable[[], P],
        gl_poster: Callable[[P], PostingResult],
) -> PaymentRecordingOutcome:
    """
    Records a payment, then posts it to the GL. The payment stands even when the
    GL posting fails; the failure is logged and reported in the outcome.
    Errors from `payment_recorder` propagate.
    """
    payment = payment_recorder()
    try:
        result = gl_poster(payment)
    except Exception as exc:
        logger.error(f"[PaymentGL][Co:{company.pk}] Payment recorded but GL posting raised: {exc}", exc_info=True)
        return PaymentRecordingOutcome(payment=payment, gl_posting_success=False,
                                       gl_posting_error=str(_("GL posting failed unexpectedly.")))

    if not result.success:
        logger.error(f"[PaymentGL][Co:{company.pk}] Payment recorded but GL posting failed: {result.error}")
    return PaymentRecordingOutcome(
        payment=payment,
        gl_posting_success=result.success,
        journal_entry_id=result.journal_entry_id,
        gl_posting_error=result.error,
    )
