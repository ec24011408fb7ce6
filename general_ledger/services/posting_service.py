# general_ledger/services/posting_service.py

import logging
import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Count
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from company.models import Company
from ledger_core.enums import JournalStatus, SourceModule, ReferenceType
from ..exceptions import Internal, LedgerError, PostingFailed, ValidationFailed, model_validation_as_ledger_error
from ..models.coa import Account
from ..models.journal import JournalEntry, JournalLine
from . import sequence_service

logger = logging.getLogger("general_ledger.services.posting")

ZERO = Decimal('0.0000')
POSTING_TOLERANCE = Decimal(str(getattr(settings, 'GL_POSTING_TOLERANCE', '0.0001')))
AMOUNT_QUANTUM = Decimal('0.0001')


def _to_decimal(value: Any) -> Decimal:
    if value is None or value == '':
        return ZERO
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationFailed(_("'%(value)s' is not a valid amount.") % {'value': value})


# =============================================================================
# Posting request structures
# =============================================================================

@dataclass(frozen=True)
class PostingLine:
    """One side of a posting. Exactly one of debit/credit must be non-zero."""
    account_id: Any
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str = ''
    line_number: int = 0
    cost_center_id: Optional[uuid.UUID] = None
    project_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        object.__setattr__(self, 'debit', _to_decimal(self.debit))
        object.__setattr__(self, 'credit', _to_decimal(self.credit))


@dataclass(frozen=True)
class PostingRequest:
    """
    A closed, validated description of an automatic posting. The company is
    passed alongside the request to `post()`, never read from ambient state.
    """
    posting_date: date
    source_module: str
    lines: Tuple[PostingLine, ...]
    description: str = ''
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    reference_code: str = ''

    def __post_init__(self):
        object.__setattr__(self, 'lines', tuple(self.lines))
        if self.reference_id is not None:
            object.__setattr__(self, 'reference_id', str(self.reference_id))

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)

    def validate(self) -> None:
        """
        The single balance and shape check for every automatic posting.
        Raises ValidationFailed listing every problem found.
        """
        errors: Dict[str, List[str]] = {}

        def add(key, message):
            errors.setdefault(key, []).append(str(message))

        if not isinstance(self.posting_date, date):
            add('posting_date', _("A posting date is required."))
        if self.source_module not in SourceModule.values:
            add('source_module', _("Unknown source module '%(m)s'.") % {'m': self.source_module})
        if (self.reference_type is None) != (self.reference_id is None):
            add('reference', _("Reference type and reference id must be given together."))
        if self.reference_type is not None and self.reference_type not in ReferenceType.values:
            add('reference_type', _("Unknown reference type '%(t)s'.") % {'t': self.reference_type})

        if len(self.lines) < 2:
            add('lines', _("A posting needs at least two lines."))
        for index, line in enumerate(self.lines, start=1):
            key = f'lines[{index}]'
            if line.line_number != index:
                add(key, _("Line numbers must be consecutive starting at 1 (expected %(n)s).") % {'n': index})
            if not line.account_id:
                add(key, _("Account is required."))
            if line.debit < ZERO or line.credit < ZERO:
                add(key, _("Amounts cannot be negative."))
            elif (line.debit > ZERO) == (line.credit > ZERO):
                add(key, _("Exactly one of debit or credit must be non-zero."))

        difference = abs(self.total_debit - self.total_credit)
        if difference > POSTING_TOLERANCE:
            add('balance', _("Debits (%(dr)s) and credits (%(cr)s) differ by %(diff)s.") % {
                'dr': self.total_debit, 'cr': self.total_credit, 'diff': difference})

        if errors:
            raise ValidationFailed(_("Posting request is invalid."), errors=errors)


# =============================================================================
# Posting engine
# =============================================================================

def _lock_accounts(company: Company, request: PostingRequest) -> Dict[str, Account]:
    """
    Locks every referenced account row and checks it is live, active and owned
    by the company. The account deletion path takes the same row locks.
    """
    wanted = {str(line.account_id) for line in request.lines}
    try:
        accounts = {
            str(acc.pk): acc
            for acc in Account.objects.for_company(company).select_for_update().filter(pk__in=wanted)
        }
    except (ValueError, TypeError, DjangoValidationError):
        raise ValidationFailed(_("Posting request references a malformed account id."))

    errors: Dict[str, List[str]] = {}
    for line in request.lines:
        account = accounts.get(str(line.account_id))
        if account is None:
            errors.setdefault(f'lines[{line.line_number}]', []).append(
                str(_("Account %(id)s not found for this company.") % {'id': line.account_id}))
        elif not account.is_active:
            errors.setdefault(f'lines[{line.line_number}]', []).append(
                str(_("Account %(number)s is inactive.") % {'number': account.account_number}))
    if errors:
        raise ValidationFailed(_("Posting request references unusable accounts."), errors=errors)
    return accounts


def _insert_lines(company: Company, entry: JournalEntry, request: PostingRequest,
                  accounts: Dict[str, Account]) -> List[JournalLine]:
    return JournalLine.objects.bulk_create([
        JournalLine(
            company=company,
            entry=entry,
            account=accounts[str(line.account_id)],
            debit=line.debit.quantize(AMOUNT_QUANTUM),
            credit=line.credit.quantize(AMOUNT_QUANTUM),
            description=line.description or '',
            line_number=line.line_number,
            cost_center_id=line.cost_center_id,
            project_id=line.project_id,
        )
        for line in request.lines
    ])


def _discard_header(company: Company, entry_id: uuid.UUID, log_prefix: str) -> bool:
    """
    Compensating delete for a header whose lines could not be written. Normally
    the transaction rollback has already removed it. Returns False if the
    header could not be removed; reconcile_orphan_entries() cleans it up later.
    """
    try:
        header = JournalEntry.all_objects.filter(company=company, pk=entry_id).first()
        if header is None:
            logger.info(f"{log_prefix} Header {entry_id} was rolled back by the transaction.")
            return True
        header.delete()
        logger.warning(f"{log_prefix} Header {entry_id} removed by compensating delete.")
        return True
    except Exception:
        logger.exception(
            f"{log_prefix} Compensating delete of header {entry_id} FAILED. "
            f"Orphan entry left for reconciliation."
        )
        return False


def post(company: Company, request: PostingRequest, user=None) -> uuid.UUID:
    """
    Writes a balanced, already-posted journal entry for an automatic posting.

    1. Validate the request shape and balance (no writes on failure).
    2. Lock and check the accounts.
    3. Allocate the journal code, insert the header as `posted`, then insert all lines,
       all within one transaction.
    4. If the line insert fails the transaction is rolled back, the header is
       discarded if still visible, and PostingFailed carries the cause.

    Returns the new journal entry id.
    """
    log_prefix = (f"[PostEngine][Co:{company.pk}]"
                  f"[Ref:{request.reference_type or '-'}/{request.reference_id or '-'}]")
    try:
        request.validate()
    except ValidationFailed as exc:
        logger.warning(f"{log_prefix} Rejected posting request: {exc.errors}")
        raise

    entry_id = uuid.uuid4()
    header_written = False
    journal_code = None
    try:
        with transaction.atomic():
            accounts = _lock_accounts(company, request)
            journal_code = sequence_service.next_journal_code(company, request.posting_date)
            with model_validation_as_ledger_error():
                entry = JournalEntry.create_for_company(
                    company, user,
                    id=entry_id,
                    journal_code=journal_code,
                    posting_date=request.posting_date,
                    status=JournalStatus.POSTED.value,
                    source_module=request.source_module,
                    reference_type=request.reference_type,
                    reference_id=request.reference_id,
                    reference_code=request.reference_code or '',
                    description=request.description or '',
                    total_debit=request.total_debit.quantize(AMOUNT_QUANTUM),
                    total_credit=request.total_credit.quantize(AMOUNT_QUANTUM),
                    posted_at=timezone.now(),
                    posted_by=user,
                )
            header_written = True
            _insert_lines(company, entry, request, accounts)
    except Exception as exc:
        if not header_written:
            if isinstance(exc, LedgerError):
                logger.warning(f"{log_prefix} Posting aborted before any write: {exc}")
                raise
            logger.exception(f"{log_prefix} Unexpected storage failure before header insert.")
            raise Internal(_("Posting could not be stored.")) from exc
        logger.error(
            f"{log_prefix} Line insert failed for {journal_code} (ID: {entry_id}); rolling back.",
            exc_info=exc,
        )
        _discard_header(company, entry_id, log_prefix)
        raise PostingFailed(cause=exc) from exc

    logger.info(
        f"{log_prefix} Posted {journal_code} (ID: {entry_id}) with {len(request.lines)} lines, "
        f"total {request.total_debit}."
    )
    return entry_id


# =============================================================================
# Consistency check
# =============================================================================

def reconcile_orphan_entries(company: Optional[Company] = None,
                             older_than: Optional[timedelta] = None) -> List[str]:
    """
    Finds posted entries with no lines (left behind by a failed compensating
    delete or an interrupted posting) and hard-deletes them.

    Entries younger than the grace period are skipped so postings still in
    flight are never touched. Returns the removed journal codes.
    """
    if older_than is None:
        older_than = timedelta(seconds=getattr(settings, 'GL_ORPHAN_GRACE_SECONDS', 600))
    cutoff = timezone.now() - older_than

    candidates = (JournalEntry.all_objects
                  .filter(status=JournalStatus.POSTED.value, created_at__lte=cutoff)
                  .annotate(line_count=Count('lines'))
                  .filter(line_count=0))
    if company is not None:
        candidates = candidates.filter(company=company)

    removed: List[str] = []
    for candidate_id in list(candidates.values_list('pk', flat=True)):
        with transaction.atomic():
            entry = JournalEntry.all_objects.select_for_update().filter(pk=candidate_id).first()
            if entry is None or entry.lines.exists():
                continue
            code, company_id = entry.journal_code, entry.company_id
            entry.delete()
            removed.append(code)
            logger.warning(f"[OrphanRecon][Co:{company_id}] Removed orphan journal entry {code} (ID: {candidate_id}).")

    if removed:
        logger.warning(f"[OrphanRecon] Removed {len(removed)} orphan journal entr{'y' if len(removed) == 1 else 'ies'}.")
    else:
        logger.info("[OrphanRecon] No orphan journal entries found.")
    return removed
