# general_ledger/services/journal_service.py

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from company.models import Company
from ledger_core.enums import JournalStatus, ReferenceType, SourceModule
from ..exceptions import (
    AlreadyPosted, Conflict, Immutable, InvalidTransition, NotFound, TooFewLines, Unbalanced, ValidationFailed,
    model_validation_as_ledger_error,
)
from ..models.coa import Account
from ..models.journal import JournalEntry, JournalLine
from . import sequence_service

logger = logging.getLogger("general_ledger.services.journal")

ZERO = Decimal('0.0000')
AMOUNT_QUANTUM = Decimal('0.0001')
POSTING_TOLERANCE = Decimal(str(getattr(settings, 'GL_POSTING_TOLERANCE', '0.0001')))

HEADER_FIELDS = ('posting_date', 'description', 'reference_type', 'reference_id', 'reference_code')


def _user_label(user) -> str:
    return user.get_username() if user is not None else 'System'


def _parse_amount(raw: Any, line_errors: List[str], label: str) -> Optional[Decimal]:
    try:
        return Decimal(str(raw if raw not in (None, '') else '0'))
    except (InvalidOperation, ValueError, TypeError):
        line_errors.append(str(_("Invalid %(side)s amount '%(raw)s'.") % {'side': label, 'raw': raw}))
        return None


def _validate_reference(reference_type: Optional[str], reference_id: Optional[str]):
    if (reference_type in (None, '')) != (reference_id in (None, '')):
        raise ValidationFailed(
            _("Reference type and reference id must be given together."),
            errors={'reference': [_("Provide both reference_type and reference_id, or neither.")]},
        )
    if reference_type and reference_type not in ReferenceType.values:
        raise ValidationFailed(_("Unknown reference type '%(type)s'.") % {'type': reference_type})


def _build_lines(company: Company, lines_data: List[Dict[str, Any]], log_prefix: str) -> List[JournalLine]:
    """
    Validates raw line dicts and returns unsaved JournalLine instances numbered
    from 1. Accounts are looked up by `account_id` or `account_number` within
    the company and must be active.
    """
    if not lines_data:
        raise ValidationFailed(_("A journal entry needs at least one line."),
                               errors={'lines': [_("At least one line is required.")]})

    built: List[JournalLine] = []
    errors: Dict[str, List[str]] = {}
    live_accounts = Account.objects.for_company(company)
    for idx, line_data in enumerate(lines_data, start=1):
        line_errors: List[str] = []
        account_id = line_data.get('account_id')
        account_number = line_data.get('account_number')

        account = None
        if account_id:
            account = live_accounts.filter(pk=account_id).first() if _looks_like_uuid(account_id) else None
        elif account_number:
            account = live_accounts.filter(account_number=account_number).first()
        else:
            line_errors.append(str(_("Account is required (account_id or account_number).")))

        if (account_id or account_number) and account is None:
            line_errors.append(str(_("Account '%(ref)s' does not exist for this company.") % {
                'ref': account_id or account_number}))
        elif account is not None and not account.is_active:
            line_errors.append(str(_("Account %(number)s is inactive.") % {'number': account.account_number}))

        debit = _parse_amount(line_data.get('debit'), line_errors, 'debit')
        credit = _parse_amount(line_data.get('credit'), line_errors, 'credit')
        if debit is not None and credit is not None:
            if debit < ZERO or credit < ZERO:
                line_errors.append(str(_("Amounts cannot be negative.")))
            elif (debit > ZERO) == (credit > ZERO):
                line_errors.append(str(_("Exactly one of debit or credit must be non-zero.")))

        if line_errors:
            errors[f'lines[{idx}]'] = line_errors
            continue

        built.append(JournalLine(
            company=company,
            account=account,
            debit=debit.quantize(AMOUNT_QUANTUM),
            credit=credit.quantize(AMOUNT_QUANTUM),
            description=(line_data.get('description') or '')[:JournalLine._meta.get_field('description').max_length],
            line_number=idx,
            cost_center_id=line_data.get('cost_center_id'),
            project_id=line_data.get('project_id'),
        ))

    if errors:
        logger.warning(f"{log_prefix} Line validation failed: {errors}")
        raise ValidationFailed(_("One or more journal lines are invalid."), errors=errors)
    return built


def _looks_like_uuid(value: Any) -> bool:
    try:
        JournalLine._meta.get_field('id').to_python(value)
    except DjangoValidationError:
        return False
    return True


def _save_lines(entry: JournalEntry, lines: List[JournalLine]) -> None:
    for line in lines:
        line.entry = entry
    JournalLine.objects.bulk_create(lines)


def _lock_entry(company: Company, entry_id: Any) -> JournalEntry:
    # A malformed UUID surfaces as a Django ValidationError from the lookup.
    try:
        return JournalEntry.objects.for_company(company).select_for_update().get(pk=entry_id)
    except (JournalEntry.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFound(_("Journal entry %(id)s not found.") % {'id': entry_id})


def _ensure_draft(entry: JournalEntry, attempted: str):
    if entry.status != JournalStatus.DRAFT.value:
        logger.warning(f"[Journal][Co:{entry.company_id}] Refused to {attempted} {entry.journal_code} ({entry.status}).")
        raise Immutable(_("Journal entry %(code)s is %(status)s and cannot be %(action)s.") % {
            'code': entry.journal_code, 'status': entry.status, 'action': attempted})


# =============================================================================
# Queries
# =============================================================================

def list_journals(
        company: Company,
        search: Optional[str] = None,
        status: Optional[str] = None,
        source_module: Optional[str] = None,
        reference_type: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        account_id: Any = None,
) -> QuerySet:
    """Live journal entries of the company, newest posting date first."""
    queryset = JournalEntry.objects.for_company(company).select_related('posted_by', 'created_by')
    if search:
        queryset = queryset.filter(
            Q(journal_code__icontains=search) | Q(description__icontains=search) | Q(reference_code__icontains=search)
        )
    if status:
        queryset = queryset.filter(status=status)
    if source_module:
        queryset = queryset.filter(source_module=source_module)
    if reference_type:
        queryset = queryset.filter(reference_type=reference_type)
    if date_from:
        queryset = queryset.filter(posting_date__gte=date_from)
    if date_to:
        queryset = queryset.filter(posting_date__lte=date_to)
    if account_id:
        queryset = queryset.filter(lines__account_id=account_id).distinct()
    return queryset.order_by('-posting_date', '-created_at')


def get_journal(company: Company, entry_id: Any) -> JournalEntry:
    """The entry with its lines (and their accounts) prefetched."""
    try:
        return (JournalEntry.objects.for_company(company)
                .select_related('posted_by', 'cancelled_by', 'created_by')
                .prefetch_related('lines__account')
                .get(pk=entry_id))
    except (JournalEntry.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFound(_("Journal entry %(id)s not found.") % {'id': entry_id})


# =============================================================================
# Draft maintenance
# =============================================================================

@transaction.atomic
def create_draft_journal(
        company: Company,
        user,
        posting_date: date,
        description: str,
        lines: List[Dict[str, Any]],
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        reference_code: Optional[str] = None,
) -> JournalEntry:
    """
    Creates a manual journal entry in `draft` with its lines in the same write.
    Drafts may be unbalanced; the balance is enforced when posting.
    """
    log_prefix = f"[JournalCreateDraft][Co:{company.pk}][User:{_user_label(user)}]"
    logger.info(f"{log_prefix} Creating DRAFT journal dated {posting_date} with {len(lines or [])} line(s).")

    if not isinstance(posting_date, date):
        raise ValidationFailed(_("A posting date is required."), errors={'posting_date': [_("Required.")]})
    _validate_reference(reference_type, reference_id)
    built = _build_lines(company, lines, log_prefix)

    total_debit = sum((line.debit for line in built), ZERO)
    total_credit = sum((line.credit for line in built), ZERO)

    with model_validation_as_ledger_error():
        entry = JournalEntry.create_for_company(
            company, user,
            journal_code=sequence_service.next_journal_code(company, posting_date),
            posting_date=posting_date,
            status=JournalStatus.DRAFT.value,
            source_module=SourceModule.MANUAL.value,
            reference_type=reference_type or None,
            reference_id=str(reference_id) if reference_id not in (None, '') else None,
            reference_code=reference_code or '',
            description=description or '',
            total_debit=total_debit,
            total_credit=total_credit,
        )
    _save_lines(entry, built)

    if abs(total_debit - total_credit) > POSTING_TOLERANCE:
        logger.warning(f"{log_prefix} DRAFT {entry.journal_code} created out of balance "
                       f"(Dr {total_debit} / Cr {total_credit}).")
    logger.info(f"{log_prefix} Created DRAFT {entry.journal_code} (ID: {entry.pk}).")
    return entry


@transaction.atomic
def update_draft_journal(
        company: Company,
        user,
        entry_id: Any,
        data: Dict[str, Any],
        expected_version: Optional[int] = None,
) -> JournalEntry:
    """
    Replaces header fields and/or the full line set of a draft. Keys absent from
    `data` are left alone; a `lines` key replaces every line.
    """
    log_prefix = f"[JournalUpdateDraft][Co:{company.pk}][User:{_user_label(user)}][JE:{entry_id}]"
    entry = _lock_entry(company, entry_id)
    _ensure_draft(entry, 'modified')

    if expected_version is not None and int(expected_version) != entry.version:
        raise Conflict(_("Journal entry was modified by someone else (version %(v)s). Reload and retry.") % {
            'v': entry.version})

    unknown = set(data) - set(HEADER_FIELDS) - {'lines'}
    if unknown:
        raise ValidationFailed(_("Fields cannot be updated: %(fields)s.") % {'fields': ', '.join(sorted(unknown))})

    if 'posting_date' in data:
        if not isinstance(data['posting_date'], date):
            raise ValidationFailed(_("A posting date is required."), errors={'posting_date': [_("Required.")]})
        entry.posting_date = data['posting_date']
    if 'description' in data:
        entry.description = data['description'] or ''
    if 'reference_code' in data:
        entry.reference_code = data['reference_code'] or ''
    if 'reference_type' in data or 'reference_id' in data:
        new_type = data.get('reference_type', entry.reference_type) or None
        new_id = data.get('reference_id', entry.reference_id)
        new_id = str(new_id) if new_id not in (None, '') else None
        _validate_reference(new_type, new_id)
        entry.reference_type, entry.reference_id = new_type, new_id

    if 'lines' in data:
        built = _build_lines(company, data['lines'], log_prefix)
        entry.lines.all().delete()
        _save_lines(entry, built)
        entry.total_debit = sum((line.debit for line in built), ZERO)
        entry.total_credit = sum((line.credit for line in built), ZERO)
        logger.debug(f"{log_prefix} Replaced lines ({len(built)}).")

    entry.version += 1
    entry.updated_by = user
    with model_validation_as_ledger_error():
        entry.save()
    logger.info(f"{log_prefix} Updated DRAFT {entry.journal_code} (version {entry.version}).")
    return entry


@transaction.atomic
def discard_draft_journal(company: Company, user, entry_id: Any) -> JournalEntry:
    """Soft-deletes a draft. Posted and cancelled entries are kept forever."""
    log_prefix = f"[JournalDiscard][Co:{company.pk}][User:{_user_label(user)}][JE:{entry_id}]"
    entry = _lock_entry(company, entry_id)
    _ensure_draft(entry, 'discarded')
    entry.updated_by = user
    entry.save(update_fields=['updated_by', 'updated_at'])
    entry.delete()
    logger.info(f"{log_prefix} Discarded DRAFT {entry.journal_code}.")
    return entry


# =============================================================================
# Lifecycle transitions
# =============================================================================

@transaction.atomic
def cancel_journal_entry(company: Company, user, entry_id: Any) -> JournalEntry:
    """
    draft -> cancelled. A posted entry is immutable; a cancelled one cannot be
    cancelled again.
    """
    log_prefix = f"[JournalCancel][Co:{company.pk}][User:{_user_label(user)}][JE:{entry_id}]"
    entry = _lock_entry(company, entry_id)
    if entry.status == JournalStatus.CANCELLED.value:
        raise InvalidTransition(current_status=JournalStatus.CANCELLED, attempted=_('cancel'))
    if entry.status == JournalStatus.POSTED.value:
        logger.warning(f"{log_prefix} Refused to cancel posted entry {entry.journal_code}.")
        raise Immutable(_("Journal entry %(code)s is posted and cannot be cancelled.") % {
            'code': entry.journal_code})

    entry.status = JournalStatus.CANCELLED.value
    entry.cancelled_at = timezone.now()
    entry.cancelled_by = user
    entry.updated_by = user
    entry.version += 1
    entry.save()
    logger.info(f"{log_prefix} Cancelled {entry.journal_code}.")
    return entry


@transaction.atomic
def post_journal_entry(company: Company, user, entry_id: Any) -> JournalEntry:
    """
    draft -> posted for a manually drafted entry.

    The entry row is locked and totals are recomputed from the stored lines.
    Checks run in order: NotFound, AlreadyPosted, InvalidTransition,
    TooFewLines, Unbalanced. On success returns the entry with lines and
    accounts loaded.
    """
    log_prefix = f"[JournalPost][Co:{company.pk}][User:{_user_label(user)}][JE:{entry_id}]"
    entry = _lock_entry(company, entry_id)

    if entry.status == JournalStatus.POSTED.value:
        logger.warning(f"{log_prefix} {entry.journal_code} is already posted.")
        raise AlreadyPosted(_("Journal entry %(code)s has already been posted.") % {'code': entry.journal_code})
    if entry.status != JournalStatus.DRAFT.value:
        raise InvalidTransition(current_status=JournalStatus(entry.status), attempted=_('post'))

    line_count = entry.lines.count()
    if line_count < 2:
        logger.warning(f"{log_prefix} {entry.journal_code} has {line_count} line(s); cannot post.")
        raise TooFewLines(_("Journal entry %(code)s has %(n)s line(s); at least two are required.") % {
            'code': entry.journal_code, 'n': line_count})

    total_debit, total_credit = entry.compute_totals()
    difference = abs(total_debit - total_credit)
    if difference > POSTING_TOLERANCE:
        logger.warning(f"{log_prefix} {entry.journal_code} out of balance by {difference}.")
        raise Unbalanced(difference=difference)

    entry.total_debit = total_debit
    entry.total_credit = total_credit
    entry.status = JournalStatus.POSTED.value
    entry.posted_at = timezone.now()
    entry.posted_by = user
    entry.updated_by = user
    entry.version += 1
    entry.save()
    logger.info(f"{log_prefix} Posted {entry.journal_code} (Dr {total_debit} / Cr {total_credit}).")
    return get_journal(company, entry.pk)
