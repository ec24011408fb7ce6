# general_ledger/services/ledger_service.py

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Union

from django.conf import settings
from django.db import models
from django.db.models import Sum
from django.db.models.functions import Coalesce
from django.utils.translation import gettext_lazy as _

from company.models import Company
from ledger_core.enums import AccountNature, JournalStatus
from ..exceptions import ValidationFailed
from ..models.coa import Account, resolve_normal_balance
from ..models.journal import JournalLine
from .coa_service import get_account

logger = logging.getLogger("general_ledger.services.ledger")

ZERO = Decimal('0.0000')
TRIAL_BALANCE_TOLERANCE = Decimal(str(getattr(settings, 'GL_TRIAL_BALANCE_TOLERANCE', '0.01')))


def _posted_lines(company: Company):
    """Lines of posted, non-deleted entries of the company."""
    return JournalLine.objects.filter(
        company=company,
        entry__status=JournalStatus.POSTED.value,
        entry__deleted_at__isnull=True,
    )


def _signed(nature: str, debit: Decimal, credit: Decimal) -> Decimal:
    if nature == AccountNature.DEBIT.value:
        return debit - credit
    return credit - debit


def _sum_debit_credit(queryset) -> Dict[str, Decimal]:
    return queryset.aggregate(
        debit=Coalesce(Sum('debit'), ZERO, output_field=models.DecimalField()),
        credit=Coalesce(Sum('credit'), ZERO, output_field=models.DecimalField()),
    )


def opening_balance(company: Company, account: Account, before: date) -> Decimal:
    """Net posted balance of the account strictly before `before`, signed by its normal balance."""
    totals = _sum_debit_credit(_posted_lines(company).filter(account=account, entry__posting_date__lt=before))
    return _signed(resolve_normal_balance(account.account_type), totals['debit'], totals['credit'])


def query_ledger(
        company: Company,
        account: Union[Account, Any],
        date_from: date,
        date_to: date,
) -> Dict[str, Any]:
    """
    Account ledger for [date_from, date_to] with an opening balance and a
    running balance per line.

    Lines are walked in posting date order; ties are broken by journal code,
    then line number, so the running balance is deterministic.
    """
    if date_from > date_to:
        raise ValidationFailed(
            _("date_from (%(start)s) cannot be after date_to (%(end)s).") % {'start': date_from, 'end': date_to},
            errors={'date_from': [_("Must be on or before date_to.")]},
        )
    if not isinstance(account, Account):
        account = get_account(company, account)
    elif account.company_id != company.pk:
        account = get_account(company, account.pk)

    nature = resolve_normal_balance(account.account_type)
    log_prefix = f"[Ledger][Co:{company.pk}][Acc:{account.account_number}]"
    logger.info(f"{log_prefix} Ledger requested for {date_from} to {date_to}.")

    opening = opening_balance(company, account, date_from)

    lines = (_posted_lines(company)
             .filter(account=account, entry__posting_date__gte=date_from, entry__posting_date__lte=date_to)
             .select_related('entry')
             .order_by('entry__posting_date', 'entry__journal_code', 'line_number'))

    entries: List[Dict[str, Any]] = []
    running = opening
    total_debits = ZERO
    total_credits = ZERO
    for line in lines:
        entry = line.entry
        running += _signed(nature, line.debit, line.credit)
        total_debits += line.debit
        total_credits += line.credit
        entries.append({
            'line_id': line.pk,
            'journal_entry_id': entry.pk,
            'journal_code': entry.journal_code,
            'posting_date': entry.posting_date,
            'description': line.description or entry.description,
            'reference_type': entry.reference_type,
            'reference_code': entry.reference_code,
            'source_module': entry.source_module,
            'debit': line.debit,
            'credit': line.credit,
            'balance': running,
        })

    logger.debug(f"{log_prefix} {len(entries)} line(s); opening {opening}, closing {running}.")
    return {
        'account': account,
        'normal_balance': nature,
        'date_from': date_from,
        'date_to': date_to,
        'opening_balance': opening,
        'closing_balance': running,
        'total_debits': total_debits,
        'total_credits': total_credits,
        'entries': entries,
    }


def trial_balance(company: Company, as_of_date: date) -> Dict[str, Any]:
    """
    Balances of every account with posted activity up to and including
    `as_of_date`. A balance is shown on its account's normal side; a negative
    balance moves to the other column.
    """
    per_account = (_posted_lines(company)
                   .filter(entry__posting_date__lte=as_of_date)
                   .values('account_id')
                   .annotate(
                       debit=Coalesce(Sum('debit'), ZERO, output_field=models.DecimalField()),
                       credit=Coalesce(Sum('credit'), ZERO, output_field=models.DecimalField()),
                   ))
    sums = {row['account_id']: row for row in per_account}
    accounts = Account.objects.for_company(company).filter(pk__in=list(sums)).order_by('account_number')

    rows: List[Dict[str, Any]] = []
    total_debit = ZERO
    total_credit = ZERO
    for account in accounts:
        nature = resolve_normal_balance(account.account_type)
        balance = _signed(nature, sums[account.pk]['debit'], sums[account.pk]['credit'])
        if balance == ZERO:
            continue
        on_debit_side = (nature == AccountNature.DEBIT.value) == (balance > ZERO)
        debit = abs(balance) if on_debit_side else ZERO
        credit = ZERO if on_debit_side else abs(balance)
        total_debit += debit
        total_credit += credit
        rows.append({
            'account_id': account.pk,
            'account_number': account.account_number,
            'account_name': account.name,
            'account_type': account.account_type,
            'debit': debit,
            'credit': credit,
        })

    is_balanced = abs(total_debit - total_credit) <= TRIAL_BALANCE_TOLERANCE
    if not is_balanced:
        logger.error(f"[TrialBalance][Co:{company.pk}] Out of balance as of {as_of_date}: "
                     f"Dr {total_debit} / Cr {total_credit}.")
    return {
        'as_of_date': as_of_date,
        'rows': rows,
        'total_debit': total_debit,
        'total_credit': total_credit,
        'is_balanced': is_balanced,
    }
