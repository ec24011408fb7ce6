# general_ledger/services/sequence_service.py

import logging
from datetime import date

from django.db import transaction

from company.models import Company
from ..models.sequence import JournalSequence

logger = logging.getLogger("general_ledger.services.sequence")

DEFAULT_PREFIX = 'JE'
DEFAULT_PADDING = 4


def get_or_create_sequence(company: Company, year: int) -> JournalSequence:
    """
    Retrieves the JournalSequence for the company and year, creating it with
    default settings if it does not exist yet. Numbering restarts at 1 each year.
    """
    sequence, created = JournalSequence.objects.get_or_create(
        company=company,
        fiscal_year=year,
        defaults={'prefix': DEFAULT_PREFIX, 'padding_digits': DEFAULT_PADDING, 'last_number': 0},
    )
    if created:
        logger.info(f"[JournalSeq][Co:{company.pk}] Created journal sequence for year {year}.")
    return sequence


@transaction.atomic
def next_journal_code(company: Company, posting_date: date) -> str:
    """
    Atomically issues the next journal code for the company and the posting
    date's year, e.g. ``JE-2025-0042``.

    The sequence row is locked with `select_for_update` so concurrent postings
    serialize here instead of reading the same "highest code". When called
    inside the posting transaction, a rollback also returns the number, which
    keeps codes gap-free.
    """
    sequence = get_or_create_sequence(company, posting_date.year)
    locked = JournalSequence.objects.select_for_update().get(pk=sequence.pk, company=company)

    locked.last_number += 1
    locked.save(update_fields=['last_number', 'updated_at'])

    code = locked.format_number(locked.last_number)
    logger.debug(f"[JournalSeq][Co:{company.pk}] Issued journal code '{code}'.")
    return code
