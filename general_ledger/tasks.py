# general_ledger/tasks.py
import logging
from datetime import timedelta
from typing import Any, Optional

from celery import shared_task
from django.conf import settings
from django.db import OperationalError

from company.models import Company
from .services.posting_service import reconcile_orphan_entries

logger = logging.getLogger("general_ledger.tasks")

MAX_RETRIES_ORPHAN_RECON = getattr(settings, 'CELERY_TASK_ORPHAN_RECON_MAX_RETRIES', 3)
RETRY_DELAY_ORPHAN_RECON = getattr(settings, 'CELERY_TASK_ORPHAN_RECON_RETRY_DELAY', 60)  # seconds


@shared_task(
    bind=True,
    max_retries=MAX_RETRIES_ORPHAN_RECON,
    default_retry_delay=RETRY_DELAY_ORPHAN_RECON,
    name="general_ledger.tasks.reconcile_orphan_journal_entries",
    autoretry_for=(OperationalError,),
    retry_backoff=True,
    acks_late=True,
)
def reconcile_orphan_journal_entries(self, company_id: Optional[Any] = None,
                                     older_than_seconds: Optional[int] = None) -> int:
    """
    Periodic consistency check: removes posted journal entries left without
    lines. Scheduled through CELERY_BEAT_SCHEDULE; may also be queued for a
    single company.
    """
    log_prefix = f"[OrphanReconTask][Co:{company_id or 'ALL'}][Attempt:{self.request.retries + 1}]"
    company = None
    if company_id is not None:
        company = Company.objects.filter(pk=company_id).first()
        if company is None:
            logger.error(f"{log_prefix} Company not found. Task will not run.")
            return 0

    older_than = timedelta(seconds=older_than_seconds) if older_than_seconds is not None else None
    removed = reconcile_orphan_entries(company=company, older_than=older_than)
    logger.info(f"{log_prefix} Completed; {len(removed)} orphan entr{'y' if len(removed) == 1 else 'ies'} removed.")
    return len(removed)
