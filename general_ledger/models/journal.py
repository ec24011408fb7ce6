# general_ledger/models/journal.py
import logging
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q, Sum
from django.db.models.functions import Coalesce
from django.utils.translation import gettext_lazy as _
from safedelete import HARD_DELETE

from company.models import Company
from ledger_core.enums import JournalStatus, SourceModule, ReferenceType
from ..exceptions import Immutable
from .base import TenantScopedModel
from .coa import Account

logger = logging.getLogger(__name__)

ZERO = Decimal('0.0000')
# Fixed in the schema; GL_POSTING_TOLERANCE must not exceed it.
BALANCE_TOLERANCE = Decimal('0.0001')
LOCKED_STATUSES = (JournalStatus.POSTED.value, JournalStatus.CANCELLED.value)


class JournalEntry(TenantScopedModel):
    """
    Header of a double-entry journal. Lines live in JournalLine.

    Once an entry leaves `draft` (posted or cancelled) the stored row is frozen:
    saving it again raises Immutable. The only deletion allowed for a posted
    entry is the hard delete of a line-less header (posting rollback/orphan cleanup).
    """
    journal_code = models.CharField(
        _("Journal Code"), max_length=50, db_index=True, editable=False,
        help_text=_("Sequential code unique within the company (e.g., JE-2025-0042).")
    )
    posting_date = models.DateField(_("Posting Date"), db_index=True)
    status = models.CharField(
        _("Status"), max_length=20, choices=JournalStatus.choices,
        default=JournalStatus.DRAFT.value, db_index=True
    )
    source_module = models.CharField(
        _("Source Module"), max_length=20, choices=SourceModule.choices,
        default=SourceModule.MANUAL.value
    )
    reference_type = models.CharField(
        _("Reference Type"), max_length=30, choices=ReferenceType.choices, null=True, blank=True
    )
    reference_id = models.CharField(
        _("Reference ID"), max_length=64, null=True, blank=True, db_index=True,
        help_text=_("Identifier of the originating domain document.")
    )
    reference_code = models.CharField(_("Reference Code"), max_length=100, blank=True, default='')
    description = models.TextField(_("Description"), blank=True, default='')
    total_debit = models.DecimalField(_("Total Debit"), max_digits=20, decimal_places=4, default=ZERO)
    total_credit = models.DecimalField(_("Total Credit"), max_digits=20, decimal_places=4, default=ZERO)

    posted_at = models.DateTimeField(_("Posted At"), null=True, blank=True, editable=False)
    posted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, verbose_name=_("Posted By"), on_delete=models.SET_NULL,
        null=True, blank=True, related_name='posted_journal_entries', editable=False
    )
    cancelled_at = models.DateTimeField(_("Cancelled At"), null=True, blank=True, editable=False)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, verbose_name=_("Cancelled By"), on_delete=models.SET_NULL,
        null=True, blank=True, related_name='cancelled_journal_entries', editable=False
    )
    version = models.PositiveIntegerField(_("Version"), default=1, editable=False)

    class Meta:
        verbose_name = _("Journal Entry")
        verbose_name_plural = _("Journal Entries")
        ordering = ['-posting_date', '-created_at']
        constraints = [
            models.UniqueConstraint(fields=['company', 'journal_code'], name='gl_journal_unique_code'),
            models.CheckConstraint(
                condition=Q(status__in=JournalStatus.values), name='gl_journal_status_valid'
            ),
            models.CheckConstraint(
                condition=~Q(status=JournalStatus.POSTED.value) | Q(
                    total_debit__lte=F('total_credit') + BALANCE_TOLERANCE,
                    total_credit__lte=F('total_debit') + BALANCE_TOLERANCE,
                ),
                name='gl_journal_balanced_when_posted',
            ),
            models.CheckConstraint(
                condition=(
                    Q(reference_type__isnull=True, reference_id__isnull=True)
                    | Q(reference_type__isnull=False, reference_id__isnull=False)
                ),
                name='gl_journal_reference_pair',
            ),
        ]
        indexes = [
            models.Index(fields=['company', 'posting_date'], name='gl_je_co_date_idx'),
            models.Index(fields=['company', 'status'], name='gl_je_co_status_idx'),
            models.Index(fields=['company', 'reference_type', 'reference_id'], name='gl_je_co_ref_idx'),
        ]

    def __str__(self):
        return f"{self.journal_code} ({self.get_status_display()})"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._stored_status = instance.__dict__.get('status')
        return instance

    @property
    def is_locked(self) -> bool:
        """True once the stored row is posted or cancelled."""
        return getattr(self, '_stored_status', None) in LOCKED_STATUSES

    def save(self, *args, **kwargs):
        if not self._state.adding and self.is_locked:
            raise Immutable(
                _("Journal entry %(code)s is %(status)s and cannot be modified.") % {
                    'code': self.journal_code, 'status': self._stored_status}
            )
        super().save(*args, **kwargs)
        self._stored_status = self.status

    def delete(self, force_policy=None, **kwargs):
        if self.status != JournalStatus.DRAFT.value or self.is_locked:
            if self.lines.exists():
                raise Immutable(
                    _("Journal entry %(code)s is %(status)s and cannot be deleted.") % {
                        'code': self.journal_code, 'status': self.status}
                )
            logger.warning(
                f"[JournalEntry][Co:{self.company_id}] Hard deleting line-less {self.status} entry "
                f"{self.journal_code} (ID: {self.pk})."
            )
            return super().delete(force_policy=HARD_DELETE, **kwargs)
        return super().delete(force_policy=force_policy, **kwargs)

    def compute_totals(self):
        """Sums the stored lines; returns (total_debit, total_credit)."""
        totals = self.lines.aggregate(
            debit=Coalesce(Sum('debit'), ZERO, output_field=models.DecimalField()),
            credit=Coalesce(Sum('credit'), ZERO, output_field=models.DecimalField()),
        )
        return totals['debit'], totals['credit']


class JournalLine(models.Model):
    """
    One debit or credit line of a JournalEntry. Lines are created together with
    their entry and never modified once the entry has left draft.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(
        Company, verbose_name=_("Company"), on_delete=models.PROTECT, related_name='journal_lines'
    )
    entry = models.ForeignKey(
        JournalEntry, verbose_name=_("Journal Entry"), on_delete=models.CASCADE, related_name='lines'
    )
    account = models.ForeignKey(
        Account, verbose_name=_("Account"), on_delete=models.PROTECT, related_name='journal_lines'
    )
    debit = models.DecimalField(_("Debit"), max_digits=20, decimal_places=4, default=ZERO,
                                validators=[MinValueValidator(ZERO)])
    credit = models.DecimalField(_("Credit"), max_digits=20, decimal_places=4, default=ZERO,
                                 validators=[MinValueValidator(ZERO)])
    description = models.CharField(_("Description"), max_length=500, blank=True, default='')
    line_number = models.PositiveIntegerField(_("Line Number"), validators=[MinValueValidator(1)])
    cost_center_id = models.UUIDField(_("Cost Center"), null=True, blank=True)
    project_id = models.UUIDField(_("Project"), null=True, blank=True)
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)

    class Meta:
        verbose_name = _("Journal Line")
        verbose_name_plural = _("Journal Lines")
        ordering = ['line_number']
        constraints = [
            models.UniqueConstraint(fields=['entry', 'line_number'], name='gl_line_unique_number'),
            models.CheckConstraint(condition=Q(debit__gte=0), name='gl_line_debit_non_negative'),
            models.CheckConstraint(condition=Q(credit__gte=0), name='gl_line_credit_non_negative'),
            models.CheckConstraint(condition=Q(line_number__gt=0), name='gl_line_number_positive'),
        ]
        indexes = [
            models.Index(fields=['company', 'account'], name='gl_line_co_acc_idx'),
        ]

    def __str__(self):
        side = f"Dr {self.debit}" if self.debit else f"Cr {self.credit}"
        return f"#{self.line_number} {self.account_id} {side}"

    def _guard_entry_is_draft(self, action: str):
        entry_status = JournalEntry.all_objects.filter(pk=self.entry_id).values_list('status', flat=True).first()
        if entry_status in LOCKED_STATUSES:
            raise Immutable(
                _("Cannot %(action)s a line of a %(status)s journal entry.") % {'action': action, 'status': entry_status}
            )

    def save(self, *args, **kwargs):
        self._guard_entry_is_draft('save')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        self._guard_entry_is_draft('delete')
        return super().delete(*args, **kwargs)
