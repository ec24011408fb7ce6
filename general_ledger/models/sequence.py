# general_ledger/models/sequence.py
import logging

from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from .base import TenantScopedModel

logger = logging.getLogger(__name__)


class JournalSequence(TenantScopedModel):
    """
    Per company, per year counter for journal codes. The row is locked with
    select_for_update while a number is issued.
    """
    fiscal_year = models.PositiveIntegerField(
        _("Year"), help_text=_("Calendar year of the posting date the sequence numbers.")
    )
    prefix = models.CharField(_("Prefix"), max_length=20, default='JE')
    padding_digits = models.PositiveSmallIntegerField(
        _("Number Padding Digits"), default=4, validators=[MinValueValidator(1)],
        help_text=_("Digits for the numeric part, including leading zeros (e.g., 4 for '0001').")
    )
    last_number = models.PositiveIntegerField(
        _("Last Number Used"), default=0,
        help_text=_("The last sequential number issued for this company and year.")
    )

    class Meta:
        verbose_name = _("Journal Sequence")
        verbose_name_plural = _("Journal Sequences")
        ordering = ['company_id', 'fiscal_year']
        constraints = [
            models.UniqueConstraint(fields=['company', 'fiscal_year'], name='gl_sequence_unique_company_year'),
        ]

    def __str__(self):
        return f"{self.prefix}-{self.fiscal_year} (last: {self.last_number})"

    def format_number(self, number: int) -> str:
        padding = int(self.padding_digits) if self.padding_digits and self.padding_digits >= 1 else 1
        num_str = str(max(0, number)).zfill(padding)
        return f"{self.prefix}-{self.fiscal_year}-{num_str}"
