# general_ledger/models/coa.py
import logging
from typing import Dict, List

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from ledger_core.enums import AccountType, AccountNature
from .base import TenantScopedModel

logger = logging.getLogger(__name__)

MAX_ACCOUNT_LEVEL = 10

# --- Constants ---
# Mapping from AccountType to its normal balance side. This is the only place
# the mapping is defined; use resolve_normal_balance() everywhere else.
ACCOUNT_TYPE_TO_NATURE: Dict[str, str] = {
    AccountType.ASSET.value: AccountNature.DEBIT.value,
    AccountType.EXPENSE.value: AccountNature.DEBIT.value,
    AccountType.COGS.value: AccountNature.DEBIT.value,
    AccountType.LIABILITY.value: AccountNature.CREDIT.value,
    AccountType.EQUITY.value: AccountNature.CREDIT.value,
    AccountType.REVENUE.value: AccountNature.CREDIT.value,
}


def resolve_normal_balance(account_type: str) -> str:
    """
    Returns AccountNature.DEBIT for asset/expense/cogs and AccountNature.CREDIT
    for liability/equity/revenue.

    Raises ValueError for an unknown account type.
    """
    try:
        return ACCOUNT_TYPE_TO_NATURE[str(account_type)]
    except KeyError:
        raise ValueError(f"Unknown account type '{account_type}'; cannot resolve normal balance.")


class Account(TenantScopedModel):
    """
    An individual ledger account in a company's Chart of Accounts.
    Accounts form a tree via `parent_account`; `level` is 1 for roots and
    parent.level + 1 otherwise.
    """
    account_number = models.CharField(
        _("Account Number"), max_length=50, db_index=True,
        help_text=_("Human-assigned account number, unique among live accounts of the company (e.g., A-1200).")
    )
    name = models.CharField(_("Account Name"), max_length=255)
    account_type = models.CharField(
        _("Account Type"), max_length=20, choices=AccountType.choices, db_index=True
    )
    parent_account = models.ForeignKey(
        'self', verbose_name=_("Parent Account"),
        on_delete=models.PROTECT,
        null=True, blank=True,
        related_name='child_accounts',
        help_text=_("Leave blank for a top-level account.")
    )
    is_system_account = models.BooleanField(
        _("System Account"), default=False,
        help_text=_("System accounts cannot be deleted and their number cannot be changed.")
    )
    is_active = models.BooleanField(_("Is Active"), default=True, db_index=True)
    level = models.PositiveSmallIntegerField(
        _("Level"), default=1,
        validators=[MinValueValidator(1), MaxValueValidator(MAX_ACCOUNT_LEVEL)],
        help_text=_("Depth in the account tree; 1 for top-level accounts.")
    )
    sort_order = models.IntegerField(_("Sort Order"), default=0)
    description = models.TextField(_("Description"), blank=True)
    version = models.PositiveIntegerField(
        _("Version"), default=1, editable=False,
        help_text=_("Optimistic concurrency counter, incremented on every update.")
    )

    class Meta:
        verbose_name = _('Account')
        verbose_name_plural = _('Accounts')
        ordering = ['sort_order', 'account_number']
        constraints = [
            models.UniqueConstraint(
                fields=['company', 'account_number'],
                condition=Q(deleted_at__isnull=True),
                name='gl_account_unique_live_number',
            ),
            models.CheckConstraint(
                condition=Q(level__gte=1) & Q(level__lte=MAX_ACCOUNT_LEVEL),
                name='gl_account_level_range',
            ),
            models.CheckConstraint(
                condition=Q(account_type__in=AccountType.values),
                name='gl_account_type_valid',
            ),
        ]
        indexes = [
            models.Index(fields=['company', 'account_type'], name='gl_acc_co_type_idx'),
            models.Index(fields=['company', 'is_active'], name='gl_acc_co_active_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.account_number} - {self.name}"

    @property
    def normal_balance(self) -> str:
        return resolve_normal_balance(self.account_type)

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == AccountNature.DEBIT.value

    def _set_derived_fields(self):
        self.level = (self.parent_account.level + 1) if self.parent_account_id else 1

    def get_ancestors(self) -> List['Account']:
        """Ancestors from the direct parent up to the root."""
        ancestors, parent, seen = [], self.parent_account, {self.pk}
        while parent is not None and parent.pk not in seen:
            ancestors.append(parent)
            seen.add(parent.pk)
            parent = parent.parent_account
        return ancestors

    def clean(self):
        super().clean()
        if self.parent_account_id:
            if self.parent_account_id == self.pk:
                raise ValidationError({'parent_account': _("An account cannot be its own parent.")})
            if self.parent_account.company_id != self.company_id:
                raise ValidationError({'parent_account': _("Parent account must belong to the same company.")})
            if not self._state.adding:
                node, seen = self.parent_account, set()
                while node is not None and node.pk not in seen:
                    if node.pk == self.pk:
                        raise ValidationError(
                            {'parent_account': _("Parent cannot be a descendant of this account.")})
                    seen.add(node.pk)
                    node = node.parent_account
