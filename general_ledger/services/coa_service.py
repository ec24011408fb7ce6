# general_ledger/services/coa_service.py

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils.translation import gettext_lazy as _

from company.models import Company
from ledger_core.constants import DEFAULT_CHART_OF_ACCOUNTS
from ledger_core.enums import AccountType
from ..exceptions import (
    Conflict, Forbidden, NotFound, SelfParent, ValidationFailed, model_validation_as_ledger_error,
)
from ..models.coa import Account, MAX_ACCOUNT_LEVEL, resolve_normal_balance
from ..models.journal import JournalLine

logger = logging.getLogger("general_ledger.services.coa")

# Public re-export: the one normal-balance rule for the whole ledger.
__all__ = [
    'resolve_normal_balance', 'create_account', 'update_account', 'delete_account',
    'list_accounts', 'get_account', 'get_account_by_number', 'seed_default_accounts',
]

UPDATABLE_FIELDS = ('account_number', 'name', 'account_type', 'parent_account_id',
                    'is_active', 'sort_order', 'description')


def _user_label(user) -> str:
    return user.get_username() if user is not None else 'System'


# =============================================================================
# Queries
# =============================================================================

def list_accounts(
        company: Company,
        search: Optional[str] = None,
        account_type: Optional[str] = None,
        is_active: Optional[bool] = None,
        is_system_account: Optional[bool] = None,
) -> QuerySet:
    """Live accounts of the company ordered by sort order, then account number."""
    queryset = Account.objects.for_company(company).select_related('parent_account')
    if search:
        queryset = queryset.filter(Q(account_number__icontains=search) | Q(name__icontains=search))
    if account_type:
        queryset = queryset.filter(account_type=account_type)
    if is_active is not None:
        queryset = queryset.filter(is_active=is_active)
    if is_system_account is not None:
        queryset = queryset.filter(is_system_account=is_system_account)
    return queryset.order_by('sort_order', 'account_number')


def get_account(company: Company, account_id: Any) -> Account:
    try:
        return Account.objects.for_company(company).select_related('parent_account').get(pk=account_id)
    except (Account.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFound(_("Account %(id)s not found.") % {'id': account_id})


def get_account_by_number(company: Company, account_number: str) -> Account:
    try:
        return Account.objects.for_company(company).get(account_number=account_number)
    except Account.DoesNotExist:
        raise NotFound(_("Account number %(number)s not found.") % {'number': account_number})


def _number_taken(company: Company, account_number: str, exclude_pk: Any = None) -> bool:
    queryset = Account.objects.for_company(company).filter(account_number=account_number)
    if exclude_pk is not None:
        queryset = queryset.exclude(pk=exclude_pk)
    return queryset.exists()


def _validate_account_type(account_type: str):
    if account_type not in AccountType.values:
        raise ValidationFailed(
            _("Invalid account type '%(type)s'.") % {'type': account_type},
            errors={'account_type': [_("Must be one of: %(types)s.") % {'types': ', '.join(AccountType.values)}]},
        )


# =============================================================================
# Commands
# =============================================================================

@transaction.atomic
def create_account(
        company: Company,
        account_number: str,
        name: str,
        account_type: str,
        parent_account_id: Any = None,
        user=None,
        *,
        sort_order: int = 0,
        description: str = '',
        is_system_account: bool = False,
) -> Account:
    """
    Creates an active account. `level` is derived from the parent (parent.level + 1, or 1).

    Raises:
        Conflict: The account number already exists for the company.
        NotFound: `parent_account_id` does not resolve to a live account of the company.
        ValidationFailed: Bad account type, blank number/name, or the tree would get too deep.
    """
    log_prefix = f"[CreateAccount][Co:{company.pk}][User:{_user_label(user)}]"
    account_number = (account_number or '').strip()
    if not account_number or not (name or '').strip():
        raise ValidationFailed(_("Account number and name are required."))
    _validate_account_type(account_type)

    if _number_taken(company, account_number):
        logger.warning(f"{log_prefix} Duplicate account number '{account_number}'.")
        raise Conflict(_("Account number %(number)s already exists.") % {'number': account_number})

    parent = None
    if parent_account_id:
        try:
            parent = Account.objects.for_company(company).get(pk=parent_account_id)
        except (Account.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFound(_("Parent account %(id)s not found.") % {'id': parent_account_id})
        if parent.level >= MAX_ACCOUNT_LEVEL:
            raise ValidationFailed(
                _("Account tree cannot be deeper than %(max)s levels.") % {'max': MAX_ACCOUNT_LEVEL}
            )

    with model_validation_as_ledger_error():
        account = Account.create_for_company(
            company, user,
            account_number=account_number,
            name=name.strip(),
            account_type=account_type,
            parent_account=parent,
            is_system_account=is_system_account,
            is_active=True,
            sort_order=sort_order or 0,
            description=description or '',
        )
    logger.info(f"{log_prefix} Created account {account.account_number} (ID: {account.pk}, level {account.level}).")
    return account


def _check_reparent(account: Account, new_parent: Account):
    """Walks the new parent's ancestor chain; `account` must not appear in it."""
    if new_parent.pk == account.pk:
        raise SelfParent()
    node, hops = new_parent, 0
    while node is not None and hops <= MAX_ACCOUNT_LEVEL + 1:
        if node.pk == account.pk:
            raise ValidationFailed(
                _("Circular hierarchy: %(parent)s is a descendant of %(account)s.") % {
                    'parent': new_parent.account_number, 'account': account.account_number},
                errors={'parent_account_id': [_("Parent cannot be a descendant of this account.")]},
            )
        node = node.parent_account
        hops += 1


def _subtree(account: Account) -> List[Tuple[Account, int]]:
    """Live descendants with their depth below `account`, parents before children."""
    result, frontier, depth = [], [account], 0
    while frontier:
        depth += 1
        children = list(
            Account.objects.filter(parent_account__in=[node.pk for node in frontier]).order_by('account_number')
        )
        result.extend((child, depth) for child in children)
        frontier = children
    return result


def _relevel_subtree(account: Account, user) -> int:
    """Recomputes `level` for every live descendant. Returns the number of rows changed."""
    changed = 0
    levels = {account.pk: account.level}
    for child, _depth in _subtree(account):
        new_level = levels[child.parent_account_id] + 1
        levels[child.pk] = new_level
        if child.level != new_level:
            child.level = new_level
            child.version += 1
            child.updated_by = user
            child.save(update_fields=['level', 'version', 'updated_by', 'updated_at'])
            changed += 1
    return changed


@transaction.atomic
def update_account(
        company: Company,
        account_id: Any,
        patch: Dict[str, Any],
        user=None,
        expected_version: Optional[int] = None,
) -> Account:
    """
    Partially updates an account: only keys present in `patch` are applied.

    Re-parenting validates the whole ancestor chain (self-parent raises
    SelfParent, longer cycles raise ValidationFailed) and recomputes the level
    of the account and of its entire subtree.
    """
    log_prefix = f"[UpdateAccount][Co:{company.pk}][Acc:{account_id}][User:{_user_label(user)}]"
    try:
        account = Account.objects.for_company(company).select_for_update().get(pk=account_id)
    except (Account.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFound(_("Account %(id)s not found.") % {'id': account_id})

    if expected_version is not None and int(expected_version) != account.version:
        logger.warning(f"{log_prefix} Stale version {expected_version}, current {account.version}.")
        raise Conflict(_("Account was modified by someone else (version %(v)s). Reload and retry.") % {
            'v': account.version})

    unknown = set(patch) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationFailed(_("Fields cannot be updated: %(fields)s.") % {'fields': ', '.join(sorted(unknown))})

    if 'account_number' in patch:
        new_number = (patch['account_number'] or '').strip()
        if new_number != account.account_number:
            if account.is_system_account:
                raise Forbidden(_("The number of system account %(number)s cannot be changed.") % {
                    'number': account.account_number})
            if not new_number:
                raise ValidationFailed(_("Account number cannot be blank."))
            if _number_taken(company, new_number, exclude_pk=account.pk):
                raise Conflict(_("Account number %(number)s already exists.") % {'number': new_number})
            account.account_number = new_number

    if 'name' in patch:
        if not (patch['name'] or '').strip():
            raise ValidationFailed(_("Account name cannot be blank."))
        account.name = patch['name'].strip()
    if 'account_type' in patch:
        _validate_account_type(patch['account_type'])
        account.account_type = patch['account_type']
    if 'is_active' in patch:
        account.is_active = bool(patch['is_active'])
    if 'sort_order' in patch:
        account.sort_order = patch['sort_order'] or 0
    if 'description' in patch:
        account.description = patch['description'] or ''

    reparented = False
    if 'parent_account_id' in patch and patch['parent_account_id'] != account.parent_account_id:
        new_parent_id = patch['parent_account_id']
        if new_parent_id is None:
            account.parent_account = None
        else:
            if str(new_parent_id) == str(account.pk):
                raise SelfParent()
            try:
                new_parent = Account.objects.for_company(company).get(pk=new_parent_id)
            except (Account.DoesNotExist, ValueError, DjangoValidationError):
                raise NotFound(_("Parent account %(id)s not found.") % {'id': new_parent_id})
            _check_reparent(account, new_parent)
            account.parent_account = new_parent
        reparented = True

        new_level = (account.parent_account.level + 1) if account.parent_account else 1
        deepest = max((depth for _child, depth in _subtree(account)), default=0)
        if new_level + deepest > MAX_ACCOUNT_LEVEL:
            raise ValidationFailed(
                _("Account tree cannot be deeper than %(max)s levels.") % {'max': MAX_ACCOUNT_LEVEL}
            )

    account.version += 1
    account.updated_by = user
    with model_validation_as_ledger_error():
        account.save()

    if reparented:
        changed = _relevel_subtree(account, user)
        logger.info(f"{log_prefix} Re-parented to {account.parent_account_id}; level {account.level}, "
                    f"{changed} descendant level(s) recomputed.")
    logger.info(f"{log_prefix} Updated fields {sorted(patch)} (version {account.version}).")
    return account


@transaction.atomic
def delete_account(company: Company, account_id: Any, user=None) -> Account:
    """
    Soft-deletes an unused, non-system account and forces it inactive.

    The account row is locked first; the posting path locks the same rows while
    validating lines, so a line cannot slip in between the check and the delete.

    Raises:
        Forbidden: system account.
        Conflict: any journal line references the account, or it has live sub-accounts.
    """
    log_prefix = f"[DeleteAccount][Co:{company.pk}][Acc:{account_id}][User:{_user_label(user)}]"
    try:
        account = Account.objects.for_company(company).select_for_update().get(pk=account_id)
    except (Account.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFound(_("Account %(id)s not found.") % {'id': account_id})

    if account.is_system_account:
        logger.warning(f"{log_prefix} Refused: system account {account.account_number}.")
        raise Forbidden(_("System account %(number)s cannot be deleted.") % {'number': account.account_number})

    if JournalLine.objects.filter(account=account).exists():
        logger.warning(f"{log_prefix} Refused: account {account.account_number} has journal lines.")
        raise Conflict(
            _("Account %(number)s has journal entries and cannot be deleted. Deactivate it instead.") % {
                'number': account.account_number}
        )
    if Account.objects.filter(parent_account=account).exists():
        raise Conflict(
            _("Account %(number)s has active sub-accounts. Delete or move them first.") % {
                'number': account.account_number}
        )

    account.is_active = False
    account.version += 1
    account.updated_by = user
    account.save(update_fields=['is_active', 'version', 'updated_by', 'updated_at'])
    account.delete()
    logger.info(f"{log_prefix} Soft deleted account {account.account_number}.")
    return account


# =============================================================================
# Default Chart of Accounts provisioning
# =============================================================================

@transaction.atomic
def seed_default_accounts(
        company: Company,
        user=None,
        chart: Iterable[tuple] = DEFAULT_CHART_OF_ACCOUNTS,
) -> Tuple[int, int]:
    """
    Provisions the default Chart of Accounts for a company. Numbers that already
    exist are left untouched, so running it twice is harmless.

    Returns (created_count, skipped_count).
    """
    log_prefix = f"[SeedCOA][Co:{company.pk}]"
    existing = {
        acc.account_number: acc for acc in Account.objects.for_company(company)
    }
    created, skipped = 0, 0
    for number, name, account_type, parent_number, is_system, sort_order in chart:
        if number in existing:
            skipped += 1
            continue
        parent = existing.get(parent_number) if parent_number else None
        if parent_number and parent is None:
            logger.error(f"{log_prefix} Parent {parent_number} for {number} missing; creating at top level.")
        account = Account.create_for_company(
            company, user,
            account_number=number,
            name=name,
            account_type=str(account_type),
            parent_account=parent,
            is_system_account=is_system,
            is_active=True,
            sort_order=sort_order,
        )
        existing[number] = account
        created += 1
    logger.info(f"{log_prefix} Default chart provisioned: {created} created, {skipped} already present.")
    return created, skipped
