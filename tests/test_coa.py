# tests/test_coa.py
"""
Tests for chart of accounts maintenance.

Tests cover:
- Default chart provisioning
- Account creation and level derivation
- Re-parenting, cycle detection and subtree levels
- Optimistic concurrency
- System account and used account guards
"""

import uuid

import pytest

from general_ledger.exceptions import Conflict, Forbidden, NotFound, SelfParent, ValidationFailed
from general_ledger.models import Account, resolve_normal_balance
from general_ledger.services import coa_service
from ledger_core.constants import DEFAULT_CHART_OF_ACCOUNTS
from ledger_core.enums import AccountNature, AccountType


# =============================================================================
# Normal Balance Tests
# =============================================================================

class TestNormalBalance:

    @pytest.mark.parametrize("account_type,expected", [
        (AccountType.ASSET, AccountNature.DEBIT),
        (AccountType.EXPENSE, AccountNature.DEBIT),
        (AccountType.COGS, AccountNature.DEBIT),
        (AccountType.LIABILITY, AccountNature.CREDIT),
        (AccountType.EQUITY, AccountNature.CREDIT),
        (AccountType.REVENUE, AccountNature.CREDIT),
    ])
    def test_normal_balance_follows_type(self, account_type, expected):
        assert resolve_normal_balance(account_type) == expected.value

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            resolve_normal_balance("goodwill")


# =============================================================================
# Default Chart Tests
# =============================================================================

@pytest.mark.django_db
class TestSeedDefaultAccounts:

    def test_seed_creates_full_chart(self, company):
        created, skipped = coa_service.seed_default_accounts(company)

        assert created == len(DEFAULT_CHART_OF_ACCOUNTS)
        assert skipped == 0
        discounts = Account.objects.for_company(company).get(account_number="R-4010")
        assert discounts.parent_account.account_number == "R-4000"
        assert discounts.level == 2

    def test_seed_is_idempotent(self, company, chart):
        created, skipped = coa_service.seed_default_accounts(company)

        assert created == 0
        assert skipped == len(DEFAULT_CHART_OF_ACCOUNTS)
        assert Account.objects.for_company(company).count() == len(DEFAULT_CHART_OF_ACCOUNTS)

    def test_well_known_accounts_are_system_accounts(self, chart):
        for number in ("A-1000", "A-1100", "A-1200", "L-2000", "R-4000", "C-5000"):
            assert chart[number].is_system_account is True


# =============================================================================
# Create Tests
# =============================================================================

@pytest.mark.django_db
class TestCreateAccount:

    def test_create_root_and_child(self, company, user):
        root = coa_service.create_account(company, "A-1300", "Prepaid Expenses", AccountType.ASSET, user=user)
        child = coa_service.create_account(company, "A-1310", "Prepaid Rent", AccountType.ASSET,
                                           parent_account_id=root.pk, user=user)

        assert root.level == 1
        assert child.level == 2
        assert child.is_active is True
        assert child.version == 1
        assert child.created_by == user

    def test_duplicate_number_conflicts(self, company, chart):
        with pytest.raises(Conflict):
            coa_service.create_account(company, "A-1000", "Another Cash", AccountType.ASSET)

    def test_same_number_allowed_in_other_company(self, company, chart, other_company):
        account = coa_service.create_account(other_company, "A-1000", "Petty Cash", AccountType.ASSET)
        assert account.company == other_company

    def test_unknown_type_rejected(self, company):
        with pytest.raises(ValidationFailed):
            coa_service.create_account(company, "X-1", "Mystery", "goodwill")

    def test_overlong_name_is_validation_failure(self, company):
        with pytest.raises(ValidationFailed) as excinfo:
            coa_service.create_account(company, "X-2", "n" * 300, AccountType.ASSET)
        assert "name" in excinfo.value.errors
        assert not Account.objects.filter(account_number="X-2").exists()

    def test_overlong_name_on_update_is_validation_failure(self, company, chart):
        with pytest.raises(ValidationFailed) as excinfo:
            coa_service.update_account(company, chart["E-6300"].pk, {"name": "n" * 300})
        assert "name" in excinfo.value.errors

    def test_parent_from_other_company_not_found(self, company, other_chart):
        with pytest.raises(NotFound):
            coa_service.create_account(company, "A-1010", "Sub Cash", AccountType.ASSET,
                                       parent_account_id=other_chart["A-1000"].pk)

    def test_malformed_lookup_id_is_not_found(self, company, chart):
        with pytest.raises(NotFound):
            coa_service.get_account(company, "not-a-uuid")
        with pytest.raises(NotFound):
            coa_service.get_account(company, uuid.uuid4())


# =============================================================================
# Update Tests
# =============================================================================

@pytest.mark.django_db
class TestUpdateAccount:

    def test_update_bumps_version(self, company, chart, user):
        account = chart["E-6200"]
        updated = coa_service.update_account(company, account.pk, {"name": "Office Rent"}, user=user)

        assert updated.name == "Office Rent"
        assert updated.version == account.version + 1

    def test_stale_version_conflicts(self, company, chart):
        account = chart["E-6200"]
        coa_service.update_account(company, account.pk, {"name": "Office Rent"}, expected_version=1)

        with pytest.raises(Conflict):
            coa_service.update_account(company, account.pk, {"name": "Shop Rent"}, expected_version=1)

    def test_system_account_number_is_frozen(self, company, chart):
        with pytest.raises(Forbidden):
            coa_service.update_account(company, chart["A-1000"].pk, {"account_number": "A-1001"})

    def test_system_account_can_be_renamed(self, company, chart):
        updated = coa_service.update_account(company, chart["A-1000"].pk, {"name": "Main Bank"})
        assert updated.name == "Main Bank"

    def test_self_parent_rejected(self, company, chart):
        account = chart["E-6000"]
        with pytest.raises(SelfParent):
            coa_service.update_account(company, account.pk, {"parent_account_id": account.pk})

    def test_descendant_parent_rejected(self, company, chart):
        parent = chart["E-6000"]
        child = coa_service.create_account(company, "E-6010", "Travel", AccountType.EXPENSE,
                                           parent_account_id=parent.pk)
        grandchild = coa_service.create_account(company, "E-6011", "Airfare", AccountType.EXPENSE,
                                                parent_account_id=child.pk)

        with pytest.raises(ValidationFailed):
            coa_service.update_account(company, parent.pk, {"parent_account_id": grandchild.pk})

    def test_reparent_recomputes_subtree_levels(self, company, chart):
        travel = coa_service.create_account(company, "E-6010", "Travel", AccountType.EXPENSE)
        airfare = coa_service.create_account(company, "E-6011", "Airfare", AccountType.EXPENSE,
                                             parent_account_id=travel.pk)
        assert (travel.level, airfare.level) == (1, 2)

        coa_service.update_account(company, travel.pk, {"parent_account_id": chart["E-6000"].pk})

        travel.refresh_from_db()
        airfare.refresh_from_db()
        assert (travel.level, airfare.level) == (2, 3)

    def test_unknown_field_rejected(self, company, chart):
        with pytest.raises(ValidationFailed):
            coa_service.update_account(company, chart["E-6200"].pk, {"level": 4})


# =============================================================================
# Delete Tests
# =============================================================================

@pytest.mark.django_db
class TestDeleteAccount:

    def test_delete_unused_account_soft_deletes(self, company, chart):
        account = chart["E-6300"]
        coa_service.delete_account(company, account.pk)

        assert not Account.objects.for_company(company).filter(pk=account.pk).exists()
        deleted = Account.all_objects.get(pk=account.pk)
        assert deleted.deleted_at is not None
        assert deleted.is_active is False

    def test_number_reusable_after_delete(self, company, chart):
        coa_service.delete_account(company, chart["E-6300"].pk)
        account = coa_service.create_account(company, "E-6300", "Power and Water", AccountType.EXPENSE)
        assert account.pk != chart["E-6300"].pk

    def test_system_account_cannot_be_deleted(self, company, chart):
        with pytest.raises(Forbidden):
            coa_service.delete_account(company, chart["A-1000"].pk)

    def test_used_account_cannot_be_deleted(self, company, chart, post_lines, posting_date):
        post_lines(posting_date, ("E-6200", "50", "0"), ("E-3000", "0", "50"))
        with pytest.raises(Conflict):
            coa_service.delete_account(company, chart["E-6200"].pk)

    def test_account_with_children_cannot_be_deleted(self, company, chart):
        coa_service.create_account(company, "E-6210", "Warehouse Rent", AccountType.EXPENSE,
                                   parent_account_id=chart["E-6200"].pk)
        with pytest.raises(Conflict):
            coa_service.delete_account(company, chart["E-6200"].pk)
