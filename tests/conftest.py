# tests/conftest.py
"""
Pytest fixtures for the general ledger tests: companies, users with
memberships, a seeded default chart and an authenticated API client.
"""

from datetime import date
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from company.models import Company, CompanyMembership
from general_ledger.models import Account
from general_ledger.services import coa_service, posting_service
from general_ledger.services.posting_service import PostingLine, PostingRequest
from ledger_core.enums import SourceModule
from ledger_project.celery import app as celery_app

User = get_user_model()


@pytest.fixture(autouse=True, scope="session")
def celery_in_memory():
    """Tasks run in-process; no broker or result store is contacted."""
    # The app reads Django settings under the CELERY_ namespace, so keys must be namespaced.
    celery_app.conf.update(CELERY_BROKER_URL="memory://", CELERY_RESULT_BACKEND="cache+memory://",
                           CELERY_TASK_ALWAYS_EAGER=True)
    yield


# =============================================================================
# Company & User Fixtures
# =============================================================================

@pytest.fixture
def company(db):
    return Company.objects.create(
        subdomain_prefix="acme",
        name="Acme Trading",
        financial_year_start_month=1,
        timezone_name="UTC",
    )


@pytest.fixture
def other_company(db):
    """A second tenant for isolation tests."""
    return Company.objects.create(subdomain_prefix="globex", name="Globex Supplies")


@pytest.fixture
def user(db):
    return User.objects.create_user(username="accountant", email="accountant@test.com", password="testpass123")


@pytest.fixture
def outsider(db):
    return User.objects.create_user(username="outsider", email="outsider@test.com", password="testpass123")


@pytest.fixture
def membership(company, user):
    return CompanyMembership.objects.create(
        company=company, user=user, role=CompanyMembership.Role.ACCOUNTANT, is_default_for_user=True,
    )


# =============================================================================
# Chart of Accounts Fixtures
# =============================================================================

@pytest.fixture
def chart(company):
    """Default chart for `company`, keyed by account number."""
    coa_service.seed_default_accounts(company)
    return {acc.account_number: acc for acc in Account.objects.for_company(company)}


@pytest.fixture
def other_chart(other_company):
    coa_service.seed_default_accounts(other_company)
    return {acc.account_number: acc for acc in Account.objects.for_company(other_company)}


# =============================================================================
# Posting helpers
# =============================================================================

@pytest.fixture
def post_lines(company, chart):
    """
    Posts a balanced entry through the engine. Lines are
    (account_number, debit, credit) tuples; returns the entry id.
    """
    def _post(posting_date, *lines, source_module=SourceModule.MANUAL.value, description="Test posting"):
        request = PostingRequest(
            posting_date=posting_date,
            source_module=source_module,
            description=description,
            lines=[
                PostingLine(account_id=chart[number].pk, debit=Decimal(str(debit)), credit=Decimal(str(credit)),
                            line_number=idx)
                for idx, (number, debit, credit) in enumerate(lines, start=1)
            ],
        )
        return posting_service.post(company, request)
    return _post


@pytest.fixture
def draft_lines(chart):
    def _lines(amount="100.00", debit_number="E-6200", credit_number="A-1000"):
        return [
            {"account_id": chart[debit_number].pk, "debit": amount, "credit": "0"},
            {"account_number": credit_number, "debit": "0", "credit": amount},
        ]
    return _lines


@pytest.fixture
def posting_date():
    return date(2025, 3, 15)


# =============================================================================
# API Fixtures
# =============================================================================

@pytest.fixture
def api_client(company, user, membership):
    client = APIClient()
    client.force_authenticate(user=user)
    client.credentials(HTTP_X_COMPANY_ID=str(company.pk))
    return client
