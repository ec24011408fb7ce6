# tests/test_api.py
"""
API tests: tenant scoping, the journal lifecycle over HTTP, the ledger and
trial balance endpoints, and the error envelope.
"""

import uuid
from datetime import date

import pytest
from rest_framework import status
from rest_framework.test import APIClient

from company.models import CompanyMembership
from general_ledger.models import JournalEntry

ACCOUNTS_URL = "/api/gl/accounts/"
JOURNALS_URL = "/api/gl/journals/"
LEDGER_URL = "/api/gl/ledger/"
TRIAL_BALANCE_URL = "/api/gl/trial-balance/"


def _journal_payload(amount="100.00"):
    return {
        "posting_date": "2025-03-15",
        "description": "Rent for March",
        "lines": [
            {"account_number": "E-6200", "debit": amount},
            {"account_number": "A-1000", "credit": amount},
        ],
    }


# =============================================================================
# Access Tests
# =============================================================================

@pytest.mark.django_db
class TestAccess:

    def test_anonymous_is_rejected(self, company, chart):
        client = APIClient()
        response = client.get(ACCOUNTS_URL, HTTP_X_COMPANY_ID=str(company.pk))
        assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)

    def test_non_member_is_forbidden(self, company, chart, outsider):
        client = APIClient()
        client.force_authenticate(user=outsider)
        response = client.get(ACCOUNTS_URL, HTTP_X_COMPANY_ID=str(company.pk))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_accounts_are_scoped_to_company(self, api_client, chart, other_chart):
        response = api_client.get(ACCOUNTS_URL, {"page_size": 100})

        assert response.status_code == status.HTTP_200_OK
        ids = {row["id"] for row in response.data["results"]}
        assert ids == {str(acc.pk) for acc in chart.values()}

    def test_other_company_account_is_404(self, api_client, chart, other_chart):
        response = api_client.get(f"{ACCOUNTS_URL}{other_chart['A-1000'].pk}/")
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["code"] == "not_found"

    def test_viewer_can_read_but_not_write(self, company, chart, outsider):
        CompanyMembership.objects.create(company=company, user=outsider, role=CompanyMembership.Role.VIEWER)
        client = APIClient()
        client.force_authenticate(user=outsider)
        client.credentials(HTTP_X_COMPANY_ID=str(company.pk))

        assert client.get(ACCOUNTS_URL).status_code == status.HTTP_200_OK
        response = client.post(JOURNALS_URL, _journal_payload(), format="json")
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert not JournalEntry.objects.exists()

    def test_project_pagination_class_is_importable(self):
        from rest_framework.settings import api_settings
        from ledger_core.pagination import StandardResultsSetPagination

        assert api_settings.DEFAULT_PAGINATION_CLASS is StandardResultsSetPagination

    def test_results_are_paginated(self, api_client, chart):
        response = api_client.get(ACCOUNTS_URL, {"page_size": 5})

        assert response.status_code == status.HTTP_200_OK
        assert response.data["count"] == len(chart)
        assert len(response.data["results"]) == 5
        assert response.data["next"] is not None


# =============================================================================
# Account Endpoint Tests
# =============================================================================

@pytest.mark.django_db
class TestAccountEndpoints:

    def test_create_and_filter(self, api_client, chart):
        response = api_client.post(ACCOUNTS_URL, {
            "account_number": "A-1300", "name": "Prepaid Expenses", "account_type": "asset",
        }, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["normal_balance"] == "DEBIT"
        assert response.data["level"] == 1

        listed = api_client.get(ACCOUNTS_URL, {"search": "prepaid"})
        assert [row["account_number"] for row in listed.data["results"]] == ["A-1300"]

    def test_duplicate_number_is_409(self, api_client, chart):
        response = api_client.post(ACCOUNTS_URL, {
            "account_number": "A-1000", "name": "Cash again", "account_type": "asset",
        }, format="json")
        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["code"] == "conflict"

    def test_patch_with_stale_version_is_409(self, api_client, chart):
        url = f"{ACCOUNTS_URL}{chart['E-6200'].pk}/"
        assert api_client.patch(url, {"name": "Office Rent", "version": 1}, format="json").status_code == 200
        response = api_client.patch(url, {"name": "Shop Rent", "version": 1}, format="json")
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_self_parent_is_400(self, api_client, chart):
        account = chart["E-6200"]
        response = api_client.patch(f"{ACCOUNTS_URL}{account.pk}/", {"parent_account_id": str(account.pk)},
                                    format="json")
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["code"] == "self_parent"

    def test_delete_system_account_is_403(self, api_client, chart):
        response = api_client.delete(f"{ACCOUNTS_URL}{chart['A-1000'].pk}/")
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_delete_unused_account_is_204(self, api_client, chart):
        response = api_client.delete(f"{ACCOUNTS_URL}{chart['E-6300'].pk}/")
        assert response.status_code == status.HTTP_204_NO_CONTENT


# =============================================================================
# Journal Endpoint Tests
# =============================================================================

@pytest.mark.django_db
class TestJournalEndpoints:

    def test_draft_post_lifecycle(self, api_client, chart):
        created = api_client.post(JOURNALS_URL, _journal_payload(), format="json")
        assert created.status_code == status.HTTP_201_CREATED
        assert created.data["status"] == "draft"
        assert len(created.data["lines"]) == 2

        posted = api_client.post(f"{JOURNALS_URL}{created.data['id']}/post/")
        assert posted.status_code == status.HTTP_200_OK
        assert posted.data["status"] == "posted"
        assert posted.data["posted_by_username"] == "accountant"

        again = api_client.post(f"{JOURNALS_URL}{created.data['id']}/post/")
        assert again.status_code == status.HTTP_409_CONFLICT
        assert again.data["code"] == "already_posted"

    def test_unbalanced_post_is_422(self, api_client, chart):
        payload = _journal_payload()
        payload["lines"][1]["credit"] = "90.00"
        created = api_client.post(JOURNALS_URL, payload, format="json")

        response = api_client.post(f"{JOURNALS_URL}{created.data['id']}/post/")

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.data["code"] == "unbalanced"

    def test_invalid_line_is_400(self, api_client, chart):
        payload = _journal_payload()
        payload["lines"][0]["account_number"] = "Z-0000"
        response = api_client.post(JOURNALS_URL, payload, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "lines[1]" in response.data["errors"]

    def test_patch_and_discard_draft(self, api_client, chart):
        created = api_client.post(JOURNALS_URL, _journal_payload(), format="json")
        url = f"{JOURNALS_URL}{created.data['id']}/"

        patched = api_client.patch(url, {"description": "Rent (corrected)", "version": 1}, format="json")
        assert patched.status_code == status.HTTP_200_OK
        assert patched.data["version"] == 2

        assert api_client.delete(url).status_code == status.HTTP_204_NO_CONTENT
        assert api_client.get(url).status_code == status.HTTP_404_NOT_FOUND

    def test_posted_entry_is_immutable(self, api_client, chart):
        created = api_client.post(JOURNALS_URL, _journal_payload(), format="json")
        url = f"{JOURNALS_URL}{created.data['id']}/"
        api_client.post(f"{url}post/")

        assert api_client.patch(url, {"description": "Edited"}, format="json").status_code == 409
        assert api_client.delete(url).status_code == 409
        cancel = api_client.post(f"{url}cancel/")
        assert cancel.status_code == 409
        assert cancel.data["code"] == "immutable"

    def test_list_filters(self, api_client, chart):
        api_client.post(JOURNALS_URL, _journal_payload(), format="json")
        second = api_client.post(JOURNALS_URL, _journal_payload("20.00"), format="json")
        api_client.post(f"{JOURNALS_URL}{second.data['id']}/post/")

        response = api_client.get(JOURNALS_URL, {"status": "posted"})

        assert response.data["count"] == 1
        assert response.data["results"][0]["id"] == second.data["id"]

    def test_malformed_id_is_404(self, api_client, chart):
        assert api_client.get(f"{JOURNALS_URL}not-a-uuid/").status_code == status.HTTP_404_NOT_FOUND
        assert api_client.get(f"{JOURNALS_URL}{uuid.uuid4()}/").status_code == status.HTTP_404_NOT_FOUND


# =============================================================================
# Ledger & Trial Balance Endpoint Tests
# =============================================================================

@pytest.mark.django_db
class TestReportEndpoints:

    def test_ledger_by_account_number(self, api_client, chart, post_lines):
        post_lines(date(2025, 1, 5), ("A-1000", "500", "0"), ("E-3000", "0", "500"))
        post_lines(date(2025, 2, 1), ("E-6200", "120", "0"), ("A-1000", "0", "120"))

        response = api_client.get(LEDGER_URL, {
            "account_number": "A-1000", "date_from": "2025-02-01", "date_to": "2025-02-28",
        })

        assert response.status_code == status.HTTP_200_OK
        assert response.data["opening_balance"] == "500.0000"
        assert response.data["closing_balance"] == "380.0000"
        assert response.data["count"] == 1
        assert response.data["entries"][0]["balance"] == "380.0000"

    def test_ledger_defaults_to_financial_year(self, api_client, company, chart):
        response = api_client.get(LEDGER_URL, {"account_id": str(chart["A-1000"].pk)})

        start, end = company.get_current_financial_year_dates(company.local_today())
        assert response.status_code == status.HTTP_200_OK
        assert response.data["date_from"] == start.isoformat()
        assert response.data["date_to"] == end.isoformat()

    def test_ledger_partial_range_is_400(self, api_client, chart):
        response = api_client.get(LEDGER_URL, {"account_number": "A-1000", "date_from": "2025-01-01"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_ledger_requires_account(self, api_client, chart):
        assert api_client.get(LEDGER_URL).status_code == status.HTTP_400_BAD_REQUEST

    def test_ledger_unknown_account_is_404(self, api_client, chart):
        response = api_client.get(LEDGER_URL, {"account_number": "Z-0000"})
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_trial_balance(self, api_client, chart, post_lines):
        post_lines(date(2025, 1, 5), ("A-1000", "500", "0"), ("E-3000", "0", "500"))

        response = api_client.get(TRIAL_BALANCE_URL, {"as_of": "2025-12-31"})

        assert response.status_code == status.HTTP_200_OK
        assert response.data["is_balanced"] is True
        assert response.data["total_debit"] == "500.0000"
        assert [row["account_number"] for row in response.data["rows"]] == ["A-1000", "E-3000"]

    def test_trial_balance_bad_date_is_400(self, api_client, chart):
        assert api_client.get(TRIAL_BALANCE_URL, {"as_of": "31/12/2025"}).status_code == 400

    def test_posted_count_matches_database(self, api_client, chart, post_lines):
        post_lines(date(2025, 1, 5), ("A-1000", "500", "0"), ("E-3000", "0", "500"))
        response = api_client.get(JOURNALS_URL, {"status": "posted"})
        assert response.data["count"] == JournalEntry.objects.filter(status="posted").count() == 1
