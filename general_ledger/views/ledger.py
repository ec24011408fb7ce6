# general_ledger/views/ledger.py
import logging
from datetime import date
from typing import Optional

from django.utils.translation import gettext_lazy as _
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from ledger_core.mixins import CompanyScopedAPIViewMixin, CompanyScopedGenericAPIViewMixin
from ledger_core.pagination import StandardResultsSetPagination
from ..serializers.journal import LedgerEntrySerializer, LedgerResponseSerializer, TrialBalanceResponseSerializer
from ..services import coa_service, ledger_service

logger = logging.getLogger("general_ledger.views.ledger")


def _parse_date(raw: Optional[str], param: str) -> Optional[date]:
    if raw in (None, ''):
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValidationError({param: [_("Invalid date format. Use YYYY-MM-DD.")]})


@extend_schema(
    summary="Account Ledger with Running Balance (Company Scoped)",
    description=(
        "Opening balance, posted lines in the date range with a running balance, and period totals. "
        "When both dates are omitted the company's current financial year is used."
    ),
    parameters=[
        OpenApiParameter(name='account_id', type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY,
                         description='Account UUID (or give account_number).'),
        OpenApiParameter(name='account_number', type=OpenApiTypes.STR, location=OpenApiParameter.QUERY,
                         description='Account number, e.g. A-1200.'),
        OpenApiParameter(name='date_from', type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY),
        OpenApiParameter(name='date_to', type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY),
    ],
    responses={200: LedgerResponseSerializer,
               400: OpenApiResponse(description="Missing account, bad or partial date range."),
               404: OpenApiResponse(description="Account not found in the current company.")},
)
class LedgerAPIView(CompanyScopedGenericAPIViewMixin):
    pagination_class = StandardResultsSetPagination
    serializer_class = LedgerResponseSerializer

    def get(self, request, *args, **kwargs):
        company = self.current_company
        params = request.query_params
        account_id = params.get('account_id')
        account_number = params.get('account_number')
        if account_id:
            account = coa_service.get_account(company, account_id)
        elif account_number:
            account = coa_service.get_account_by_number(company, account_number)
        else:
            raise ValidationError({'account_id': [_("Provide account_id or account_number.")]})

        date_from = _parse_date(params.get('date_from'), 'date_from')
        date_to = _parse_date(params.get('date_to'), 'date_to')
        if date_from is None and date_to is None:
            date_from, date_to = company.get_current_financial_year_dates(company.local_today())
        elif date_from is None or date_to is None:
            raise ValidationError({'detail': _("Provide both date_from and date_to, or neither.")})

        ledger = ledger_service.query_ledger(company, account, date_from, date_to)
        data = LedgerResponseSerializer(ledger).data

        page = self.paginate_queryset(ledger['entries'])
        if page is not None:
            data['entries'] = LedgerEntrySerializer(page, many=True).data
            data['count'] = self.paginator.page.paginator.count
            data['next'] = self.paginator.get_next_link()
            data['previous'] = self.paginator.get_previous_link()
        return Response(data)


@extend_schema(
    summary="Trial Balance (Company Scoped)",
    parameters=[
        OpenApiParameter(name='as_of', type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY,
                         description="Report date (YYYY-MM-DD). Defaults to today in the company's timezone."),
    ],
    responses={200: TrialBalanceResponseSerializer},
)
class TrialBalanceAPIView(CompanyScopedAPIViewMixin):

    def get(self, request, *args, **kwargs):
        as_of = _parse_date(request.query_params.get('as_of'), 'as_of') or self.current_company.local_today()
        report = ledger_service.trial_balance(self.current_company, as_of)
        return Response(TrialBalanceResponseSerializer(report).data)
