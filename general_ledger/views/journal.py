# general_ledger/views/journal.py
import logging

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiResponse, extend_schema, extend_schema_view
from rest_framework import mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response

from ledger_core.mixins import CompanyScopedViewSetMixin
from ledger_core.pagination import StandardResultsSetPagination
from ..filters import JournalEntryFilterSet
from ..models.journal import JournalEntry
from ..serializers.journal import (
    JournalEntryCreateSerializer, JournalEntryDetailSerializer, JournalEntryListSerializer,
    JournalEntryUpdateSerializer,
)
from ..services import journal_service

logger = logging.getLogger("general_ledger.views.journal")


def _lines_payload(lines):
    return [dict(line) for line in lines]


@extend_schema_view(
    list=extend_schema(summary="List Journal Entries (Scoped to Current Company)"),
    retrieve=extend_schema(summary="Retrieve Journal Entry with Lines"),
    create=extend_schema(summary="Create Manual Journal Entry (Draft)",
                         request=JournalEntryCreateSerializer, responses={201: JournalEntryDetailSerializer}),
    partial_update=extend_schema(summary="Update Draft Journal Entry",
                                 request=JournalEntryUpdateSerializer, responses={200: JournalEntryDetailSerializer}),
    destroy=extend_schema(summary="Discard Draft Journal Entry"),
    post_entry=extend_schema(
        summary="Post Draft Journal Entry", request=None,
        responses={200: JournalEntryDetailSerializer,
                   409: OpenApiResponse(description="Already posted, cancelled or immutable."),
                   422: OpenApiResponse(description="Unbalanced or fewer than two lines.")},
    ),
    cancel=extend_schema(summary="Cancel Draft Journal Entry", request=None,
                         responses={200: JournalEntryDetailSerializer}),
)
class JournalEntryViewSet(mixins.ListModelMixin, CompanyScopedViewSetMixin):
    """
    Journal entries of the current company. Lifecycle changes are delegated to
    `journal_service`; ledger errors are turned into responses by the
    project-wide exception handler.
    """
    queryset = JournalEntry.objects.all()
    serializer_class = JournalEntryListSerializer
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend]
    filterset_class = JournalEntryFilterSet
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False) or self.current_company is None:
            return JournalEntry.objects.none()
        return journal_service.list_journals(self.current_company)

    def _detail_response(self, entry, status_code=status.HTTP_200_OK):
        entry = journal_service.get_journal(self.current_company, entry.pk)
        return Response(JournalEntryDetailSerializer(entry).data, status=status_code)

    def retrieve(self, request, *args, **kwargs):
        entry = journal_service.get_journal(self.current_company, kwargs['pk'])
        return Response(JournalEntryDetailSerializer(entry).data)

    def create(self, request, *args, **kwargs):
        serializer = JournalEntryCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        entry = journal_service.create_draft_journal(
            self.current_company, request.user,
            posting_date=data['posting_date'],
            description=data.get('description', ''),
            lines=_lines_payload(data['lines']),
            reference_type=data.get('reference_type'),
            reference_id=data.get('reference_id') or None,
            reference_code=data.get('reference_code'),
        )
        return self._detail_response(entry, status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        serializer = JournalEntryUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        expected_version = data.pop('version', None)
        if 'lines' in data:
            data['lines'] = _lines_payload(data['lines'])
        entry = journal_service.update_draft_journal(
            self.current_company, request.user, kwargs['pk'], data, expected_version=expected_version,
        )
        return self._detail_response(entry)

    def destroy(self, request, *args, **kwargs):
        journal_service.discard_draft_journal(self.current_company, request.user, kwargs['pk'])
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'], url_path='post')
    def post_entry(self, request, pk=None):
        entry = journal_service.post_journal_entry(self.current_company, request.user, pk)
        return Response(JournalEntryDetailSerializer(entry).data)

    @action(detail=True, methods=['post'], url_path='cancel')
    def cancel(self, request, pk=None):
        entry = journal_service.cancel_journal_entry(self.current_company, request.user, pk)
        return self._detail_response(entry)
