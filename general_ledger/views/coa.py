# general_ledger/views/coa.py
import logging

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import mixins, status
from rest_framework.response import Response

from ledger_core.mixins import CompanyScopedViewSetMixin
from ledger_core.pagination import StandardResultsSetPagination
from ..filters import AccountFilterSet
from ..models.coa import Account
from ..serializers.coa import AccountCreateSerializer, AccountReadSerializer, AccountUpdateSerializer
from ..services import coa_service

logger = logging.getLogger("general_ledger.views.coa")


@extend_schema_view(
    list=extend_schema(summary="List Accounts (Scoped to Current Company)"),
    retrieve=extend_schema(summary="Retrieve Account (Scoped to Current Company)"),
    create=extend_schema(summary="Create Account (Scoped to Current Company)",
                         request=AccountCreateSerializer, responses={201: AccountReadSerializer}),
    partial_update=extend_schema(summary="Partial Update Account (optimistic `version` check)",
                                 request=AccountUpdateSerializer, responses={200: AccountReadSerializer}),
    destroy=extend_schema(summary="Delete Account (soft delete; refused for system or used accounts)"),
)
class AccountViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, CompanyScopedViewSetMixin):
    """
    Chart of Accounts. Writes go through `coa_service`, which enforces number
    uniqueness, hierarchy rules and the system/used-account deletion guards.
    """
    queryset = Account.objects.all()
    serializer_class = AccountReadSerializer
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend]
    filterset_class = AccountFilterSet
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False) or self.current_company is None:
            return Account.objects.none()
        return coa_service.list_accounts(self.current_company)

    def retrieve(self, request, *args, **kwargs):
        account = coa_service.get_account(self.current_company, kwargs['pk'])
        return Response(AccountReadSerializer(account).data)

    def create(self, request, *args, **kwargs):
        serializer = AccountCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        account = coa_service.create_account(
            self.current_company,
            account_number=data['account_number'],
            name=data['name'],
            account_type=data['account_type'],
            parent_account_id=data.get('parent_account_id'),
            user=request.user,
            sort_order=data.get('sort_order', 0),
            description=data.get('description', ''),
        )
        return Response(AccountReadSerializer(account).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        serializer = AccountUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        patch = dict(serializer.validated_data)
        expected_version = patch.pop('version', None)
        account = coa_service.update_account(
            self.current_company, kwargs['pk'], patch, user=request.user, expected_version=expected_version,
        )
        return Response(AccountReadSerializer(account).data)

    def destroy(self, request, *args, **kwargs):
        coa_service.delete_account(self.current_company, kwargs['pk'], user=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
