# general_ledger/serializers/coa.py
import logging

from django.utils.translation import gettext_lazy as _
from rest_framework import serializers

from ledger_core.enums import AccountType
from ..models.coa import Account

logger = logging.getLogger("general_ledger.serializers.coa")


# =============================================================================
# Helper/Summary Serializers
# =============================================================================
class AccountSummarySerializer(serializers.ModelSerializer):
    """Minimal representation of Account for nesting or summaries."""
    account_type_display = serializers.CharField(source='get_account_type_display', read_only=True)

    class Meta:
        model = Account
        fields = ('id', 'account_number', 'name', 'account_type', 'account_type_display', 'is_active')
        read_only_fields = fields


# =============================================================================
# Account Serializers
# =============================================================================
class AccountReadSerializer(serializers.ModelSerializer):
    """Serializer for *reading* Account data."""
    parent_account = AccountSummarySerializer(read_only=True)
    account_type_display = serializers.CharField(source='get_account_type_display', read_only=True)
    normal_balance = serializers.CharField(read_only=True)

    class Meta:
        model = Account
        fields = (
            'id', 'account_number', 'name', 'account_type', 'account_type_display', 'normal_balance',
            'parent_account', 'level', 'sort_order', 'description',
            'is_system_account', 'is_active', 'version',
            'created_at', 'updated_at',
        )
        read_only_fields = fields


class AccountCreateSerializer(serializers.Serializer):
    """Input for creating an account. The service performs the write."""
    account_number = serializers.CharField(max_length=50)
    name = serializers.CharField(max_length=255)
    account_type = serializers.ChoiceField(choices=AccountType.choices)
    parent_account_id = serializers.UUIDField(required=False, allow_null=True)
    sort_order = serializers.IntegerField(required=False, default=0, min_value=0)
    description = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_account_number(self, value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError(_("Account number cannot be blank."))
        return value


class AccountUpdateSerializer(serializers.Serializer):
    """
    Partial update input. Only the keys actually sent are forwarded to the
    service; `version` is the optimistic concurrency token.
    """
    account_number = serializers.CharField(max_length=50, required=False)
    name = serializers.CharField(max_length=255, required=False)
    account_type = serializers.ChoiceField(choices=AccountType.choices, required=False)
    parent_account_id = serializers.UUIDField(required=False, allow_null=True)
    is_active = serializers.BooleanField(required=False)
    sort_order = serializers.IntegerField(required=False, min_value=0)
    description = serializers.CharField(required=False, allow_blank=True)
    version = serializers.IntegerField(required=False, min_value=1)

    def validate(self, attrs):
        if not set(attrs) - {'version'}:
            raise serializers.ValidationError(_("No updatable fields were provided."))
        return attrs
