# general_ledger/serializers/journal.py

import logging
from decimal import Decimal

from django.utils.translation import gettext_lazy as _
from rest_framework import serializers

from ledger_core.enums import ReferenceType
from ..models.journal import JournalEntry, JournalLine
from .coa import AccountSummarySerializer

logger = logging.getLogger("general_ledger.serializers.journal")

ZERO = Decimal('0')


# =============================================================================
# Journal Line Serializers
# =============================================================================
class JournalLineSerializer(serializers.ModelSerializer):
    account = AccountSummarySerializer(read_only=True)

    class Meta:
        model = JournalLine
        fields = ('id', 'line_number', 'account', 'debit', 'credit', 'description',
                  'cost_center_id', 'project_id')
        read_only_fields = fields


class JournalLineInputSerializer(serializers.Serializer):
    """One line of a manual journal. The account is given by id or by number."""
    account_id = serializers.UUIDField(required=False, allow_null=True)
    account_number = serializers.CharField(required=False, allow_blank=True, max_length=50)
    debit = serializers.DecimalField(max_digits=20, decimal_places=4, required=False, default=ZERO)
    credit = serializers.DecimalField(max_digits=20, decimal_places=4, required=False, default=ZERO)
    description = serializers.CharField(required=False, allow_blank=True, default='', max_length=500)
    cost_center_id = serializers.UUIDField(required=False, allow_null=True)
    project_id = serializers.UUIDField(required=False, allow_null=True)

    def validate(self, attrs):
        if not attrs.get('account_id') and not attrs.get('account_number'):
            raise serializers.ValidationError(_("Provide account_id or account_number."))
        debit, credit = attrs.get('debit') or ZERO, attrs.get('credit') or ZERO
        if debit < ZERO or credit < ZERO:
            raise serializers.ValidationError(_("Amounts cannot be negative."))
        if (debit > ZERO) == (credit > ZERO):
            raise serializers.ValidationError(_("Exactly one of debit or credit must be non-zero."))
        return attrs


# =============================================================================
# Journal Entry Serializers
# =============================================================================
class JournalEntryListSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    posted_by_username = serializers.CharField(source='posted_by.username', read_only=True, default=None)

    class Meta:
        model = JournalEntry
        fields = (
            'id', 'journal_code', 'posting_date', 'status', 'status_display', 'source_module',
            'reference_type', 'reference_id', 'reference_code', 'description',
            'total_debit', 'total_credit', 'posted_at', 'posted_by_username', 'version', 'created_at',
        )
        read_only_fields = fields


class JournalEntryDetailSerializer(JournalEntryListSerializer):
    lines = JournalLineSerializer(many=True, read_only=True)
    cancelled_by_username = serializers.CharField(source='cancelled_by.username', read_only=True, default=None)

    class Meta(JournalEntryListSerializer.Meta):
        fields = JournalEntryListSerializer.Meta.fields + ('cancelled_at', 'cancelled_by_username', 'lines')
        read_only_fields = fields


class JournalEntryCreateSerializer(serializers.Serializer):
    posting_date = serializers.DateField()
    description = serializers.CharField(required=False, allow_blank=True, default='')
    reference_type = serializers.ChoiceField(choices=ReferenceType.choices, required=False, allow_null=True)
    reference_id = serializers.CharField(required=False, allow_null=True, allow_blank=True, max_length=64)
    reference_code = serializers.CharField(required=False, allow_blank=True, max_length=100)
    lines = JournalLineInputSerializer(many=True, allow_empty=False)


class JournalEntryUpdateSerializer(serializers.Serializer):
    """Partial update of a draft; sending `lines` replaces all lines."""
    posting_date = serializers.DateField(required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    reference_type = serializers.ChoiceField(choices=ReferenceType.choices, required=False, allow_null=True)
    reference_id = serializers.CharField(required=False, allow_null=True, allow_blank=True, max_length=64)
    reference_code = serializers.CharField(required=False, allow_blank=True, max_length=100)
    lines = JournalLineInputSerializer(many=True, required=False, allow_empty=False)
    version = serializers.IntegerField(required=False, min_value=1)


# =============================================================================
# Ledger and Trial Balance Serializers
# =============================================================================
class LedgerEntrySerializer(serializers.Serializer):
    line_id = serializers.UUIDField()
    journal_entry_id = serializers.UUIDField()
    journal_code = serializers.CharField()
    posting_date = serializers.DateField()
    description = serializers.CharField(allow_blank=True)
    reference_type = serializers.CharField(allow_null=True)
    reference_code = serializers.CharField(allow_blank=True)
    source_module = serializers.CharField()
    debit = serializers.DecimalField(max_digits=20, decimal_places=4)
    credit = serializers.DecimalField(max_digits=20, decimal_places=4)
    balance = serializers.DecimalField(max_digits=20, decimal_places=4)


class LedgerResponseSerializer(serializers.Serializer):
    account = AccountSummarySerializer()
    normal_balance = serializers.CharField()
    date_from = serializers.DateField()
    date_to = serializers.DateField()
    opening_balance = serializers.DecimalField(max_digits=20, decimal_places=4)
    closing_balance = serializers.DecimalField(max_digits=20, decimal_places=4)
    total_debits = serializers.DecimalField(max_digits=20, decimal_places=4)
    total_credits = serializers.DecimalField(max_digits=20, decimal_places=4)
    entries = LedgerEntrySerializer(many=True)


class TrialBalanceRowSerializer(serializers.Serializer):
    account_id = serializers.UUIDField()
    account_number = serializers.CharField()
    account_name = serializers.CharField()
    account_type = serializers.CharField()
    debit = serializers.DecimalField(max_digits=20, decimal_places=4)
    credit = serializers.DecimalField(max_digits=20, decimal_places=4)


class TrialBalanceResponseSerializer(serializers.Serializer):
    as_of_date = serializers.DateField()
    rows = TrialBalanceRowSerializer(many=True)
    total_debit = serializers.DecimalField(max_digits=20, decimal_places=4)
    total_credit = serializers.DecimalField(max_digits=20, decimal_places=4)
    is_balanced = serializers.BooleanField()
