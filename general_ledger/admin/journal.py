# general_ledger/admin/journal.py
from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from ..models.journal import JournalEntry, JournalLine
from ..models.sequence import JournalSequence
from .admin_base import DeletionStatusListFilter, TenantLedgerModelAdmin


class JournalLineInline(admin.TabularInline):
    model = JournalLine
    fields = ('line_number', 'account', 'debit', 'credit', 'description', 'cost_center_id', 'project_id')
    readonly_fields = fields
    extra = 0
    can_delete = False
    ordering = ('line_number',)

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(JournalEntry)
class JournalEntryAdmin(TenantLedgerModelAdmin):
    """Read-only view; journals change only through the ledger services."""
    list_display = ('journal_code', 'posting_date', 'status', 'source_module', 'reference_type', 'reference_code',
                    'total_debit', 'total_credit', 'company')
    list_filter = (DeletionStatusListFilter, 'company', 'status', 'source_module', 'reference_type', 'posting_date')
    search_fields = ('journal_code', 'reference_code', 'description', 'company__name')
    date_hierarchy = 'posting_date'
    ordering = ('-posting_date', '-created_at')
    inlines = [JournalLineInline]
    readonly_fields = [f.name for f in JournalEntry._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return request.method in ('GET', 'HEAD') and super().has_view_permission(request, obj)

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(JournalSequence)
class JournalSequenceAdmin(TenantLedgerModelAdmin):
    list_display = ('__str__', 'company', 'fiscal_year', 'prefix', 'padding_digits', 'last_number', 'updated_at')
    list_filter = ('company', 'fiscal_year')
    readonly_fields = ('company', 'fiscal_year', 'last_number', 'created_at', 'updated_at')

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
