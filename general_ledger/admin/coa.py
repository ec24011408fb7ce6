# general_ledger/admin/coa.py
import logging

from django.contrib import admin, messages
from django.utils.translation import gettext_lazy as _

from ..exceptions import LedgerError
from ..models.coa import Account
from ..services import coa_service
from .admin_base import DeletionStatusListFilter, TenantLedgerModelAdmin

logger = logging.getLogger("general_ledger.admin.coa")


@admin.register(Account)
class AccountAdmin(TenantLedgerModelAdmin):
    list_display = ('account_number', 'name', 'account_type', 'parent_account', 'level',
                    'is_system_account', 'is_active', 'company')
    list_filter = (DeletionStatusListFilter, 'company', 'account_type', 'is_active', 'is_system_account')
    search_fields = ('account_number', 'name', 'company__name')
    ordering = ('company__name', 'sort_order', 'account_number')
    autocomplete_fields = ('company', 'parent_account')
    readonly_fields = ('level', 'version', 'normal_balance', 'created_at', 'updated_at', 'created_by', 'updated_by',
                       'deleted_at')
    fieldsets = (
        (None, {'fields': ('company', 'account_number', 'name', 'account_type', 'normal_balance', 'parent_account',
                           'level', 'sort_order', 'description')}),
        (_('Status'), {'fields': ('is_active', 'is_system_account', 'version')}),
        (_('Audit'), {'fields': ('created_at', 'created_by', 'updated_at', 'updated_by', 'deleted_at'),
                      'classes': ('collapse',)}),
    )

    def get_readonly_fields(self, request, obj=None):
        readonly = list(super().get_readonly_fields(request, obj))
        if obj is not None:
            # Re-parenting re-levels the subtree; it goes through the API only.
            readonly.extend(['company', 'parent_account'])
            if obj.is_system_account:
                readonly.extend(['account_number', 'is_system_account'])
        return readonly

    def save_model(self, request, obj, form, change):
        if change:
            obj.version += 1
        super().save_model(request, obj, form, change)

    def has_delete_permission(self, request, obj=None):
        if obj is not None and (obj.is_system_account or obj.journal_lines.exists()):
            return False
        return super().has_delete_permission(request, obj)

    def _delete_through_service(self, request, account) -> bool:
        try:
            coa_service.delete_account(account.company, account.pk, user=request.user)
        except LedgerError as exc:
            logger.warning(f"[Admin][Co:{account.company_id}][User:{request.user.get_username()}] "
                           f"Delete of account {account.account_number} refused ({exc.code}).")
            self.message_user(request, f"{account.account_number}: {exc.message}", messages.ERROR,
                              fail_silently=True)
            return False
        return True

    def delete_model(self, request, obj):
        self._delete_through_service(request, obj)

    def delete_queryset(self, request, queryset):
        for account in queryset.select_related('company').order_by('-level'):
            self._delete_through_service(request, account)
