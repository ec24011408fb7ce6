# general_ledger/admin/admin_base.py
import logging

from django.contrib import admin
from django.http import HttpRequest
from django.utils.translation import gettext_lazy as _
from simple_history.admin import SimpleHistoryAdmin

logger = logging.getLogger("general_ledger.admin_base")


class DeletionStatusListFilter(admin.SimpleListFilter):
    """Live rows by default; soft-deleted rows on request."""
    title = _('status')
    parameter_name = 'deletion_status'

    def lookups(self, request, model_admin):
        return [('deleted', _('Deleted')), ('all', _('All (including deleted)'))]

    def queryset(self, request, queryset):
        if self.value() == 'deleted':
            return queryset.filter(deleted_at__isnull=False)
        if self.value() == 'all':
            return queryset
        return queryset.filter(deleted_at__isnull=True)


class TenantLedgerModelAdmin(SimpleHistoryAdmin):
    """
    Base admin for tenant-scoped ledger models. Lists every company's rows
    (soft-deleted ones behind a filter) and stamps the audit users on save.
    """
    list_select_related = ('company',)

    def get_queryset(self, request: HttpRequest):
        return self.model.all_objects.select_related('company')

    def save_model(self, request, obj, form, change):
        if not change:
            obj.created_by = request.user
        obj.updated_by = request.user
        logger.info(f"[Admin][Co:{obj.company_id}][User:{request.user.get_username()}] "
                    f"Saving {obj._meta.verbose_name} {obj.pk}.")
        super().save_model(request, obj, form, change)
