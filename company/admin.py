# company/admin.py
import logging

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from .models import Company, CompanyMembership

logger = logging.getLogger("company.admin")


class CompanyMembershipInline(admin.TabularInline):
    model = CompanyMembership
    fields = ('user', 'role', 'is_active_membership', 'is_default_for_user', 'date_joined')
    readonly_fields = ('date_joined',)
    autocomplete_fields = ['user']
    extra = 0


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ('name', 'subdomain_prefix', 'default_currency_code', 'timezone_name',
                    'is_active', 'is_suspended_by_admin', 'created_at')
    list_filter = ('is_active', 'is_suspended_by_admin', 'default_currency_code')
    search_fields = ('name', 'display_name', 'subdomain_prefix')
    readonly_fields = ('created_at', 'updated_at')
    inlines = [CompanyMembershipInline]
    fieldsets = (
        (None, {'fields': ('name', 'display_name', 'subdomain_prefix')}),
        (_('Accounting'), {'fields': ('default_currency_code', 'financial_year_start_month', 'timezone_name')}),
        (_('Status'), {'fields': ('is_active', 'is_suspended_by_admin')}),
        (_('Timestamps'), {'fields': ('created_at', 'updated_at'), 'classes': ('collapse',)}),
    )

    def save_model(self, request, obj, form, change):
        super().save_model(request, obj, form, change)
        logger.info(f"Company '{obj.name}' (ID: {obj.pk}) {'updated' if change else 'created'} "
                    f"by admin '{request.user.get_username()}'.")


@admin.register(CompanyMembership)
class CompanyMembershipAdmin(admin.ModelAdmin):
    list_display = ('user', 'company', 'role', 'is_active_membership', 'is_default_for_user')
    list_filter = ('role', 'is_active_membership', 'company')
    search_fields = ('user__username', 'user__email', 'company__name')
    list_select_related = ('user', 'company')
