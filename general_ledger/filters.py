# general_ledger/filters.py

import django_filters
from django.db.models import Q

from ledger_core.enums import AccountType, JournalStatus, ReferenceType, SourceModule
from .models.coa import Account
from .models.journal import JournalEntry


class AccountFilterSet(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search', label='Number or name contains')
    account_type = django_filters.ChoiceFilter(choices=AccountType.choices)
    is_active = django_filters.BooleanFilter()
    is_system_account = django_filters.BooleanFilter()

    class Meta:
        model = Account
        fields = ['account_type', 'is_active', 'is_system_account']

    def filter_search(self, queryset, name, value):
        return queryset.filter(Q(account_number__icontains=value) | Q(name__icontains=value))


class JournalEntryFilterSet(django_filters.FilterSet):
    """
    Filters for the journal list: posting date range, lifecycle status, origin,
    free-text search and "touches this account".
    """
    search = django_filters.CharFilter(method='filter_search', label='Code, description or reference contains')
    status = django_filters.ChoiceFilter(choices=JournalStatus.choices)
    source_module = django_filters.ChoiceFilter(choices=SourceModule.choices)
    reference_type = django_filters.ChoiceFilter(choices=ReferenceType.choices)
    date_from = django_filters.DateFilter(field_name='posting_date', lookup_expr='gte', label='Posting Date From (YYYY-MM-DD)')
    date_to = django_filters.DateFilter(field_name='posting_date', lookup_expr='lte', label='Posting Date To (YYYY-MM-DD)')
    account_id = django_filters.UUIDFilter(method='filter_account', label='Has a line on account')

    class Meta:
        model = JournalEntry
        fields = ['status', 'source_module', 'reference_type']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(journal_code__icontains=value) | Q(description__icontains=value) | Q(reference_code__icontains=value)
        )

    def filter_account(self, queryset, name, value):
        return queryset.filter(lines__account_id=value).distinct()
