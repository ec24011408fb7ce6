# general_ledger/urls.py
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import coa as coa_views
from .views import journal as journal_views
from .views import ledger as ledger_views

# --- Router Setup ---
router = DefaultRouter()
router.register(r'accounts', coa_views.AccountViewSet, basename='account-api')
router.register(r'journals', journal_views.JournalEntryViewSet, basename='journal-api')

app_name = 'general_ledger_api'

urlpatterns = [
    path('', include(router.urls)),
    path('ledger/', ledger_views.LedgerAPIView.as_view(), name='ledger'),
    path('trial-balance/', ledger_views.TrialBalanceAPIView.as_view(), name='trial-balance'),
]
