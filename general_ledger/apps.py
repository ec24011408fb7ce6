# general_ledger/apps.py
from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class GeneralLedgerConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'general_ledger'
    verbose_name = _("General Ledger")
