import datetime

import pytz
from dateutil.relativedelta import relativedelta
from django.conf import settings
from django.core.validators import RegexValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from ledger_core.enums import CurrencyType


class Company(models.Model):
    subdomain_prefix = models.CharField(
        _("Subdomain Prefix"),
        max_length=100,
        unique=True,
        db_index=True,
        help_text=_("Unique tenant identifier (e.g., 'acme' for acme.yourdomain.com). Lowercase letters, numbers, hyphens."),
        validators=[
            RegexValidator(
                regex=r'^[a-z0-9-]+$',
                message=_("Subdomain can only contain lowercase letters, numbers, and hyphens.")
            )
        ]
    )
    name = models.CharField(
        _("Legal Company Name"),
        max_length=255,
        help_text=_("The official legal name of the company.")
    )
    display_name = models.CharField(
        _("Display Name / Trading Name"),
        max_length=255,
        blank=True,
        help_text=_("Name used for display purposes if different from legal name. Defaults to legal name.")
    )
    default_currency_code = models.CharField(
        _("Default Currency Code"),
        max_length=10,
        choices=CurrencyType.choices,
        default=CurrencyType.USD.value,
        help_text=_("Company's reporting currency. All ledger amounts are in this currency.")
    )
    financial_year_start_month = models.PositiveSmallIntegerField(
        _("Financial Year Start Month"),
        default=1,
        choices=[(i, datetime.date(2000, i, 1).strftime('%B')) for i in range(1, 13)],
        help_text=_("The month your company's financial year starts.")
    )
    timezone_name = models.CharField(
        _("Timezone"),
        max_length=63,
        default='UTC',
        choices=[(tz, tz) for tz in pytz.common_timezones],
        help_text=_("Company's primary operational timezone (e.g., 'America/New_York', 'Asia/Kolkata').")
    )
    is_active = models.BooleanField(
        _("Tenant Account Active"), default=True,
        help_text=_("Designates whether this tenant account is active and can access the service.")
    )
    is_suspended_by_admin = models.BooleanField(default=False, verbose_name=_("Suspended by Admin"))
    created_at = models.DateTimeField(_("Registered At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Last Updated"), auto_now=True)

    class Meta:
        verbose_name = _("Company")
        verbose_name_plural = _("Companies")
        ordering = ['name']

    def __str__(self):
        return f"{self.display_name or self.name} ({self.subdomain_prefix})"

    def save(self, *args, **kwargs):
        if not self.display_name:
            self.display_name = self.name
        super().save(*args, **kwargs)

    @property
    def effective_is_active(self):
        return self.is_active and not self.is_suspended_by_admin

    @property
    def tzinfo(self):
        try:
            return pytz.timezone(self.timezone_name)
        except pytz.exceptions.UnknownTimeZoneError:
            return pytz.utc

    def local_today(self) -> datetime.date:
        """Today's date in the company's own timezone."""
        return timezone.localtime(timezone.now(), self.tzinfo).date()

    def get_current_financial_year_dates(self, for_date=None):
        if for_date is None:
            for_date = self.local_today()
        elif isinstance(for_date, datetime.datetime):
            for_date = timezone.localtime(for_date, self.tzinfo).date()
        elif not isinstance(for_date, datetime.date):
            raise ValueError("for_date must be a datetime.date or datetime.datetime object")

        start_month = self.financial_year_start_month
        fy_start_date = datetime.date(for_date.year, start_month, 1)
        if for_date < fy_start_date:
            fy_start_date = datetime.date(for_date.year - 1, start_month, 1)
        fy_end_date = fy_start_date + relativedelta(years=1, days=-1)
        return fy_start_date, fy_end_date


class CompanyMembership(models.Model):
    """
    Grants a user access to one company's ledger. Viewers may read every
    ledger endpoint; only admins and accountants may change anything.
    """
    class Role(models.TextChoices):
        ADMIN = 'admin', _('Administrator')
        ACCOUNTANT = 'accountant', _('Accountant')
        VIEWER = 'viewer', _('Viewer (Read-Only)')

    WRITE_ROLES = frozenset({Role.ADMIN, Role.ACCOUNTANT})

    company = models.ForeignKey(Company, verbose_name=_("Company"), on_delete=models.CASCADE,
                                related_name='memberships')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, verbose_name=_("User"), on_delete=models.CASCADE,
                             related_name='company_memberships')
    role = models.CharField(_("Role"), max_length=20, choices=Role.choices, default=Role.ACCOUNTANT)
    is_active_membership = models.BooleanField(_("Membership is Active"), default=True)
    is_default_for_user = models.BooleanField(
        _("Is Default Company for this User"), default=False,
        help_text=_("Selected when the request does not name a company explicitly.")
    )
    date_joined = models.DateTimeField(_("Date Joined Company"), auto_now_add=True)

    class Meta:
        verbose_name = _("Company Membership")
        verbose_name_plural = _("Company Memberships")
        unique_together = ('company', 'user')
        ordering = ['company__name']
        indexes = [
            models.Index(fields=['user', 'is_default_for_user']),
        ]

    def __str__(self):
        return f"{self.user.get_username()} @ {self.company.subdomain_prefix} ({self.role})"

    def save(self, *args, **kwargs):
        # At most one default company per user.
        if self.is_default_for_user:
            CompanyMembership.objects.filter(user=self.user, is_default_for_user=True)\
                                     .exclude(pk=self.pk)\
                                     .update(is_default_for_user=False)
        super().save(*args, **kwargs)

    @property
    def can_write(self) -> bool:
        return self.role in self.WRITE_ROLES
