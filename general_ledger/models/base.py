# general_ledger/models/base.py

import uuid
import logging

from django.contrib.auth import get_user_model
from django.db import models
from django.utils.translation import gettext_lazy as _
from django.core.exceptions import ValidationError, PermissionDenied
from django.conf import settings

from safedelete.models import SafeDeleteModel
from safedelete.managers import SafeDeleteManager, SafeDeleteAllManager, SafeDeleteDeletedManager
from safedelete.queryset import SafeDeleteQueryset
from safedelete import SOFT_DELETE
from simple_history.models import HistoricalRecords

from company.models import Company

logger = logging.getLogger(__name__)

# ============================================================================
# Tenant-aware QuerySet and Manager Combinations
# ============================================================================

class TenantSafeDeleteQueryset(SafeDeleteQueryset):
    """Soft-delete aware queryset that can be narrowed to a single company."""

    def for_company(self, company):
        company_id = company.pk if isinstance(company, Company) else company
        return self.filter(company_id=company_id)


class TenantSafeDeleteManager(SafeDeleteManager):
    """Live (non-deleted) rows; tenant scoping is always explicit via for_company()."""
    _queryset_class = TenantSafeDeleteQueryset

    def for_company(self, company):
        return self.get_queryset().for_company(company)


class TenantDeletedManager(SafeDeleteDeletedManager):
    """Only soft-deleted rows."""
    _queryset_class = TenantSafeDeleteQueryset

    def for_company(self, company):
        return self.get_queryset().for_company(company)


class TenantAllIncludingDeletedManager(SafeDeleteAllManager):
    """All rows, deleted or not."""
    _queryset_class = TenantSafeDeleteQueryset

    def for_company(self, company):
        return self.get_queryset().for_company(company)

# ============================================================================
# Abstract Base Model with Tenant Scoping and Soft Delete
# ============================================================================

class TenantScopedModel(SafeDeleteModel):
    """
    Abstract base model that includes:
    - Soft deletion support (``deleted_at``)
    - Tenant scoping via a 'company' foreign key
    - Audit fields (created/updated timestamps and users)
    - Historical tracking
    """
    _safedelete_policy = SOFT_DELETE

    id = models.UUIDField(
        primary_key=True, default=uuid.uuid4, editable=False, verbose_name=_("ID")
    )
    company = models.ForeignKey(
        Company, verbose_name=_("Company"), on_delete=models.PROTECT,
        related_name='%(app_label)s_%(class)s_related', db_index=True,
        help_text=_("The company this record belongs to.")
    )
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True, editable=False)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True, editable=False)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, verbose_name=_("Created By"), on_delete=models.SET_NULL,
        null=True, blank=True, related_name='created_%(app_label)s_%(class)s_set', editable=False
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, verbose_name=_("Last Updated By"), on_delete=models.SET_NULL,
        null=True, blank=True, related_name='updated_%(app_label)s_%(class)s_set', editable=False
    )

    objects = TenantSafeDeleteManager()
    deleted_objects = TenantDeletedManager()
    all_objects = TenantAllIncludingDeletedManager()

    history = HistoricalRecords(inherit=True)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        """
        Enforces that a company is set and active, then runs full_clean
        unless only specific fields are being updated.
        """
        if not self.company_id:
            raise ValueError(f"Cannot save {self.__class__.__name__}: 'company' is required.")

        company = self.company
        if not company.effective_is_active:
            raise ValidationError({
                'company': _("Operations cannot be performed for an inactive or suspended company: %(company_name)s") %
                           {'company_name': company.name}
            })

        if not kwargs.get('update_fields'):
            if hasattr(self, '_set_derived_fields') and callable(self._set_derived_fields):
                self._set_derived_fields()
            self.full_clean()

        super().save(*args, **kwargs)

    @classmethod
    def create_for_company(cls, company: Company, created_by_user=None, **kwargs):
        """
        Class helper to create a model instance for a company with audit fields set.
        """
        if not isinstance(company, Company):
            raise TypeError("A valid Company instance must be provided.")
        if not company.effective_is_active:
            raise PermissionDenied(f"Cannot create {cls.__name__} records for inactive company: {company.name}")
        if created_by_user is not None and not isinstance(created_by_user, get_user_model()):
            raise TypeError("'created_by_user' must be a User instance or None.")

        for field in ['company', 'company_id', 'created_by', 'created_by_id', 'updated_by', 'updated_by_id']:
            kwargs.pop(field, None)

        instance = cls(company=company, created_by=created_by_user, updated_by=created_by_user, **kwargs)
        instance.save()
        logger.debug(f"Created new {cls.__name__} (ID: {instance.pk}) for Company '{company.name}'.")
        return instance
