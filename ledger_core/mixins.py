# ledger_core/mixins.py
import logging
from typing import Optional, Any

from django.db import models
from django.http import HttpRequest
from django.utils.translation import gettext_lazy as _
from rest_framework import permissions, viewsets, generics
from rest_framework.views import APIView

from company.models import Company, CompanyMembership

logger = logging.getLogger("ledger_core.mixins")


def _user_label(user) -> str:
    if user is not None and user.is_authenticated:
        return user.get_username()
    return "AnonymousUser"


class CompanyContextMixin:
    """
    Establishes `self.current_company` on the view instance from `request.company`
    (set by `company.middleware.CompanyMiddleware`).
    Also adds this company to the serializer context as `company_context`.
    """
    current_company: Optional[Company] = None

    def initial(self, request: HttpRequest, *args: Any, **kwargs: Any) -> None:
        company_from_request = getattr(request, 'company', None)
        view_name = self.__class__.__name__

        if isinstance(company_from_request, Company) and company_from_request.effective_is_active:
            self.current_company = company_from_request
            logger.debug(
                f"{view_name}: Company context set to '{self.current_company.name}' (ID: {self.current_company.pk})."
            )
        else:
            self.current_company = None
            if company_from_request is not None:
                logger.warning(
                    f"{view_name}: Company '{company_from_request}' on request is inactive or suspended. "
                    f"Context cleared."
                )
        # Permissions run inside super().initial() and read self.current_company.
        super().initial(request, *args, **kwargs)

    def get_serializer_context(self) -> dict:
        context = super().get_serializer_context()
        context['company_context'] = self.current_company
        return context


class BaseCompanyAccessPermission(permissions.BasePermission):
    """
    Ensures a valid and active `current_company` is set on the view and that
    non-superusers hold an active membership in it. Viewer memberships are
    limited to safe (read) methods.
    Objects are checked to ensure they belong to the `current_company`.
    """
    message_no_company_context = _("A valid company context is required to access this resource.")
    message_not_member = _("You are not an active member of this company.")
    message_read_only = _("Your role in this company is read-only.")
    message_object_permission_denied = _(
        "You do not have permission to access this specific object within your company.")

    def has_permission(self, request: HttpRequest, view: Any) -> bool:
        current_company: Optional[Company] = getattr(view, 'current_company', None)
        if not current_company:
            logger.warning(
                f"BaseCompanyAccessPermission: Denied for user '{_user_label(request.user)}' "
                f"to view '{view.__class__.__name__}'. Reason: No active 'current_company' on view."
            )
            self.message = self.message_no_company_context
            return False

        if request.user and request.user.is_superuser:
            return True

        membership = CompanyMembership.objects.filter(
            user=request.user, company=current_company, is_active_membership=True
        ).first()
        if membership is None:
            logger.warning(
                f"BaseCompanyAccessPermission: Denied for user '{_user_label(request.user)}' "
                f"to view '{view.__class__.__name__}'. Reason: no active membership in '{current_company.name}'."
            )
            self.message = self.message_not_member
            return False
        if request.method not in permissions.SAFE_METHODS and not membership.can_write:
            logger.warning(
                f"BaseCompanyAccessPermission: Denied {request.method} for user '{_user_label(request.user)}' "
                f"on '{view.__class__.__name__}'. Reason: role '{membership.role}' is read-only."
            )
            self.message = self.message_read_only
            return False
        return True

    def has_object_permission(self, request: HttpRequest, view: Any, obj: models.Model) -> bool:
        current_company: Optional[Company] = getattr(view, 'current_company', None)
        obj_company_id = getattr(obj, 'company_id', None)
        if obj_company_id is None:
            return True
        if not current_company or obj_company_id != current_company.pk:
            logger.warning(
                f"BaseCompanyAccessPermission (Object): User '{_user_label(request.user)}' denied access to "
                f"{obj._meta.verbose_name} {obj.pk} of Company {obj_company_id}."
            )
            self.message = self.message_object_permission_denied
            return False
        return True


class CompanyScopedViewSetMixin(CompanyContextMixin, viewsets.GenericViewSet):
    """
    Base for ViewSets scoped to the `current_company`. The queryset is narrowed
    explicitly by company; nothing relies on ambient tenant state.
    """
    permission_classes = [permissions.IsAuthenticated, BaseCompanyAccessPermission]

    def get_queryset(self) -> models.QuerySet:
        queryset = super().get_queryset()
        if getattr(self, 'swagger_fake_view', False) or self.current_company is None:
            return queryset.none()
        return queryset.filter(company=self.current_company)


class CompanyScopedAPIViewMixin(CompanyContextMixin, APIView):
    permission_classes = [permissions.IsAuthenticated, BaseCompanyAccessPermission]


class CompanyScopedGenericAPIViewMixin(CompanyContextMixin, generics.GenericAPIView):
    permission_classes = [permissions.IsAuthenticated, BaseCompanyAccessPermission]
