# company/middleware.py

import logging
from typing import Optional

from django.conf import settings
from django.utils.deprecation import MiddlewareMixin

from .models import Company, CompanyMembership

logger = logging.getLogger("company.middleware")

COMPANY_HEADER = 'HTTP_X_COMPANY_ID'
BASE_DOMAIN = getattr(settings, 'BASE_DOMAIN', None)
NON_TENANT_SUBDOMAINS = getattr(settings, 'NON_TENANT_SUBDOMAINS', ['www', 'api', 'admin', 'static', 'media'])


class CompanyMiddleware(MiddlewareMixin):
    """
    Identifies the current Company (tenant) for the request and sets `request.company`.
    Priority:
    1. Explicit `X-Company-ID` header.
    2. Subdomain of BASE_DOMAIN.
    3. The authenticated user's default active membership.

    Access control is not decided here; `BaseCompanyAccessPermission` checks membership.
    """

    def _get_company_from_header(self, request) -> Optional[Company]:
        raw_id = request.META.get(COMPANY_HEADER)
        if not raw_id:
            return None
        try:
            company_id = int(raw_id)
        except (TypeError, ValueError):
            logger.warning(f"[CoMiddleware] Ignoring malformed X-Company-ID header '{raw_id}'.")
            return None
        company = Company.objects.filter(pk=company_id).first()
        if company is None:
            logger.warning(f"[CoMiddleware] X-Company-ID {company_id} does not match any company.")
        return company

    def _get_company_from_subdomain(self, host: str) -> Optional[Company]:
        if not BASE_DOMAIN or not host.endswith(f".{BASE_DOMAIN}"):
            return None
        prefix = host[:-len(f".{BASE_DOMAIN}")]
        if not prefix or prefix in NON_TENANT_SUBDOMAINS:
            return None
        company = Company.objects.filter(subdomain_prefix__iexact=prefix).first()
        if company is None:
            logger.warning(f"[CoMiddleware][Host:{host}] No Company found for subdomain_prefix '{prefix}'.")
        return company

    def _get_company_from_user(self, request) -> Optional[Company]:
        user = getattr(request, 'user', None)
        if not (user and user.is_authenticated):
            return None
        membership = CompanyMembership.objects.select_related('company').filter(
            user=user,
            is_active_membership=True,
            company__is_active=True,
            company__is_suspended_by_admin=False,
        ).order_by('-is_default_for_user', 'company__name').first()
        return membership.company if membership else None

    def process_request(self, request):
        host = request.get_host().split(':')[0].lower()
        request.company = (
            self._get_company_from_header(request)
            or self._get_company_from_subdomain(host)
            or self._get_company_from_user(request)
        )
        if request.company is not None:
            logger.debug(
                f"[CoMiddleware][Path:{request.path}] Resolved Company '{request.company.name}' "
                f"(ID: {request.company.pk})."
            )
