"""
ledger_core/exceptions.py

API-facing exception classes for the ledger. Each maps a domain error onto an
HTTP status, a default message and a stable error code.
"""

from django.utils.translation import gettext_lazy as _
from rest_framework.exceptions import APIException
from rest_framework import status


class LedgerValidationException(APIException):
    """
    Raised when a ledger request is malformed or an account hierarchy rule is broken.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = _('The request failed validation.')
    default_code = 'validation_failed'


class LedgerForbiddenException(APIException):
    """
    Raised when an operation targets a protected (system) account.
    """
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = _('This operation is not allowed on a system account.')
    default_code = 'forbidden'


class LedgerNotFoundException(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = _('The requested ledger record was not found.')
    default_code = 'not_found'


class LedgerConflictException(APIException):
    """
    Raised for duplicate account numbers, stale versions, accounts still in use,
    and journal lifecycle violations.
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = _('The request conflicts with the current state of the ledger.')
    default_code = 'conflict'


class InvalidJournalEntryException(APIException):
    """
    Raised when a journal entry is unbalanced or structurally incorrect.
    """
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = _('Journal entry is invalid. Debits and credits must match.')
    default_code = 'invalid_journal_entry'


class AccountNotConfiguredException(APIException):
    """
    Raised when a well-known account needed for automatic posting is missing.
    """
    status_code = status.HTTP_424_FAILED_DEPENDENCY
    default_detail = _('A required ledger account is not configured.')
    default_code = 'account_not_configured'


class LedgerInternalException(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = _('An internal ledger error occurred. The operation was not completed.')
    default_code = 'internal'
