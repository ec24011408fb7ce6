"""
Custom exceptions for the general ledger: chart of accounts maintenance,
the journal entry lifecycle and the posting protocol.

Services raise these; ``ledger_core.exception_handler`` maps them to HTTP
responses so views do not need to catch them individually.
"""

from contextlib import contextmanager

from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils.translation import gettext_lazy as _


class LedgerError(Exception):
    """
    Base exception for every error raised by the ledger services.
    Allows catching all ledger-specific issues easily.
    """
    default_message = _("An error occurred in the general ledger.")
    code = 'ledger_error'

    def __init__(self, message=None, code=None):
        self.message = str(message or self.default_message)
        self.code = code or self.code
        super().__init__(self.message)


class ValidationFailed(LedgerError):
    """Malformed or unbalanced request, detected before any write."""
    default_message = _("The request failed validation.")
    code = 'validation_failed'

    def __init__(self, message=None, errors=None):
        self.errors = errors or {}
        super().__init__(message=message, code=self.code)


class NotFound(LedgerError):
    default_message = _("The requested ledger record was not found.")
    code = 'not_found'


class Conflict(LedgerError):
    """Duplicate account number, stale version, or an account still in use."""
    default_message = _("The request conflicts with the current state of the ledger.")
    code = 'conflict'


class Forbidden(LedgerError):
    default_message = _("This operation is not allowed on a system account.")
    code = 'forbidden'


class SelfParent(LedgerError):
    default_message = _("An account cannot be its own parent.")
    code = 'self_parent'


class InvalidTransition(LedgerError):
    """
    Raised when a lifecycle operation is attempted on a journal entry
    that is not in an appropriate status for that operation.
    """
    default_message = _("Operation invalid for the current journal entry status.")
    code = 'invalid_transition'

    def __init__(self, current_status, attempted=None, message=None):
        self.current_status = current_status
        self.attempted = attempted
        if not message:
            status_display = current_status.label if hasattr(current_status, 'label') else current_status
            if attempted:
                message = _("Cannot %(action)s a journal entry with status '%(current)s'.") % {
                    'action': attempted, 'current': status_display
                }
            else:
                message = _("Operation invalid for status '%(current)s'.") % {'current': status_display}
        super().__init__(message=message, code=self.code)


class AlreadyPosted(LedgerError):
    default_message = _("The journal entry has already been posted.")
    code = 'already_posted'


class Immutable(LedgerError):
    default_message = _("Posted and cancelled journal entries cannot be modified.")
    code = 'immutable'


class Unbalanced(LedgerError):
    """Total debits and total credits differ by more than the posting tolerance."""
    default_message = _("Journal entry debits and credits do not balance.")
    code = 'unbalanced'

    def __init__(self, difference=None, message=None):
        self.difference = difference
        if not message and difference is not None:
            message = _("Journal entry is out of balance by %(diff)s.") % {'diff': difference}
        super().__init__(message=message, code=self.code)


class TooFewLines(LedgerError):
    default_message = _("A journal entry needs at least two lines to be posted.")
    code = 'too_few_lines'


class AccountNotConfigured(LedgerError):
    """A well-known account required by a posting adapter is missing for the company."""
    default_message = _("A required ledger account is not configured.")
    code = 'account_not_configured'

    def __init__(self, account_number, role=None, message=None):
        self.account_number = account_number
        self.role = role
        if not message:
            message = _("Required account %(number)s (%(role)s) is not configured or inactive for this company.") % {
                'number': account_number, 'role': role or _('unspecified role')
            }
        super().__init__(message=message, code=self.code)


class PostingFailed(LedgerError):
    """
    The line insert failed after the header insert; the entry was rolled back.
    The underlying exception is available as ``cause`` (and as ``__cause__``).
    """
    default_message = _("Posting failed and the journal entry was rolled back.")
    code = 'posting_failed'

    def __init__(self, cause=None, message=None):
        self.cause = cause
        if not message and cause is not None:
            message = _("Posting failed and the journal entry was rolled back: %(cause)s") % {'cause': cause}
        super().__init__(message=message, code=self.code)


class Internal(LedgerError):
    default_message = _("An unexpected ledger storage error occurred.")
    code = 'internal'


@contextmanager
def model_validation_as_ledger_error():
    """
    Re-raises a Django ``ValidationError`` from ``full_clean`` (field lengths,
    choices, model ``clean``) as ``ValidationFailed`` with per-field errors.
    """
    try:
        yield
    except DjangoValidationError as exc:
        errors = exc.message_dict if hasattr(exc, 'error_dict') else {'__all__': exc.messages}
        raise ValidationFailed(_("The record failed validation."), errors=errors) from exc
