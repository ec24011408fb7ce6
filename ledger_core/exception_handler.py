# ledger_core/exception_handler.py
import logging

from rest_framework.views import exception_handler as drf_exception_handler

from general_ledger import exceptions as gl_errors
from . import exceptions as api_errors

logger = logging.getLogger("ledger_core.exception_handler")

# Most specific classes first; the first isinstance match wins.
ERROR_MAP = (
    (gl_errors.ValidationFailed, api_errors.LedgerValidationException),
    (gl_errors.SelfParent, api_errors.LedgerValidationException),
    (gl_errors.Forbidden, api_errors.LedgerForbiddenException),
    (gl_errors.NotFound, api_errors.LedgerNotFoundException),
    (gl_errors.Conflict, api_errors.LedgerConflictException),
    (gl_errors.AlreadyPosted, api_errors.LedgerConflictException),
    (gl_errors.InvalidTransition, api_errors.LedgerConflictException),
    (gl_errors.Immutable, api_errors.LedgerConflictException),
    (gl_errors.Unbalanced, api_errors.InvalidJournalEntryException),
    (gl_errors.TooFewLines, api_errors.InvalidJournalEntryException),
    (gl_errors.AccountNotConfigured, api_errors.AccountNotConfiguredException),
    (gl_errors.PostingFailed, api_errors.LedgerInternalException),
    (gl_errors.Internal, api_errors.LedgerInternalException),
)

# Errors whose message may carry storage internals; only the default detail is returned.
OPAQUE_ERRORS = (gl_errors.PostingFailed, gl_errors.Internal)


def to_api_exception(error: gl_errors.LedgerError):
    """Translate a ledger domain error into the matching DRF APIException."""
    for error_class, api_class in ERROR_MAP:
        if isinstance(error, error_class):
            if isinstance(error, OPAQUE_ERRORS):
                return api_class(code=error.code)
            detail = error.message
            if isinstance(error, gl_errors.ValidationFailed) and error.errors:
                detail = {'detail': error.message, 'errors': error.errors}
            return api_class(detail=detail, code=error.code)
    return api_errors.LedgerInternalException(code=error.code)


def ledger_exception_handler(exc, context):
    """
    REST_FRAMEWORK['EXCEPTION_HANDLER'] entry point. Converts LedgerError into
    an APIException, then defers to DRF's default handler. The response body
    always carries ``detail`` and ``code``.
    """
    if isinstance(exc, gl_errors.LedgerError):
        view_name = context.get('view').__class__.__name__ if context.get('view') else 'UnknownView'
        if isinstance(exc, OPAQUE_ERRORS):
            logger.error(f"[{view_name}] Ledger internal failure ({exc.code}): {exc.message}", exc_info=exc)
        else:
            logger.info(f"[{view_name}] Ledger request rejected ({exc.code}): {exc.message}")
        exc = to_api_exception(exc)

    response = drf_exception_handler(exc, context)
    if response is not None and isinstance(response.data, dict) and 'detail' in response.data:
        detail = getattr(exc, 'detail', None)
        response.data.setdefault('code', getattr(detail, 'code', None) or getattr(exc, 'default_code', 'error'))
    return response
