from .base import TenantScopedModel
from .coa import Account, resolve_normal_balance, ACCOUNT_TYPE_TO_NATURE, MAX_ACCOUNT_LEVEL
from .journal import JournalEntry, JournalLine
from .sequence import JournalSequence

__all__ = [
    'TenantScopedModel',
    'Account', 'resolve_normal_balance', 'ACCOUNT_TYPE_TO_NATURE', 'MAX_ACCOUNT_LEVEL',
    'JournalEntry', 'JournalLine',
    'JournalSequence',
]
