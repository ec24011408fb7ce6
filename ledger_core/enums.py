# ledger_core/enums.py

from django.db import models
from django.utils.translation import gettext_lazy as _

# -------------------- CORE ACCOUNTING CLASSIFICATIONS --------------------

class AccountType(models.TextChoices):
    """
    Fundamental accounting classification for an Account.
    Determines which side of the ledger increases the account's balance.
    """
    ASSET     = 'asset', _('Asset')           # Cash, receivables, inventory
    LIABILITY = 'liability', _('Liability')   # Payables, loans
    EQUITY    = 'equity', _('Equity')         # Owner's stake, retained earnings
    REVENUE   = 'revenue', _('Revenue')       # Sales, service revenue
    EXPENSE   = 'expense', _('Expense')       # Salaries, rent, utilities
    COGS      = 'cogs', _('Cost of Goods Sold')

class AccountNature(models.TextChoices):
    """
    The normal balance side of an account. Always derived from AccountType,
    never stored independently on an account.
    """
    DEBIT  = 'DEBIT', _('Debit')
    CREDIT = 'CREDIT', _('Credit')

# -------------------- JOURNAL LIFECYCLE --------------------

class JournalStatus(models.TextChoices):
    DRAFT     = 'draft', _('Draft')
    POSTED    = 'posted', _('Posted')
    CANCELLED = 'cancelled', _('Cancelled')

class SourceModule(models.TextChoices):
    """The subsystem that originated a journal entry."""
    AR        = 'AR', _('Accounts Receivable')
    AP        = 'AP', _('Accounts Payable')
    INVENTORY = 'Inventory', _('Inventory')
    MANUAL    = 'Manual', _('Manual Journal')
    COGS      = 'COGS', _('Cost of Goods Sold')
    POS       = 'POS', _('Point of Sale')

class ReferenceType(models.TextChoices):
    """Kind of domain document a journal entry was generated from."""
    SALES_INVOICE    = 'sales_invoice', _('Sales Invoice')
    PURCHASE_RECEIPT = 'purchase_receipt', _('Purchase Receipt')
    INVOICE_PAYMENT  = 'invoice_payment', _('Invoice Payment')
    BILL_PAYMENT     = 'bill_payment', _('Bill Payment')
    STOCK_ADJUSTMENT = 'stock_adjustment', _('Stock Adjustment')
    POS_TRANSACTION  = 'pos_transaction', _('POS Transaction')
    MANUAL           = 'manual', _('Manual')

# -------------------- COMPANY SETTINGS --------------------

class CurrencyType(models.TextChoices):
    USD = 'USD', _('US Dollar')
    EUR = 'EUR', _('Euro')
    GBP = 'GBP', _('British Pound')
    INR = 'INR', _('Indian Rupee')
    AED = 'AED', _('UAE Dirham')
    SAR = 'SAR', _('Saudi Riyal')
    PKR = 'PKR', _('Pakistani Rupee')
    JPY = 'JPY', _('Japanese Yen')
    CNY = 'CNY', _('Chinese Yuan')
    CAD = 'CAD', _('Canadian Dollar')
    AUD = 'AUD', _('Australian Dollar')
