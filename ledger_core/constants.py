# ledger_core/constants.py

"""
Static constants shared by the ledger apps: the well-known account numbers the
domain posting adapters rely on, and the default Chart of Accounts that is
provisioned for a new company.
"""

from .enums import AccountType

# =============================================================================
# Well-known account numbers (resolved per company by the posting adapters)
# =============================================================================
CASH_BANK_ACCOUNT = 'A-1000'
ACCOUNTS_RECEIVABLE_ACCOUNT = 'A-1100'
INVENTORY_ACCOUNT = 'A-1200'
ACCOUNTS_PAYABLE_ACCOUNT = 'L-2000'
SALES_REVENUE_ACCOUNT = 'R-4000'
SALES_DISCOUNT_ACCOUNT = 'R-4010'
SALES_TAX_PAYABLE_ACCOUNT = 'L-2100'
COGS_ACCOUNT = 'C-5000'

# =============================================================================
# Default Chart of Accounts
# =============================================================================
# Format: (account_number, account_name, account_type, parent_number, is_system_account, sort_order)
# Parents must appear before their children.

DEFAULT_CHART_OF_ACCOUNTS = [
    # ========================== ASSETS ==========================
    ('A-1000', 'Cash and Bank', AccountType.ASSET, None, True, 100),
    ('A-1100', 'Accounts Receivable', AccountType.ASSET, None, True, 200),
    ('A-1200', 'Inventory', AccountType.ASSET, None, True, 300),
    ('A-1500', 'Fixed Assets', AccountType.ASSET, None, False, 400),

    # ======================== LIABILITIES ========================
    ('L-2000', 'Accounts Payable', AccountType.LIABILITY, None, True, 500),
    ('L-2100', 'Sales Tax Payable', AccountType.LIABILITY, None, True, 600),
    ('L-2200', 'Accrued Expenses', AccountType.LIABILITY, None, False, 650),
    ('L-2500', 'Long-term Debt', AccountType.LIABILITY, None, False, 700),

    # ========================== EQUITY ==========================
    ('E-3000', "Owner's Equity", AccountType.EQUITY, None, False, 800),
    ('E-3100', 'Retained Earnings', AccountType.EQUITY, None, False, 900),

    # ========================== REVENUE ==========================
    ('R-4000', 'Sales Revenue', AccountType.REVENUE, None, True, 1000),
    ('R-4010', 'Sales Discounts', AccountType.REVENUE, 'R-4000', True, 1010),
    ('R-4100', 'Service Revenue', AccountType.REVENUE, None, False, 1100),
    ('R-4900', 'Other Income', AccountType.REVENUE, None, False, 1200),

    # =========================== COGS ===========================
    ('C-5000', 'Cost of Goods Sold', AccountType.COGS, None, True, 1300),

    # ========================= EXPENSES =========================
    ('E-6000', 'Operating Expenses', AccountType.EXPENSE, None, False, 1400),
    ('E-6100', 'Salaries and Wages', AccountType.EXPENSE, None, False, 1500),
    ('E-6200', 'Rent Expense', AccountType.EXPENSE, None, False, 1600),
    ('E-6300', 'Utilities Expense', AccountType.EXPENSE, None, False, 1700),
    ('E-6400', 'Depreciation Expense', AccountType.EXPENSE, None, False, 1800),
    ('E-6900', 'Miscellaneous Expense', AccountType.EXPENSE, None, False, 1900),
    ('E-6500', 'Inventory Adjustment - Loss/Gain', AccountType.EXPENSE, None, True, 2000),
]
