"""
SOBS Banking Core

Account ledger and transaction-authorization engine for the SOBS online
banking demo: card policy gates, Decimal balances, and an append-only
transaction history for every balance-affecting operation.
"""

__version__ = "1.0.0"
