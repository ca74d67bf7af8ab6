"""
Ledger Kernel

An in-memory, lock-guarded double-entry ledger with:
- Hierarchical accounts with cached running balances
- Multi-currency transactions and exchange-rate history
- Securities, price history and investment transactions
- Budgets, recurring reminders and soft deletion (trash)
- Change notifications through a per-engine message bus
"""

__version__ = "0.1.0"
