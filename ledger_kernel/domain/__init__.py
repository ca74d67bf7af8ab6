"""
Ledger domain layer.

Accounts, commodities, exchange rates, transactions, budgets, reminders and
the trash wrapper.  Nothing here performs I/O or publishes messages; the
engine in ``ledger_kernel.services`` coordinates mutation, persistence and
notification.
"""
