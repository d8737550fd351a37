"""Repository layer for the meeting ledger.

Provides:
- LedgerStore: Schema setup and transaction/snapshot scopes
- LedgerTransaction: Row-level operations valid inside one scope
"""

from meeting_cost.repositories.ledger import LedgerStore, LedgerTransaction

__all__ = [
    "LedgerStore",
    "LedgerTransaction",
]
