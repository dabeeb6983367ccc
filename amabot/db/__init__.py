from .accounts import AccountNotFoundError, AccountStore, AccountStoreError, InMemoryAccountStore
from .models import Account, AccountStats, RecordedTransaction, TransactionKind

__all__ = [
    "Account",
    "AccountNotFoundError",
    "AccountStats",
    "AccountStore",
    "AccountStoreError",
    "InMemoryAccountStore",
    "RecordedTransaction",
    "TransactionKind",
]
