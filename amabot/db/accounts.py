"""
Account storage.

``AccountStore`` is the contract the agent tools and the bot service depend
on. Wallet provisioning and balance refresh are shared here; subclasses only
persist records.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, Optional, Union

from ..core.units import balance_to_decimal
from ..core.wallet import SecretCipher, generate_keypair
from ..providers.base import BalanceProvider
from .models import Account, AccountStats, RecordedTransaction, TransactionKind, utc_now

logger = logging.getLogger(__name__)


class AccountStoreError(Exception):
    """Base exception for account storage errors"""
    pass


class AccountNotFoundError(AccountStoreError):
    """Raised when an account does not exist"""

    def __init__(self, user_id: str):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class AccountStore(ABC):
    """Persistence for accounts, plus lazy wallet provisioning."""

    def __init__(self, oracle: BalanceProvider, cipher: SecretCipher):
        self.oracle = oracle
        self.cipher = cipher

    # -- persistence, implemented by backends -------------------------------

    @abstractmethod
    async def get(self, user_id: str) -> Optional[Account]:
        pass

    @abstractmethod
    async def _insert(self, account: Account) -> Account:
        """Persist a new account; return the stored record if another writer won."""
        pass

    @abstractmethod
    async def _set_balance(self, user_id: str, balance: Decimal) -> None:
        pass

    @abstractmethod
    async def _append_transaction(self, user_id: str, transaction: RecordedTransaction) -> None:
        pass

    # -- shared operations ---------------------------------------------------

    async def require(self, user_id: str) -> Account:
        account = await self.get(user_id)
        if account is None:
            raise AccountNotFoundError(user_id)
        return account

    async def get_or_create(self, user_id: str, display_name: str = "Unknown") -> Account:
        """Return the user's account, provisioning a wallet on first contact."""
        account = await self.get(user_id)
        if account is not None:
            return account

        logger.info(f"Creating new user: {display_name} ({user_id})")
        keypair = await asyncio.to_thread(generate_keypair)
        balance = balance_to_decimal(await self.oracle.get_balance(keypair.public_key))

        account = Account(
            user_id=user_id,
            display_name=display_name,
            public_key=keypair.public_key,
            encrypted_secret=self.cipher.encrypt(keypair.private_key),
            balance=balance,
        )
        stored = await self._insert(account)
        if stored.public_key == account.public_key:
            logger.info(f"User created with wallet: {account.public_key}")
        return stored

    async def refresh_balance(self, user_id: str) -> Decimal:
        """Read the live balance and overwrite the cached value."""
        account = await self.require(user_id)
        balance = balance_to_decimal(await self.oracle.get_balance(account.public_key))
        await self._set_balance(user_id, balance)
        return balance

    async def record_transaction(
        self,
        user_id: str,
        kind: Union[TransactionKind, str],
        amount: Union[Decimal, str, int],
        tx_hash: Optional[str] = None,
        description: Optional[str] = None,
    ) -> RecordedTransaction:
        transaction = RecordedTransaction(
            kind=TransactionKind(kind),
            amount=Decimal(str(amount)),
            tx_hash=tx_hash,
            description=description,
        )
        await self._append_transaction(user_id, transaction)
        return transaction

    async def get_stats(self, user_id: str) -> AccountStats:
        account = await self.require(user_id)
        return AccountStats(
            total_requests=account.total_requests,
            total_spent=account.total_spent,
            balance=account.balance,
            wallet_address=account.public_key,
            member_since=account.created_at,
        )


class InMemoryAccountStore(AccountStore):
    """Process-local store, used for development, the CLI and tests."""

    def __init__(self, oracle: BalanceProvider, cipher: SecretCipher):
        super().__init__(oracle, cipher)
        self._accounts: Dict[str, Account] = {}
        self._lock = asyncio.Lock()

    async def get(self, user_id: str) -> Optional[Account]:
        account = self._accounts.get(user_id)
        return account.model_copy(deep=True) if account is not None else None

    async def _insert(self, account: Account) -> Account:
        async with self._lock:
            existing = self._accounts.get(account.user_id)
            if existing is None:
                self._accounts[account.user_id] = account.model_copy(deep=True)
                return account
            return existing.model_copy(deep=True)

    async def _set_balance(self, user_id: str, balance: Decimal) -> None:
        async with self._lock:
            account = self._accounts.get(user_id)
            if account is None:
                raise AccountNotFoundError(user_id)
            account.balance = balance
            account.last_active = utc_now()

    async def _append_transaction(self, user_id: str, transaction: RecordedTransaction) -> None:
        async with self._lock:
            account = self._accounts.get(user_id)
            if account is None:
                raise AccountNotFoundError(user_id)
            account.apply(transaction)
