"""
Transaction executor for Amadeus transfers.

Handles the full lifecycle of custodial transfers:
- Building unsigned transactions through the protocol service
- Signing with the user's decrypted key
- Submitting signed transactions
- Fee + transfer batches with partial-failure reporting
"""

import asyncio
import logging
from decimal import Decimal
from typing import List, Optional, Sequence

from ...db.models import Account
from ...providers.base import BalanceProvider
from ...providers.protocol import InvalidResponseError, ProtocolClient
from ..units import TOKEN_SYMBOL, AmountLike, balance_to_decimal, format_amount, parse_amount, to_atomic
from ..wallet import SecretCipher, sign_transaction

from .models import (
    BatchResult,
    ChargeResult,
    CreatedTransaction,
    SignedTransaction,
    TransactionLeg,
    TransferResult,
    TransferSpec,
)


logger = logging.getLogger(__name__)


class ExecutionError(Exception):
    """Base exception for execution errors."""
    pass


class InsufficientBalanceError(ExecutionError):
    """Live balance does not cover the amount about to be spent."""

    def __init__(self, message: str, balance: Decimal, required: Decimal):
        super().__init__(message)
        self.balance = balance
        self.required = required


class PaymentError(ExecutionError):
    """The per-request fee could not be charged."""
    pass


class BatchExecutionError(ExecutionError):
    """A fee + transfer batch did not complete."""
    pass


class PartialBatchError(BatchExecutionError):
    """Exactly one leg of a batch reached the chain.

    Nothing is rolled back; the landed hash is kept so it can be reported.
    """

    def __init__(
        self,
        message: str,
        landed_leg: TransactionLeg,
        landed_tx_hash: str,
        failed_leg: TransactionLeg,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.landed_leg = landed_leg
        self.landed_tx_hash = landed_tx_hash
        self.failed_leg = failed_leg
        self.cause = cause


def _short(value: str, length: int = 40) -> str:
    return value if len(value) <= length else f"{value[:length]}..."


class TransactionExecutor:
    """
    Builds, signs and submits Amadeus transfers for custodial accounts.

    Responsibilities:
    - Pre-flight balance checks for single charges and legacy transfers
    - Concurrent create and submit for the two legs of a batch
    - Keeping the decrypted secret inside one signing operation
    """

    def __init__(
        self,
        protocol: ProtocolClient,
        oracle: BalanceProvider,
        cipher: SecretCipher,
        system_wallet: str,
        fee: Decimal,
        network: str = "testnet",
        symbol: str = TOKEN_SYMBOL,
    ):
        self.protocol = protocol
        self.oracle = oracle
        self.cipher = cipher
        self.system_wallet = system_wallet
        self.fee = parse_amount(fee)
        self.network = network
        self.symbol = symbol

    # =========================================================================
    # Building blocks
    # =========================================================================

    def _spec(self, leg: TransactionLeg, recipient: str, amount: Decimal) -> TransferSpec:
        return TransferSpec(leg=leg, recipient=recipient, amount=amount, amount_atomic=to_atomic(amount))

    async def _create(self, account: Account, spec: TransferSpec) -> CreatedTransaction:
        logger.info(
            f"Creating {spec.leg.value} transaction: {spec.amount} {self.symbol} "
            f"({spec.amount_atomic} atomic) {account.public_key} -> {spec.recipient}"
        )
        data = await self.protocol.call_tool_json(
            "create_transaction",
            spec.to_create_arguments(account.public_key, self.symbol),
        )

        signing_payload = data.get("signing_payload")
        blob = data.get("blob")
        if not signing_payload or not blob:
            raise InvalidResponseError("Invalid transaction response from create_transaction")

        logger.debug(f"Signing payload ({spec.leg.value}): {_short(signing_payload)}")
        return CreatedTransaction(leg=spec.leg, signing_payload=signing_payload, blob=blob)

    def _sign_with_secret(
        self, encrypted_secret: str, created: Sequence[CreatedTransaction]
    ) -> List[SignedTransaction]:
        secret = self.cipher.decrypt(encrypted_secret)
        try:
            return [
                SignedTransaction(
                    leg=tx.leg,
                    blob=tx.blob,
                    signature=sign_transaction(tx.signing_payload, secret),
                )
                for tx in created
            ]
        finally:
            del secret

    async def _sign(self, account: Account, created: Sequence[CreatedTransaction]) -> List[SignedTransaction]:
        """Decrypt once and sign every payload in a worker thread."""
        signed = await asyncio.to_thread(self._sign_with_secret, account.encrypted_secret, created)
        for tx in signed:
            logger.debug(f"Signature ({tx.leg.value}): {_short(tx.signature)}")
        return signed

    async def _submit(self, signed: SignedTransaction) -> str:
        data = await self.protocol.call_tool_json(
            "submit_transaction",
            {
                "transaction": signed.blob,
                "signature": signed.signature,
                "network": self.network,
            },
        )
        tx_hash = data.get("tx_hash")
        if not tx_hash:
            raise InvalidResponseError("No transaction hash returned from blockchain")

        logger.info(f"Submitted {signed.leg.value} transaction: {tx_hash}")
        return tx_hash

    async def _create_sign_submit(self, account: Account, spec: TransferSpec) -> str:
        created = await self._create(account, spec)
        (signed,) = await self._sign(account, [created])
        return await self._submit(signed)

    async def _live_balance(self, account: Account) -> Decimal:
        return balance_to_decimal(await self.oracle.get_balance(account.public_key, self.symbol))

    # =========================================================================
    # Operations
    # =========================================================================

    async def execute_batch(self, account: Account, recipient: str, amount: AmountLike) -> BatchResult:
        """Pay the service fee and send ``amount`` to ``recipient`` as one unit.

        Both creates run concurrently and finish before signing; both submits
        run concurrently. Calling this twice submits two independent batches.

        Raises:
            InvalidAmountError: ``amount`` is not a valid positive AMA amount
            BatchExecutionError: Creation, signing or both submissions failed
            PartialBatchError: Exactly one submission reached the chain
        """
        transfer_amount = parse_amount(amount)
        specs = [
            self._spec(TransactionLeg.FEE, self.system_wallet, self.fee),
            self._spec(TransactionLeg.TRANSFER, recipient, transfer_amount),
        ]
        logger.info(
            f"Executing batch for {account.user_id}: fee {self.fee} {self.symbol} + "
            f"transfer {transfer_amount} {self.symbol} to {recipient}"
        )

        created_results = await asyncio.gather(
            *(self._create(account, spec) for spec in specs),
            return_exceptions=True,
        )
        create_errors = [r for r in created_results if isinstance(r, BaseException)]
        if create_errors:
            logger.error(f"Batch create failed for {account.user_id}: {create_errors[0]}")
            raise BatchExecutionError(f"Failed to create transactions: {create_errors[0]}") from create_errors[0]

        try:
            signed = await self._sign(account, created_results)
        except Exception as e:
            logger.error(f"Batch signing failed for {account.user_id}: {type(e).__name__}")
            raise BatchExecutionError(f"Failed to sign transactions: {e}") from e

        submit_results = await asyncio.gather(
            *(self._submit(tx) for tx in signed),
            return_exceptions=True,
        )

        failures = [
            (spec.leg, result)
            for spec, result in zip(specs, submit_results)
            if isinstance(result, BaseException)
        ]
        if len(failures) == len(specs):
            logger.error(f"Batch submit failed for {account.user_id}: {failures[0][1]}")
            raise BatchExecutionError(f"Failed to submit transactions: {failures[0][1]}") from failures[0][1]
        if failures:
            failed_leg, error = failures[0]
            landed_leg = TransactionLeg.TRANSFER if failed_leg == TransactionLeg.FEE else TransactionLeg.FEE
            landed_hash = submit_results[[s.leg for s in specs].index(landed_leg)]
            logger.error(
                f"Partial batch for {account.user_id}: {landed_leg.value} landed ({landed_hash}), "
                f"{failed_leg.value} failed: {error}"
            )
            raise PartialBatchError(
                f"{failed_leg.value.capitalize()} transaction failed after the "
                f"{landed_leg.value} transaction was submitted ({landed_hash}): {error}",
                landed_leg=landed_leg,
                landed_tx_hash=landed_hash,
                failed_leg=failed_leg,
                cause=error,
            ) from error

        fee_hash, transfer_hash = submit_results
        logger.info(f"Batch complete for {account.user_id}: fee {fee_hash}, transfer {transfer_hash}")
        return BatchResult(
            fee_tx_hash=fee_hash,
            transfer_tx_hash=transfer_hash,
            fee=self.fee,
            amount=transfer_amount,
            recipient=recipient,
            sender=account.public_key,
        )

    async def charge(self, account: Account) -> ChargeResult:
        """Transfer the service fee to the system wallet.

        Raises:
            InsufficientBalanceError: Live balance is below the fee; nothing is sent
            PaymentError: Any other failure
        """
        logger.info(f"Charging {self.fee} {self.symbol} from {account.user_id}")

        balance = await self._live_balance(account)
        if balance < self.fee:
            logger.info(f"Pre-flight failed for {account.user_id}: {format_amount(balance)} < {self.fee}")
            raise InsufficientBalanceError(
                f"Insufficient balance: {format_amount(balance)} {self.symbol} (need {self.fee} {self.symbol})",
                balance=balance,
                required=self.fee,
            )

        try:
            tx_hash = await self._create_sign_submit(
                account, self._spec(TransactionLeg.FEE, self.system_wallet, self.fee)
            )
        except Exception as e:
            logger.error(f"Payment failed for {account.user_id}: {e}")
            raise PaymentError(f"Payment error: {e}") from e

        logger.info(f"Payment completed for {account.user_id}: {tx_hash}")
        return ChargeResult(tx_hash=tx_hash, amount=self.fee)

    async def transfer(self, account: Account, recipient: str, amount: AmountLike) -> TransferResult:
        """Send ``amount`` without a fee (legacy path)."""
        transfer_amount = parse_amount(amount)

        balance = await self._live_balance(account)
        if balance < transfer_amount:
            raise InsufficientBalanceError(
                f"Insufficient balance: {format_amount(balance)} {self.symbol} "
                f"(need {transfer_amount} {self.symbol})",
                balance=balance,
                required=transfer_amount,
            )

        tx_hash = await self._create_sign_submit(
            account, self._spec(TransactionLeg.TRANSFER, recipient, transfer_amount)
        )
        logger.info(f"Transfer successful for {account.user_id}: {tx_hash}")
        return TransferResult(
            tx_hash=tx_hash,
            sender=account.public_key,
            recipient=recipient,
            amount=transfer_amount,
        )
