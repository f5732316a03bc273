"""Wallet ledger: balances, loans and an append-only transaction log."""

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Iterator
from uuid import uuid4

from core.errors import InsufficientFundsError, InvalidRepaymentError, NegativeAmountError

logger = logging.getLogger(__name__)


class TransactionType(Enum):
    """Kinds of wallet transaction."""

    BET = "bet"
    WIN = "win"
    LOAN = "loan"
    REPAYMENT = "repayment"
    REFUND = "refund"


@dataclass
class Wallet:
    """A participant's balance and outstanding loan."""

    user_id: str
    balance: int = 0
    loan_amount: int = 0
    last_updated: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class Transaction:
    """
    A single ledger entry.

    ``amount`` is positive for credits and negative for debits.
    """

    user_id: str
    amount: int
    transaction_type: TransactionType
    description: str = ""
    balance_after: int = 0
    reference_id: str | None = None
    transaction_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=datetime.now)


class WalletRepository(ABC):
    """Abstract wallet storage."""

    @abstractmethod
    def get_wallet(self, user_id: str) -> Wallet | None:
        """Get a wallet, or None if the user has none."""
        ...

    @abstractmethod
    def save_wallet(self, wallet: Wallet) -> None:
        """Create or update a wallet."""
        ...

    @abstractmethod
    def add_transaction(self, transaction: Transaction) -> None:
        """Append a transaction to the log."""
        ...

    @abstractmethod
    def get_transactions(self, user_id: str, limit: int) -> list[Transaction]:
        """Get the most recent transactions for a user, newest first."""
        ...


class InMemoryWalletRepository(WalletRepository):
    """In-memory wallet storage for local development and tests."""

    def __init__(self) -> None:
        self._wallets: dict[str, Wallet] = {}
        self._transactions: list[Transaction] = []

    def get_wallet(self, user_id: str) -> Wallet | None:
        wallet = self._wallets.get(user_id)
        return replace(wallet) if wallet is not None else None

    def save_wallet(self, wallet: Wallet) -> None:
        self._wallets[wallet.user_id] = replace(wallet)

    def add_transaction(self, transaction: Transaction) -> None:
        self._transactions.append(transaction)

    def get_transactions(self, user_id: str, limit: int) -> list[Transaction]:
        mine = [t for t in self._transactions if t.user_id == user_id]
        return list(reversed(mine))[:limit]


class WalletService:
    """
    Wallet business logic.

    Every operation on one user's wallet runs under that user's re-entrant
    lock, so a caller can hold ``locked(user_id)`` across a read-then-write
    sequence without another thread debiting the same balance in between.
    """

    def __init__(
        self,
        repository: WalletRepository | None = None,
        starting_balance: int = 100,
        loan_increment: int = 100,
    ) -> None:
        self._repo = repository or InMemoryWalletRepository()
        self.starting_balance = starting_balance
        self.loan_increment = loan_increment
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, user_id: str) -> threading.RLock:
        with self._locks_guard:
            return self._locks.setdefault(user_id, threading.RLock())

    @contextmanager
    def locked(self, user_id: str) -> Iterator[None]:
        """Hold the user's wallet lock for the duration of the block."""
        with self._lock_for(user_id):
            yield

    def get_or_create_wallet(self, user_id: str) -> tuple[Wallet, bool]:
        """
        Get a wallet, creating one with the starting balance if needed.

        Returns:
            The wallet and whether it was just created
        """
        with self.locked(user_id):
            wallet = self._repo.get_wallet(user_id)
            if wallet is not None:
                return wallet, False

            wallet = Wallet(user_id=user_id, balance=self.starting_balance)
            self._repo.save_wallet(wallet)
            logger.info("Created wallet for %s with balance %d", user_id, wallet.balance)
            return wallet, True

    def get_balance(self, user_id: str) -> int:
        wallet, _ = self.get_or_create_wallet(user_id)
        return wallet.balance

    def _apply(
        self,
        wallet: Wallet,
        amount: int,
        transaction_type: TransactionType,
        description: str,
        reference_id: str | None,
        loan_delta: int = 0,
    ) -> Wallet:
        wallet.balance += amount
        wallet.loan_amount += loan_delta
        wallet.last_updated = datetime.now()
        self._repo.save_wallet(wallet)
        self._repo.add_transaction(
            Transaction(
                user_id=wallet.user_id,
                amount=amount,
                transaction_type=transaction_type,
                description=description,
                balance_after=wallet.balance,
                reference_id=reference_id,
            )
        )
        return wallet

    def add_funds(
        self,
        user_id: str,
        amount: int,
        description: str = "",
        transaction_type: TransactionType = TransactionType.WIN,
        reference_id: str | None = None,
    ) -> Wallet:
        """Credit a wallet."""
        if amount <= 0:
            raise NegativeAmountError(f"Amount must be positive, got {amount}")
        with self.locked(user_id):
            wallet, _ = self.get_or_create_wallet(user_id)
            return self._apply(wallet, amount, transaction_type, description, reference_id)

    def remove_funds(
        self,
        user_id: str,
        amount: int,
        description: str = "",
        transaction_type: TransactionType = TransactionType.BET,
        reference_id: str | None = None,
    ) -> Wallet:
        """
        Debit a wallet.

        Raises:
            InsufficientFundsError: If the balance is below ``amount``
        """
        if amount <= 0:
            raise NegativeAmountError(f"Amount must be positive, got {amount}")
        with self.locked(user_id):
            wallet, _ = self.get_or_create_wallet(user_id)
            if wallet.balance < amount:
                raise InsufficientFundsError(user_id, amount, wallet.balance)
            return self._apply(wallet, -amount, transaction_type, description, reference_id)

    def add_loan(self, user_id: str, amount: int) -> Wallet:
        """Lend ``amount``: both balance and outstanding loan grow."""
        if amount <= 0:
            raise NegativeAmountError(f"Amount must be positive, got {amount}")
        with self.locked(user_id):
            wallet, _ = self.get_or_create_wallet(user_id)
            wallet = self._apply(
                wallet, amount, TransactionType.LOAN, "Loan", None, loan_delta=amount
            )
            logger.info(
                "Loaned %d to %s (outstanding loan %d)", amount, user_id, wallet.loan_amount
            )
            return wallet

    def repay_loan(self, user_id: str, amount: int) -> Wallet:
        """
        Repay part of an outstanding loan.

        Repayments come in multiples of the loan increment and may not
        exceed the outstanding loan or the current balance.
        """
        if amount <= 0:
            raise NegativeAmountError(f"Amount must be positive, got {amount}")
        with self.locked(user_id):
            wallet, _ = self.get_or_create_wallet(user_id)
            if wallet.loan_amount <= 0:
                raise InvalidRepaymentError("No loan to repay")
            if amount % self.loan_increment != 0:
                raise InvalidRepaymentError(
                    f"Repayment must be a multiple of {self.loan_increment}"
                )
            if amount > wallet.loan_amount:
                raise InvalidRepaymentError(
                    f"Repayment exceeds outstanding loan of {wallet.loan_amount}"
                )
            if wallet.balance < amount:
                raise InsufficientFundsError(user_id, amount, wallet.balance)
            return self._apply(
                wallet, -amount, TransactionType.REPAYMENT, "Loan repayment", None,
                loan_delta=-amount,
            )

    def get_transactions(self, user_id: str, limit: int = 20) -> list[Transaction]:
        """Get the most recent transactions, newest first."""
        return self._repo.get_transactions(user_id, limit)
