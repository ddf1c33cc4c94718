"""
Account Ledger Engine

Append-only, per-account record of deposits and withdrawals. Every append
validates ordering and funds against the account's full history, derives the
running balance and assigns a date-scoped transaction id. Transactions are
immutable once recorded.
"""

from decimal import Decimal
from datetime import date
from typing import Callable, Dict, List, Union
from contextlib import contextmanager
import threading

from .amounts import ZERO, AmountLike, parse_amount
from .dates import DateLike, YearMonthLike, format_date, month_bounds, parse_date, parse_year_month
from .errors import BusinessRuleViolation, InvalidInputError, LedgerError
from .logging_config import get_logger, log_action
from .models import Transaction, TransactionType
from .repositories import TransactionRepository


class KeyedLocks:
    """
    One lock per key, created on first use

    An entry lives only while some caller holds or waits for it, so the
    table stays bounded by the number of in-flight appends.
    """

    def __init__(self):
        self._locks: Dict[str, List] = {}  # key -> [lock, holders]
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, key: str):
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


def normalize_account(account: str) -> str:
    """Account ids are case-insensitive and stored lowercase"""
    if not isinstance(account, str) or not account.strip():
        raise InvalidInputError("Account is required")
    return account.strip().lower()


class Ledger:
    """
    Validates and records transactions, deriving balances from history

    Appends for the same account are serialized, and so are appends on the
    same date (the txn id sequence is shared by every account on a date).
    The account lock is always taken before the date lock.
    """

    def __init__(
        self,
        repository: TransactionRepository,
        clock: Callable[[], date] = date.today,
        amount_precision: int = 2,
        sequence_width: int = 2
    ):
        self.repository = repository
        self.clock = clock
        self.amount_precision = amount_precision
        self.sequence_width = sequence_width
        self._account_locks = KeyedLocks()
        self._date_locks = KeyedLocks()
        self.logger = get_logger("ledger")

    def append(
        self,
        account: str,
        day: DateLike,
        transaction_type: Union[str, TransactionType],
        amount: AmountLike
    ) -> Transaction:
        """
        Record a deposit or withdrawal

        Args:
            account: Account identifier (case-insensitive)
            day: Transaction date, YYYYMMDD or date
            transaction_type: D/W, Deposit/Withdrawal or TransactionType
            amount: Positive amount with at most two decimal places

        Returns:
            The recorded Transaction carrying its running balance

        Raises:
            InvalidInputError: Malformed or future date, unknown type, bad amount
            BusinessRuleViolation: First transaction is a withdrawal, date not
                after the account's first transaction, or insufficient funds
        """
        try:
            return self._append(account, day, transaction_type, amount)
        except LedgerError as e:
            log_action(
                self.logger, "warning", f"Transaction rejected: {e}",
                action="append_transaction", resource=f"account:{account}",
                extra={"kind": e.kind, "date": str(day), "type": str(transaction_type),
                       "amount": str(amount)}
            )
            raise

    def _append(self, account, day, transaction_type, amount) -> Transaction:
        txn_date = parse_date(day)
        if txn_date > self.clock():
            raise InvalidInputError("Transaction date cannot be in the future")
        txn_type = TransactionType.parse(transaction_type)
        txn_amount = parse_amount(amount, self.amount_precision)
        account_id = normalize_account(account)

        with self._account_locks.hold(account_id), \
                self._date_locks.hold(format_date(txn_date)), \
                self.repository.atomic():
            history = self.repository.for_account(account_id)

            if not history and txn_type is TransactionType.WITHDRAWAL:
                raise BusinessRuleViolation("First transaction cannot be a withdrawal")

            # Compared against the first transaction, not the latest
            if history and txn_date <= history[0].date:
                raise BusinessRuleViolation(
                    "Transaction date must be after the account's first transaction"
                )

            current_balance = self.derive_balance(history)
            if txn_type is TransactionType.WITHDRAWAL and txn_amount > current_balance:
                raise BusinessRuleViolation("Insufficient funds for withdrawal")

            transaction = Transaction(
                date=txn_date,
                account=account_id,
                type=txn_type,
                amount=txn_amount,
                txn_id=self._next_txn_id(txn_date),
                balance=txn_type.apply(current_balance, txn_amount),
            )
            self.repository.insert(transaction)

        log_action(
            self.logger, "info", f"Transaction recorded: {transaction.txn_id}",
            action="append_transaction", resource=f"account:{account_id}",
            extra={
                "txn_id": transaction.txn_id,
                "type": txn_type.label,
                "amount": str(txn_amount),
                "balance": str(transaction.balance)
            }
        )
        return transaction

    def _next_txn_id(self, txn_date: date) -> str:
        sequence = self.repository.count_for_date(txn_date) + 1
        return f"{format_date(txn_date)}-{sequence:0{self.sequence_width}d}"

    @staticmethod
    def derive_balance(history: List[Transaction]) -> Decimal:
        """Signed sum of a transaction history"""
        return sum((txn.signed_amount for txn in history), ZERO)

    def history(self, account: str) -> List[Transaction]:
        """Account transactions ordered by date, then insertion"""
        return self.repository.for_account(normalize_account(account))

    def balance(self, account: str) -> Decimal:
        """Current balance derived from the full history"""
        return self.derive_balance(self.history(account))

    def transactions_for_month(self, account: str, year_month: YearMonthLike) -> List[Transaction]:
        """Account transactions dated within one calendar month"""
        year, month = parse_year_month(year_month)
        start, end = month_bounds(year, month)
        return self.repository.for_account_between(normalize_account(account), start, end)

    def all_transactions(self) -> List[Transaction]:
        return self.repository.all()

    def transactions_by_account(self) -> Dict[str, List[Transaction]]:
        """Every transaction grouped by account, accounts in first-seen order"""
        grouped: Dict[str, List[Transaction]] = {}
        for txn in self.repository.all():
            grouped.setdefault(txn.account, []).append(txn)
        return grouped
