"""
Repository Module

Abstract repositories for transactions and interest rules, with in-memory
(testing) and SQLite (persistence) implementations. All monetary values are
stored as Decimal strings and dates as YYYYMMDD text so they sort naturally.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union
from datetime import date
from pathlib import Path
from contextlib import contextmanager
import sqlite3
import threading

from .dates import format_date
from .models import InterestRule, Transaction


class _Atomic:
    """Mixin providing the begin/commit/rollback protocol"""

    def begin_transaction(self) -> None:
        """Start a transaction (default no-op)"""
        pass

    def commit(self) -> None:
        """Commit current transaction (default no-op)"""
        pass

    def rollback(self) -> None:
        """Rollback current transaction (default no-op)"""
        pass

    @contextmanager
    def atomic(self):
        """Context manager for atomic operations"""
        self.begin_transaction()
        try:
            yield
            self.commit()
        except Exception:
            self.rollback()
            raise


class TransactionRepository(_Atomic, ABC):
    """Read and append access to recorded transactions"""

    @abstractmethod
    def for_account(self, account: str) -> List[Transaction]:
        """All transactions of an account ordered by date, then insertion"""
        pass

    @abstractmethod
    def for_date(self, day: date) -> List[Transaction]:
        """All transactions on a day, across accounts, in insertion order"""
        pass

    @abstractmethod
    def for_account_between(self, account: str, start: date, end: date) -> List[Transaction]:
        """Transactions of an account with start <= date <= end"""
        pass

    @abstractmethod
    def insert(self, transaction: Transaction) -> None:
        """Append a transaction; txn_id must be unique"""
        pass

    @abstractmethod
    def all(self) -> List[Transaction]:
        """Every transaction ordered by date, then insertion"""
        pass

    def count_for_date(self, day: date) -> int:
        return len(self.for_date(day))

    def close(self) -> None:
        pass


class RuleRepository(_Atomic, ABC):
    """Storage for effective-dated interest rules, one per date"""

    @abstractmethod
    def all(self) -> List[InterestRule]:
        """All rules ordered by ascending date"""
        pass

    @abstractmethod
    def get(self, day: date) -> Optional[InterestRule]:
        """Rule effective from exactly `day`"""
        pass

    @abstractmethod
    def upsert(self, rule: InterestRule) -> bool:
        """Insert or replace the rule for rule.date; True if replaced"""
        pass

    def close(self) -> None:
        pass


def _sort_key(record: Dict[str, Any]):
    return record['date'], record['seq']


class InMemoryTransactionRepository(TransactionRepository):
    """In-memory transaction repository for testing"""

    def __init__(self):
        self._records: List[Dict[str, Any]] = []
        self._txn_ids = set()
        self._next_seq = 0
        self._lock = threading.RLock()
        self._snapshot = None
        self._depth = 0

    def _select(self, predicate) -> List[Transaction]:
        with self._lock:
            matches = sorted((r for r in self._records if predicate(r)), key=_sort_key)
            return [Transaction.from_dict(r) for r in matches]

    def for_account(self, account: str) -> List[Transaction]:
        return self._select(lambda r: r['account'] == account)

    def for_date(self, day: date) -> List[Transaction]:
        key = format_date(day)
        return self._select(lambda r: r['date'] == key)

    def for_account_between(self, account: str, start: date, end: date) -> List[Transaction]:
        low, high = format_date(start), format_date(end)
        return self._select(lambda r: r['account'] == account and low <= r['date'] <= high)

    def insert(self, transaction: Transaction) -> None:
        with self._lock:
            if transaction.txn_id in self._txn_ids:
                raise ValueError(f"Transaction {transaction.txn_id} already exists")
            record = transaction.to_dict()
            record['seq'] = self._next_seq
            self._next_seq += 1
            self._records.append(record)
            self._txn_ids.add(transaction.txn_id)

    def all(self) -> List[Transaction]:
        return self._select(lambda r: True)

    def begin_transaction(self) -> None:
        self._lock.acquire()
        if self._depth == 0:
            self._snapshot = (list(self._records), set(self._txn_ids), self._next_seq)
        self._depth += 1

    def commit(self) -> None:
        self._depth -= 1
        if self._depth == 0:
            self._snapshot = None
        self._lock.release()

    def rollback(self) -> None:
        self._depth -= 1
        if self._depth == 0 and self._snapshot is not None:
            self._records, self._txn_ids, self._next_seq = self._snapshot
            self._snapshot = None
        self._lock.release()


class InMemoryRuleRepository(RuleRepository):
    """In-memory rule repository for testing"""

    def __init__(self):
        self._rules: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()

    def all(self) -> List[InterestRule]:
        with self._lock:
            return [InterestRule.from_dict(self._rules[key]) for key in sorted(self._rules)]

    def get(self, day: date) -> Optional[InterestRule]:
        with self._lock:
            data = self._rules.get(format_date(day))
            return InterestRule.from_dict(data) if data else None

    def upsert(self, rule: InterestRule) -> bool:
        with self._lock:
            key = format_date(rule.date)
            replaced = key in self._rules
            self._rules[key] = rule.to_dict()
            return replaced

    def begin_transaction(self) -> None:
        self._lock.acquire()

    def commit(self) -> None:
        self._lock.release()

    def rollback(self) -> None:
        self._lock.release()


class SQLiteDatabase:
    """Shared SQLite connection used by the SQLite repositories"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        # DEFERRED isolation gives manual control over commit/rollback
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self.lock = threading.RLock()
        self._depth = 0

        with self.lock:
            if self.db_path != ":memory:":
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
            self._create_schema()
            self._connection.commit()

    def _create_schema(self) -> None:
        self._connection.execute("""
            CREATE TABLE IF NOT EXISTS transactions (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                txn_id TEXT NOT NULL UNIQUE,
                date TEXT NOT NULL,
                account TEXT NOT NULL,
                type TEXT NOT NULL,
                amount TEXT NOT NULL,
                balance TEXT NOT NULL
            )
        """)
        self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_transactions_account_date
            ON transactions(account, date)
        """)
        self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_transactions_date
            ON transactions(date)
        """)
        self._connection.execute("""
            CREATE TABLE IF NOT EXISTS interest_rules (
                date TEXT PRIMARY KEY,
                rule_id TEXT NOT NULL,
                rate TEXT NOT NULL
            )
        """)

    def execute(self, sql: str, params=()) -> sqlite3.Cursor:
        with self.lock:
            cursor = self._connection.execute(sql, params)
            # Only commit if not in transaction
            if self._depth == 0:
                self._connection.commit()
            return cursor

    def begin_transaction(self) -> None:
        self.lock.acquire()
        self._depth += 1

    def commit(self) -> None:
        try:
            self._depth -= 1
            if self._depth == 0:
                self._connection.commit()
        finally:
            self.lock.release()

    def rollback(self) -> None:
        try:
            self._depth -= 1
            if self._depth == 0:
                self._connection.rollback()
        finally:
            self.lock.release()

    def close(self) -> None:
        with self.lock:
            if self._connection:
                self._connection.close()
                self._connection = None


class _SQLiteRepository:
    """Delegates the transaction protocol to the shared database"""

    def __init__(self, database: SQLiteDatabase):
        self.database = database

    def begin_transaction(self) -> None:
        self.database.begin_transaction()

    def commit(self) -> None:
        self.database.commit()

    def rollback(self) -> None:
        self.database.rollback()

    def close(self) -> None:
        self.database.close()


class SQLiteTransactionRepository(_SQLiteRepository, TransactionRepository):
    """SQLite transaction repository"""

    _COLUMNS = "date, account, type, amount, txn_id, balance"

    def _query(self, where: str, params=()) -> List[Transaction]:
        cursor = self.database.execute(
            f"SELECT {self._COLUMNS} FROM transactions {where} ORDER BY date, seq",
            params
        )
        return [Transaction.from_dict(dict(row)) for row in cursor.fetchall()]

    def for_account(self, account: str) -> List[Transaction]:
        return self._query("WHERE account = ?", (account,))

    def for_date(self, day: date) -> List[Transaction]:
        return self._query("WHERE date = ?", (format_date(day),))

    def for_account_between(self, account: str, start: date, end: date) -> List[Transaction]:
        return self._query(
            "WHERE account = ? AND date BETWEEN ? AND ?",
            (account, format_date(start), format_date(end))
        )

    def count_for_date(self, day: date) -> int:
        cursor = self.database.execute(
            "SELECT COUNT(*) AS count FROM transactions WHERE date = ?",
            (format_date(day),)
        )
        return cursor.fetchone()['count']

    def insert(self, transaction: Transaction) -> None:
        data = transaction.to_dict()
        try:
            self.database.execute(
                f"INSERT INTO transactions ({self._COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (data['date'], data['account'], data['type'], data['amount'],
                 data['txn_id'], data['balance'])
            )
        except sqlite3.IntegrityError:
            raise ValueError(f"Transaction {transaction.txn_id} already exists")

    def all(self) -> List[Transaction]:
        return self._query("")


class SQLiteRuleRepository(_SQLiteRepository, RuleRepository):
    """SQLite rule repository"""

    def all(self) -> List[InterestRule]:
        cursor = self.database.execute(
            "SELECT date, rule_id, rate FROM interest_rules ORDER BY date"
        )
        return [InterestRule.from_dict(dict(row)) for row in cursor.fetchall()]

    def get(self, day: date) -> Optional[InterestRule]:
        cursor = self.database.execute(
            "SELECT date, rule_id, rate FROM interest_rules WHERE date = ?",
            (format_date(day),)
        )
        row = cursor.fetchone()
        return InterestRule.from_dict(dict(row)) if row else None

    def upsert(self, rule: InterestRule) -> bool:
        with self.atomic():
            replaced = self.get(rule.date) is not None
            data = rule.to_dict()
            self.database.execute("""
                INSERT INTO interest_rules (date, rule_id, rate) VALUES (?, ?, ?)
                ON CONFLICT(date) DO UPDATE SET
                    rule_id = excluded.rule_id,
                    rate = excluded.rate
            """, (data['date'], data['rule_id'], data['rate']))
        return replaced
