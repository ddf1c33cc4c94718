"""
Ledger Data Model

Immutable transaction records, effective-dated interest rules and the
synthetic interest entry shown on statements. The interest entry is a
separate type: it never participates in ledger balance validation.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Any, Dict, List, Union
from enum import Enum

from .dates import format_date, parse_date
from .errors import InvalidInputError


class TransactionType(Enum):
    """Types of ledger transactions"""
    DEPOSIT = "D"
    WITHDRAWAL = "W"

    @property
    def label(self) -> str:
        return self.name.title()

    @classmethod
    def parse(cls, value: Union[str, 'TransactionType']) -> 'TransactionType':
        """Accept the enum, a D/W code or the full name, case-insensitively"""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip().upper()
            for member in cls:
                if text in (member.value, member.name):
                    return member
        raise InvalidInputError(f"Invalid transaction type {value!r}. Use D or W")

    def apply(self, balance: Decimal, amount: Decimal) -> Decimal:
        """Balance after applying an amount of this type"""
        if self is TransactionType.DEPOSIT:
            return balance + amount
        return balance - amount


INTEREST_TYPE = "I"


@dataclass(frozen=True)
class Transaction:
    """
    Recorded deposit or withdrawal
    `balance` is the account balance immediately after this transaction
    """
    date: date
    account: str
    type: TransactionType
    amount: Decimal
    txn_id: str
    balance: Decimal

    @property
    def signed_amount(self) -> Decimal:
        if self.type is TransactionType.DEPOSIT:
            return self.amount
        return -self.amount

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            'date': format_date(self.date),
            'account': self.account,
            'type': self.type.value,
            'amount': str(self.amount),
            'txn_id': self.txn_id,
            'balance': str(self.balance),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        """Create instance from dictionary"""
        return cls(
            date=parse_date(data['date']),
            account=data['account'],
            type=TransactionType(data['type']),
            amount=Decimal(data['amount']),
            txn_id=data['txn_id'],
            balance=Decimal(data['balance']),
        )


@dataclass(frozen=True)
class InterestEntry:
    """Interest line synthesized for display at the end of a month"""
    date: date
    account: str
    amount: Decimal
    balance: Decimal
    txn_id: str = ""
    type: str = INTEREST_TYPE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': format_date(self.date),
            'account': self.account,
            'type': self.type,
            'amount': str(self.amount),
            'txn_id': self.txn_id,
            'balance': str(self.balance),
        }


StatementLine = Union[Transaction, InterestEntry]


@dataclass
class InterestRule:
    """Annual rate effective from `date` until the next rule"""
    date: date
    rule_id: str
    rate: Decimal

    @property
    def display_id(self) -> str:
        return self.rule_id.upper()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': format_date(self.date),
            'rule_id': self.rule_id,
            'rate': str(self.rate),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InterestRule':
        return cls(
            date=parse_date(data['date']),
            rule_id=data['rule_id'],
            rate=Decimal(data['rate']),
        )


@dataclass
class AccrualPeriod:
    """Run of consecutive days sharing one end-of-day balance and rate"""
    start_date: date
    end_date: date
    num_days: int
    balance: Decimal
    rate: Decimal
    rule_id: str = ""

    @property
    def weighted_interest(self) -> Decimal:
        """balance x rate% x days, before annualizing"""
        return self.balance * (self.rate / Decimal('100')) * self.num_days


@dataclass
class Statement:
    """One account's transactions for a month plus the accrued interest line"""
    account: str
    year: int
    month: int
    lines: List[StatementLine] = field(default_factory=list)
    interest: Decimal = Decimal('0.00')

    @property
    def closing_balance(self) -> Decimal:
        if not self.lines:
            return Decimal('0.00')
        return self.lines[-1].balance
