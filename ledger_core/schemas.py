"""
Pydantic schemas for the ledger's textual requests

Each request can be built from keyword fields or parsed from the
whitespace-separated command line used by operators:

    <YYYYMMDD> <Account> <D|W> <Amount>
    <YYYYMMDD> <RuleId> <Rate>
    <Account> <YYYYMM>
"""

from decimal import Decimal
import datetime as dt
from typing import ClassVar, Tuple
from pydantic import BaseModel, Field, ValidationError, ValidationInfo, field_validator

from .amounts import parse_amount, parse_rate
from .dates import parse_date, parse_year_month
from .errors import InvalidInputError
from .models import TransactionType

DEFAULT_PRECISION = 2


def _split(line: str, expected: int, usage: str):
    parts = (line or "").split()
    if len(parts) != expected:
        raise InvalidInputError(f"Invalid input. Format: {usage}")
    return parts


def _validated(model, context=None, **fields):
    try:
        return model.model_validate(fields, context=context)
    except ValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        raise InvalidInputError(messages)


class TransactionRequest(BaseModel):
    date: dt.date
    account: str = Field(..., min_length=1)
    type: TransactionType
    amount: Decimal

    USAGE: ClassVar[str] = "YYYYMMDD ACCOUNT TYPE AMOUNT"

    @field_validator("date", mode="before")
    @classmethod
    def parse_date_field(cls, value):
        return parse_date(value)

    @field_validator("account")
    @classmethod
    def normalize_account_field(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("type", mode="before")
    @classmethod
    def parse_type_field(cls, value):
        return TransactionType.parse(value)

    @field_validator("amount", mode="before")
    @classmethod
    def parse_amount_field(cls, value, info: ValidationInfo):
        # The ledger passes its configured precision as validation context
        precision = (info.context or {}).get("precision", DEFAULT_PRECISION)
        return parse_amount(value, precision)

    @classmethod
    def create(cls, precision: int = DEFAULT_PRECISION, **fields) -> 'TransactionRequest':
        return _validated(cls, context={"precision": precision}, **fields)

    @classmethod
    def from_line(cls, line: str, precision: int = DEFAULT_PRECISION) -> 'TransactionRequest':
        day, account, txn_type, amount = _split(line, 4, cls.USAGE)
        return cls.create(precision, date=day, account=account, type=txn_type, amount=amount)


class InterestRuleRequest(BaseModel):
    date: dt.date
    rule_id: str = Field(..., min_length=1)
    rate: Decimal

    USAGE: ClassVar[str] = "YYYYMMDD RULEID RATE"

    @field_validator("date", mode="before")
    @classmethod
    def parse_date_field(cls, value):
        return parse_date(value)

    @field_validator("rate", mode="before")
    @classmethod
    def parse_rate_field(cls, value):
        # Requests use the strict band; the schedule itself accepts 100
        return parse_rate(value, inclusive_upper=False)

    @classmethod
    def create(cls, **fields) -> 'InterestRuleRequest':
        return _validated(cls, **fields)

    @classmethod
    def from_line(cls, line: str) -> 'InterestRuleRequest':
        day, rule_id, rate = _split(line, 3, cls.USAGE)
        return cls.create(date=day, rule_id=rule_id, rate=rate)


class StatementRequest(BaseModel):
    account: str = Field(..., min_length=1)
    year: int
    month: int

    USAGE: ClassVar[str] = "ACCOUNT YYYYMM"

    @field_validator("account")
    @classmethod
    def normalize_account_field(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def year_month(self) -> Tuple[int, int]:
        return self.year, self.month

    @classmethod
    def create(cls, account: str, year_month) -> 'StatementRequest':
        year, month = parse_year_month(year_month)
        return _validated(cls, account=account, year=year, month=month)

    @classmethod
    def from_line(cls, line: str) -> 'StatementRequest':
        account, year_month = _split(line, 2, cls.USAGE)
        return cls.create(account, year_month)
