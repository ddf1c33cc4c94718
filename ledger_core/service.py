"""
Service facade wiring repositories, ledger, rate schedule and statements
from configuration. Collaborators (an API layer, a console) talk to this.
"""

from datetime import date
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from .config import LedgerConfig, get_config
from .interest import InterestAccrualEngine
from .ledger import Ledger
from .logging_config import setup_logging
from .models import InterestRule, Statement, Transaction
from .rates import RateSchedule
from .repositories import (
    InMemoryRuleRepository, InMemoryTransactionRepository, RuleRepository,
    SQLiteDatabase, SQLiteRuleRepository, SQLiteTransactionRepository,
    TransactionRepository
)
from .schemas import InterestRuleRequest, StatementRequest, TransactionRequest
from .statement import StatementBuilder


def create_repositories(config: LedgerConfig):
    """Build the transaction and rule repositories for the configured backend"""
    backend = config.storage_backend.lower()
    if backend == "memory":
        return InMemoryTransactionRepository(), InMemoryRuleRepository()
    if backend == "sqlite":
        database = SQLiteDatabase(config.database_path)
        return SQLiteTransactionRepository(database), SQLiteRuleRepository(database)
    raise ValueError(f"Unsupported storage backend: {config.storage_backend}")


class LedgerService:
    """Entry point for recording transactions, defining rules and statements"""

    def __init__(
        self,
        transactions: TransactionRepository,
        rules: RuleRepository,
        config: Optional[LedgerConfig] = None,
        clock: Callable[[], date] = date.today
    ):
        self.config = config or get_config()
        self.ledger = Ledger(
            transactions,
            clock=clock,
            amount_precision=self.config.amount_precision,
            sequence_width=self.config.txn_sequence_width
        )
        self.schedule = RateSchedule(rules, max_rate=Decimal(self.config.max_rule_rate))
        self.engine = InterestAccrualEngine(
            day_count=self.config.interest_day_count,
            precision=self.config.amount_precision
        )
        self.statements = StatementBuilder(self.ledger, self.schedule, self.engine)

    @classmethod
    def from_config(cls, config: Optional[LedgerConfig] = None,
                    clock: Callable[[], date] = date.today) -> 'LedgerService':
        config = config or get_config()
        setup_logging(config)
        transactions, rules = create_repositories(config)
        return cls(transactions, rules, config=config, clock=clock)

    def parse_transaction(self, line: str) -> TransactionRequest:
        """Parse an operator line using the configured amount precision"""
        return TransactionRequest.from_line(line, precision=self.config.amount_precision)

    def add_transaction(self, request: TransactionRequest) -> Transaction:
        return self.ledger.append(request.account, request.date, request.type, request.amount)

    def account_transactions(self, account: str) -> List[Transaction]:
        return self.ledger.history(account)

    def transactions_by_account(self) -> Dict[str, List[Transaction]]:
        return self.ledger.transactions_by_account()

    def define_rule(self, request: InterestRuleRequest) -> List[InterestRule]:
        """Store the rule and return every rule, oldest first"""
        self.schedule.upsert(request.date, request.rule_id, request.rate)
        return self.schedule.all()

    def rules(self) -> List[InterestRule]:
        return self.schedule.all()

    def statement(self, request: StatementRequest) -> Statement:
        return self.statements.build(request.account, request.year_month)

    def close(self) -> None:
        self.ledger.repository.close()
        self.schedule.repository.close()
