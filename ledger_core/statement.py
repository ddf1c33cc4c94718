"""
Monthly account statement: the month's transactions followed by the
accrued interest line.
"""

from .dates import YearMonthLike, parse_year_month
from .errors import NotFoundError
from .interest import InterestAccrualEngine
from .ledger import Ledger, normalize_account
from .logging_config import get_logger, log_action
from .models import Statement
from .rates import RateSchedule


class StatementBuilder:
    """Assembles a Statement from the ledger and the rate schedule"""

    def __init__(self, ledger: Ledger, schedule: RateSchedule,
                 engine: InterestAccrualEngine = None):
        self.ledger = ledger
        self.schedule = schedule
        self.engine = engine or InterestAccrualEngine()
        self.logger = get_logger("statement")

    def build(self, account: str, year_month: YearMonthLike) -> Statement:
        """
        Raises:
            NotFoundError: If the account has no transactions in the month
        """
        account_id = normalize_account(account)
        year, month = parse_year_month(year_month)

        transactions = self.ledger.transactions_for_month(account_id, (year, month))
        if not transactions:
            raise NotFoundError(
                f"No transactions found for account {account_id} in {year:04d}{month:02d}"
            )

        # One repository read for the whole month
        rates = self.schedule.snapshot()
        interest = self.engine.compute_monthly_interest(transactions, rates, (year, month))
        entry = self.engine.interest_entry(account_id, transactions, interest, (year, month))

        log_action(
            self.logger, "info", f"Statement built for {account_id}",
            action="build_statement", resource=f"account:{account_id}",
            extra={"year_month": f"{year:04d}{month:02d}", "interest": str(interest),
                   "transactions": len(transactions)}
        )
        return Statement(
            account=account_id,
            year=year,
            month=month,
            lines=list(transactions) + [entry],
            interest=interest,
        )
