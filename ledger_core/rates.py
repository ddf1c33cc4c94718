"""
Rate Schedule Module

Effective-dated annual interest rates. A rule applies from its date until
the next rule's date. At most one rule exists per date; defining a rule for
a date that already has one replaces it.
"""

from decimal import Decimal
from datetime import date
from typing import List, Optional
import threading

from .amounts import AmountLike, parse_rate
from .dates import DateLike, format_date, parse_date
from .errors import InvalidInputError
from .logging_config import get_logger, log_action
from .models import InterestRule
from .repositories import RuleRepository


class RateSchedule:
    """Effective-dated interest rate table backed by a rule repository"""

    def __init__(self, repository: RuleRepository, max_rate: Decimal = Decimal('100')):
        self.repository = repository
        self.max_rate = max_rate
        self._lock = threading.Lock()
        self.logger = get_logger("rates")

    def upsert(self, day: DateLike, rule_id: str, rate: AmountLike) -> InterestRule:
        """
        Define the rule effective from `day`, replacing any rule on that date

        Args:
            day: Effective-from date (YYYYMMDD or date)
            rule_id: Rule identifier
            rate: Annual percentage, 0 < rate <= max_rate

        Returns:
            The stored rule

        Raises:
            InvalidInputError: If a field is empty or the rate is out of range
        """
        if day is None or day == "":
            raise InvalidInputError("Rule date is required")
        if not rule_id or not str(rule_id).strip():
            raise InvalidInputError("Rule id is required")

        rule = InterestRule(
            date=parse_date(day),
            rule_id=str(rule_id).strip(),
            rate=parse_rate(rate, upper=self.max_rate),
        )

        with self._lock, self.repository.atomic():
            replaced = self.repository.upsert(rule)

        log_action(
            self.logger, "info",
            f"Interest rule {'replaced' if replaced else 'defined'}: {rule.display_id}",
            action="upsert_interest_rule", resource=f"interest_rule:{format_date(rule.date)}",
            extra={"rule_id": rule.rule_id, "rate": str(rule.rate), "replaced": replaced}
        )
        return rule

    def effective_rule(self, day: DateLike) -> Optional[InterestRule]:
        """Latest rule whose date is on or before `day`, or None"""
        target = parse_date(day)
        for rule in reversed(self.repository.all()):
            if rule.date <= target:
                return rule
        return None

    def effective_rate(self, day: DateLike) -> Optional[Decimal]:
        """Rate applicable on `day`, or None when no rule has started yet"""
        rule = self.effective_rule(day)
        return rule.rate if rule else None

    def all(self) -> List[InterestRule]:
        """Rules in ascending date order"""
        return self.repository.all()

    def snapshot(self) -> 'RateSnapshot':
        """Frozen copy of the current rules for repeated lookups"""
        return RateSnapshot(self.all())


class RateSnapshot:
    """
    Read-only view over a fixed list of rules

    Has the same lookup interface as RateSchedule so the accrual engine can
    scan a whole month without hitting the repository for every day.
    """

    def __init__(self, rules: List[InterestRule]):
        self._rules = sorted(rules, key=lambda rule: rule.date, reverse=True)

    def effective_rule(self, day: date) -> Optional[InterestRule]:
        target = parse_date(day)
        for rule in self._rules:
            if rule.date <= target:
                return rule
        return None

    def effective_rate(self, day: date) -> Optional[Decimal]:
        rule = self.effective_rule(day)
        return rule.rate if rule else None

    def all(self) -> List[InterestRule]:
        return list(reversed(self._rules))
