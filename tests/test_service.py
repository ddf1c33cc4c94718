"""
Integration tests for the service facade, configuration and logging
"""

import json
import logging
import pytest
import tempfile
from decimal import Decimal
from datetime import date
from pathlib import Path

from ledger_core.config import LedgerConfig, get_config, reload_config
from ledger_core.errors import BusinessRuleViolation
from ledger_core.logging_config import (
    ROOT_LOGGER, JSONFormatter, TextFormatter, get_logger, log_action, setup_logging
)
from ledger_core.schemas import InterestRuleRequest, StatementRequest, TransactionRequest
from ledger_core.service import LedgerService, create_repositories


TODAY = lambda: date(2024, 1, 1)


class TestLedgerService:
    """Test end-to-end flows through the facade"""

    def setup_method(self):
        """Set up test fixtures"""
        self.service = LedgerService.from_config(LedgerConfig(storage_backend="memory"), clock=TODAY)

    def teardown_method(self):
        self.service.close()

    def test_full_flow(self):
        """Test transactions, rules and a statement together"""
        for line in ["20230505 AC001 D 100.00", "20230601 AC001 D 150.00",
                     "20230626 AC001 W 20.00", "20230626 AC001 W 100.00"]:
            self.service.add_transaction(TransactionRequest.from_line(line))

        for line in ["20230101 RULE01 1.95", "20230520 RULE02 1.90", "20230615 RULE03 2.20"]:
            rules = self.service.define_rule(InterestRuleRequest.from_line(line))
        assert [r.rule_id for r in rules] == ["RULE01", "RULE02", "RULE03"]

        statement = self.service.statement(StatementRequest.from_line("AC001 202306"))
        assert statement.interest == Decimal('0.39')
        assert len(self.service.account_transactions("AC001")) == 4

    def test_business_rule_surfaces(self):
        """Test domain errors reach the caller unchanged"""
        with pytest.raises(BusinessRuleViolation) as exc_info:
            self.service.add_transaction(TransactionRequest.from_line("20230505 AC001 W 1.00"))
        assert exc_info.value.kind == "business_rule_violation"

    def test_rules_replaced_by_date(self):
        """Test redefining a date keeps one rule"""
        self.service.define_rule(InterestRuleRequest.from_line("20230615 RULE03 2.20"))
        rules = self.service.define_rule(InterestRuleRequest.from_line("20230615 RULE05 2.40"))

        assert len(rules) == 1
        assert rules[0].rate == Decimal('2.40')
        assert self.service.rules() == rules

    def test_transactions_by_account(self):
        """Test every account's transactions are grouped under its id"""
        for line in ["20230601 AC001 D 100.00", "20230601 AC002 D 50.00",
                     "20230602 AC001 W 20.00"]:
            self.service.add_transaction(self.service.parse_transaction(line))

        grouped = self.service.transactions_by_account()

        assert list(grouped) == ["ac001", "ac002"]
        assert [t.txn_id for t in grouped["ac001"]] == ["20230601-01", "20230602-01"]
        assert [t.balance for t in grouped["ac002"]] == [Decimal('50.00')]

    def test_transactions_by_account_empty(self):
        """Test an empty ledger groups to an empty mapping"""
        assert self.service.transactions_by_account() == {}


class TestAmountPrecision:
    """Test the configured amount precision reaches request parsing"""

    def test_default_precision_rejects_three_places(self):
        """Test two decimal places are enforced by default"""
        service = LedgerService.from_config(LedgerConfig(), clock=TODAY)
        with pytest.raises(ValueError, match="more than 2 decimal places"):
            service.parse_transaction("20230601 AC001 D 1.005")
        service.close()

    def test_configured_precision_accepted_end_to_end(self):
        """Test a three-place ledger accepts three-place amounts from text"""
        service = LedgerService.from_config(LedgerConfig(amount_precision=3), clock=TODAY)

        txn = service.add_transaction(service.parse_transaction("20230601 AC001 D 1.005"))

        assert txn.amount == Decimal('1.005')
        assert service.ledger.balance("AC001") == Decimal('1.005')
        service.close()


class TestServiceBackends:
    """Test backend selection from configuration"""

    def test_sqlite_backend(self):
        """Test the SQLite backend persists between service instances"""
        with tempfile.TemporaryDirectory() as temp_dir:
            config = LedgerConfig(storage_backend="sqlite",
                                  database_path=str(Path(temp_dir) / "ledger.db"))

            service = LedgerService.from_config(config, clock=TODAY)
            service.add_transaction(TransactionRequest.from_line("20230601 AC001 D 100.00"))
            service.define_rule(InterestRuleRequest.from_line("20230101 RULE01 1.95"))
            service.close()

            service = LedgerService.from_config(config, clock=TODAY)
            txn = service.add_transaction(TransactionRequest.from_line("20230602 AC001 D 50.00"))
            assert txn.balance == Decimal('150.00')
            assert len(service.rules()) == 1
            service.close()

    def test_unknown_backend(self):
        """Test unsupported backends fail fast"""
        with pytest.raises(ValueError, match="Unsupported storage backend"):
            create_repositories(LedgerConfig(storage_backend="mongodb"))


class TestConfig:
    """Test environment-based configuration"""

    def test_defaults(self):
        config = LedgerConfig()
        assert config.interest_day_count == 365
        assert config.txn_sequence_width == 2

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "sqlite")
        monkeypatch.setenv("LEDGER_INTEREST_DAY_COUNT", "360")
        try:
            config = reload_config()
            assert config.storage_backend == "sqlite"
            assert config.interest_day_count == 360
            assert get_config() is config
        finally:
            monkeypatch.delenv("LEDGER_STORAGE_BACKEND")
            monkeypatch.delenv("LEDGER_INTEREST_DAY_COUNT")
            reload_config()


class TestLogging:
    """Test structured log output"""

    def teardown_method(self):
        setup_logging(LedgerConfig())

    def test_json_formatter(self):
        """Test event fields and promoted kind in JSON output"""
        logger = get_logger("test")
        record = logger.makeRecord(logger.name, logging.INFO, __name__, 0, "hello", (), None)
        record.action = "append_transaction"
        record.extra = {"txn_id": "20230601-01", "kind": "invalid_input", "amount": "1.00"}

        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "hello"
        assert payload["level"] == "INFO"
        assert payload["component"] == "ledger_core.test"
        assert payload["action"] == "append_transaction"
        assert payload["txn_id"] == "20230601-01"
        assert payload["kind"] == "invalid_input"
        assert payload["extra"] == {"amount": "1.00"}
        assert "resource" not in payload

    def test_text_formatter_tags(self):
        """Test text output appends key=value event tags"""
        logger = get_logger("test")
        record = logger.makeRecord(logger.name, logging.WARNING, __name__, 0, "rejected", (), None)
        record.action = "append_transaction"
        record.resource = "account:ac001"
        record.extra = {"kind": "business_rule_violation"}

        line = TextFormatter().format(record)

        assert "ledger_core.test: rejected" in line
        assert line.endswith(
            "[action=append_transaction resource=account:ac001 kind=business_rule_violation]"
        )

    def test_get_logger_is_scoped_to_package(self):
        """Test component loggers are children of the package logger"""
        assert get_logger("ledger").name == "ledger_core.ledger"
        assert get_logger().name == ROOT_LOGGER

    def test_log_action_respects_configured_level(self):
        """Test the configured level gates component events"""
        root = setup_logging(LedgerConfig(log_level="WARNING", log_format="text"))
        assert root.name == ROOT_LOGGER
        assert isinstance(root.handlers[0].formatter, TextFormatter)

        records = []
        handler = logging.Handler()
        handler.emit = records.append
        root.addHandler(handler)

        logger = get_logger("test_level")
        log_action(logger, "info", "skipped", action="noop")
        log_action(logger, "warning", "kept", action="reject", extra={"kind": "invalid_input"})

        assert [r.getMessage() for r in records] == ["kept"]
        assert records[0].action == "reject"
