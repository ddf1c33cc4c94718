"""
Ledger Logging

Every component logs under the ``ledger_core`` logger tree. Ledger events
carry an action (``append_transaction``, ``upsert_interest_rule``, ``build_statement``),
the resource they touched (``account:ac001``, ``interest_rule:20230615``) and,
for rejections, the error kind. Output format and level come from
LedgerConfig.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import LedgerConfig, get_config


ROOT_LOGGER = "ledger_core"

# Fields lifted out of `extra` so they can be filtered on directly
TOP_LEVEL_FIELDS = ("kind", "txn_id")


def _event_fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields = {
        "action": getattr(record, 'action', None),
        "resource": getattr(record, 'resource', None),
    }
    extra = dict(getattr(record, 'extra', None) or {})
    for name in TOP_LEVEL_FIELDS:
        if name in extra:
            fields[name] = extra.pop(name)
    fields["extra"] = extra or None
    return {k: v for k, v in fields.items() if v is not None}


class JSONFormatter(logging.Formatter):
    """One JSON object per ledger event"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }
        log_entry.update(_event_fields(record))

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class TextFormatter(logging.Formatter):
    """Plain line followed by key=value event tags"""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record):
        line = super().format(record)
        fields = _event_fields(record)
        extra = fields.pop("extra", {})
        tags = [f"{k}={v}" for k, v in fields.items()]
        tags += [f"{k}={v}" for k, v in extra.items()]
        return f"{line} [{' '.join(tags)}]" if tags else line


def setup_logging(config: Optional[LedgerConfig] = None) -> logging.Logger:
    """
    Attach a single handler to the ledger_core logger.

    Args:
        config: Source of log_level and log_format ("json" or "text");
            the global configuration when omitted

    Returns:
        The ledger_core root logger
    """
    config = config or get_config()
    logger = logging.getLogger(ROOT_LOGGER)

    # Reconfiguring replaces the previous handler
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    if config.log_format.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, config.log_level.upper()))
    logger.propagate = False

    return logger


def get_logger(component: Optional[str] = None) -> logging.Logger:
    """Logger for a ledger component, e.g. get_logger("ledger")"""
    if not component:
        return logging.getLogger(ROOT_LOGGER)
    return logging.getLogger(f"{ROOT_LOGGER}.{component}")


def log_action(logger: logging.Logger, level: str, message: str,
               action: Optional[str] = None, resource: Optional[str] = None,
               extra: Optional[dict] = None):
    """
    Emit a ledger event.

    Args:
        logger: Component logger from get_logger
        level: Log level name (info, warning, ...)
        message: Human-readable summary
        action: Ledger operation, e.g. "append_transaction"
        resource: What it touched, e.g. "account:ac001"
        extra: Event details; "kind" and "txn_id" are promoted to top level
    """
    levelno = getattr(logging, level.upper())
    if not logger.isEnabledFor(levelno):
        return

    record = logger.makeRecord(
        logger.name, levelno, __name__, 0, message, (), None
    )

    if action:
        record.action = action
    if resource:
        record.resource = resource
    if extra:
        record.extra = extra

    logger.handle(record)
