"""
Domain errors raised by the ledger core.

All errors derive from ValueError so callers that only know about
ValueError keep working. The `kind` attribute lets a collaborator map an
error to a response without inspecting the class hierarchy.
"""


class LedgerError(ValueError):
    """Base class for ledger core errors"""
    kind = "ledger_error"


class InvalidInputError(LedgerError):
    """Malformed date, type, amount or rate, or a missing field"""
    kind = "invalid_input"


class BusinessRuleViolation(LedgerError):
    """Input is well formed but breaks a ledger rule"""
    kind = "business_rule_violation"


class NotFoundError(LedgerError):
    """No data for the requested account or month"""
    kind = "not_found"
