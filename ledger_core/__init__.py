"""
Interest-Bearing Account Ledger

Per-account deposit/withdrawal ledger with derived running balances and a
monthly interest accrual engine driven by an effective-dated rate schedule.
All monetary values use Decimal, never float.
"""

__version__ = "1.0.0"
