"""Loyalty accrual service package.

Tracks loyalty orders, reconciles their accrual against the external
calculation service in a background worker and keeps point balances
consistent with settled orders and withdrawals.
"""

__version__ = "1.0.0"

__all__: list[str] = ["__version__"]
