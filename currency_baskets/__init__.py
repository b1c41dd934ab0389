"""
Currency Baskets

Versioned tracking of per-user currency holdings with append-only account
and exchange rate revisions, plus aggregated views in a base currency.
"""

__version__ = "1.0.0"
