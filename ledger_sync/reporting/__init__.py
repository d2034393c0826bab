"""
Reporting on top of the reconciled ledger
"""

from .portfolio import PortfolioStatus, analyze_portfolio, to_frame, monthly_pnl

__all__ = [
    'PortfolioStatus',
    'analyze_portfolio',
    'to_frame',
    'monthly_pnl'
]
