"""
Analysis Engine Module

Aligns instrument price series and calculates:
- Simple/log returns and equity curves
- Weighted combo series
- CAGR, volatility, Sharpe, Sortino, Ulcer Index, Calmar, profit factor
- Maximum drawdown
- Pairwise return correlation
"""

__version__ = "0.1.0"
