"""
Pure calculation functions: alignment, periodicity, returns, combo,
drawdown, statistics and correlation.
"""
