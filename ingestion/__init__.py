"""
Data Ingestion Module

Turns caller-supplied (date, value) rows into canonical instrument series:
- Row validation (malformed rows dropped, not fatal)
- Date deduplication and ordering
- Return rows compounded to a price index
"""

__version__ = "0.1.0"
