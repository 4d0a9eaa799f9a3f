"""
Branch Banking System

A single-branch bank ledger: accounts, deposits, withdrawals and transfers,
with the account set persisted through a swappable storage backend
(delimited text, binary snapshot or SQLite).
"""

__version__ = "1.0.0"
