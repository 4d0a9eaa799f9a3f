"""
Banking Error Module

Domain-specific exceptions raised by accounts, the branch and the storage
layer. Front ends catch ``BankingError`` to present plain messages instead of
catching generic exceptions.
"""

from decimal import Decimal


class BankingError(Exception):
    """Base class for all branch banking errors"""
    pass


class UnknownAccount(BankingError):
    """Raised when an operation references an account number the branch does not hold"""

    def __init__(self, account_number: int):
        super().__init__(f"Account {account_number} does not exist")
        self.account_number = account_number


class InsufficientFunds(BankingError):
    """
    Raised when a withdrawal or transfer exceeds the account balance.

    Carries the account number and the balance observed when the operation
    was attempted, so callers can tell the user how much was available.
    """

    def __init__(self, account_number: int, balance: Decimal):
        super().__init__(f"Insufficient funds in account {account_number}")
        self.account_number = account_number
        self.balance = balance


class InvalidAmount(BankingError):
    """
    Raised when a transaction amount is invalid:
    - Not a number, NaN or infinite.
    - Zero or negative.
    - Above the configured maximum transaction amount.
    """
    pass


class StorageInitFailure(BankingError):
    """Raised when durable storage cannot be prepared on first run"""
    pass


class StorageIOFailure(BankingError):
    """Raised when persisted data cannot be trusted (e.g. duplicate account numbers)"""
    pass
