"""
Account Module

A ledger entry: one account number and its balance. Owns the deposit,
withdrawal and transfer rules, including compensation of a transfer whose
credit leg fails after the debit leg was applied.
"""

from decimal import Decimal
from dataclasses import dataclass, field
from typing import Optional
from enum import Enum

from .currency import as_money, validate_amount, format_money
from .errors import BankingError, InsufficientFunds


class TransferStatus(Enum):
    """Outcome of a two-phase transfer"""
    COMPLETED = "completed"        # Debit and credit both applied
    REJECTED = "rejected"          # Debit refused; nothing changed
    ROLLED_BACK = "rolled_back"    # Credit failed; debit compensated
    UNRECOVERED = "unrecovered"    # Credit failed; source changed meanwhile, no compensation


@dataclass
class TransferResult:
    """Tagged result of ``Account.transfer``"""
    status: TransferStatus
    source_number: int
    destination_number: int
    amount: Decimal
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.status == TransferStatus.COMPLETED


@dataclass
class Account:
    """
    Bank account with a number and a Decimal balance

    The balance is only changed through ``deposit``, ``withdraw`` and
    ``transfer``; backends restore it through the constructor.
    """
    number: int
    balance: Decimal = field(default_factory=lambda: Decimal('0.00'))

    def __post_init__(self):
        self.balance = as_money(self.balance)

    def _credit(self, amount: Decimal) -> None:
        self.balance = as_money(self.balance + amount)

    def _debit(self, amount: Decimal) -> None:
        self.balance = as_money(self.balance - amount)

    def deposit(self, amount) -> None:
        """Add a positive amount to the balance"""
        self._credit(validate_amount(amount))

    def withdraw(self, amount) -> None:
        """
        Remove a positive amount from the balance

        Raises:
            InvalidAmount: If the amount is not a positive number
            InsufficientFunds: If the balance is lower than the amount; the
                balance is left unchanged
        """
        amt = validate_amount(amount)
        if self.balance < amt:
            raise InsufficientFunds(self.number, self.balance)
        self._debit(amt)

    def transfer(self, destination: 'Account', amount) -> TransferResult:
        """
        Move an amount from this account to ``destination``

        Phase 1 withdraws from this account; a refusal ends the transfer
        with REJECTED and no balance touched. Phase 2 deposits into the
        destination; if it fails the debit is compensated, but only while this
        account's balance is still exactly what the debit left behind.

        Returns:
            TransferResult describing which phases were applied

        Raises:
            InvalidAmount: If the amount is not a positive number; checked
                before either phase runs
        """
        amt = validate_amount(amount)
        balance_before = self.balance
        try:
            self.withdraw(amt)
        except BankingError as e:
            return TransferResult(
                status=TransferStatus.REJECTED,
                source_number=self.number,
                destination_number=destination.number,
                amount=amt,
                error=e
            )

        try:
            destination.deposit(amt)
        except Exception as e:
            return self._compensate(destination, balance_before, amt, e)

        return TransferResult(
            status=TransferStatus.COMPLETED,
            source_number=self.number,
            destination_number=destination.number,
            amount=amt
        )

    def _compensate(self, destination: 'Account', balance_before: Decimal,
                    amount: Decimal, error: Exception) -> TransferResult:
        """Undo the debit leg of a transfer whose credit leg failed"""
        if self.balance == as_money(balance_before - amount):
            self._credit(amount)
            status = TransferStatus.ROLLED_BACK
        else:
            status = TransferStatus.UNRECOVERED
        return TransferResult(
            status=status,
            source_number=self.number,
            destination_number=destination.number,
            amount=amount,
            error=error
        )

    def statement(self, symbol: str = "R$") -> str:
        """One-line summary used by branch reports"""
        return f"Account {self.number} - balance: {format_money(self.balance, symbol)}"
