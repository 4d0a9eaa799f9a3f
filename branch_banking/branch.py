"""
Branch Module

The branch aggregate: holds the in-memory directory of accounts keyed by
account number, assigns new numbers, bootstraps from the persistence backend
on construction and saves the whole account set on shutdown. Front ends call
the branch; the branch calls accounts for business rules and the backend for
durability.
"""

from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from .accounts import Account, TransferResult
from .currency import validate_amount
from .errors import InsufficientFunds, StorageInitFailure, StorageIOFailure, UnknownAccount
from .logging_config import get_logger, log_action
from .storage import LoadStatus, PersistenceInterface


class Branch:
    """
    A single bank branch and its accounts

    Nothing is persisted incrementally: ``shutdown`` is the only point where
    the account set reaches storage.
    """

    def __init__(
        self,
        name: str,
        persistence: PersistenceInterface,
        max_transaction_amount: Optional[Decimal] = None,
        currency_symbol: str = "R$"
    ):
        self._name = name
        self.persistence = persistence
        self.max_transaction_amount = max_transaction_amount
        self.currency_symbol = currency_symbol
        self.accounts: Dict[int, Account] = {}
        self.degraded = False
        self.logger = get_logger("branch.branch")

        self._bootstrap()

    @property
    def name(self) -> str:
        return self._name

    def __len__(self) -> int:
        return len(self.accounts)

    def __contains__(self, number: int) -> bool:
        return number in self.accounts

    def _bootstrap(self) -> None:
        """Create storage on first run, otherwise load the persisted accounts"""
        if not self.persistence.is_initialized():
            if not self.persistence.initialize():
                raise StorageInitFailure(
                    f"Could not create storage for branch {self._name} "
                    f"({self.persistence.describe()})"
                )
            log_action(
                self.logger, "info", f"Storage created for branch {self._name}",
                action="initialize", resource=self.persistence.describe()
            )
            return

        result = self.persistence.load_accounts()
        if result.status == LoadStatus.UNREADABLE:
            # Start empty but never let shutdown overwrite the unreadable data
            self.degraded = True
            log_action(
                self.logger, "warning",
                f"Branch {self._name} started without accounts: storage unreadable",
                action="load_accounts", resource=self.persistence.describe(),
                extra={"error": result.error}
            )
            return

        self._populate(result.accounts)
        log_action(
            self.logger, "info", f"Loaded {len(self.accounts)} accounts",
            action="load_accounts", resource=self.persistence.describe()
        )

    def _populate(self, accounts: Iterable[Account]) -> None:
        for account in accounts:
            if account.number in self.accounts:
                raise StorageIOFailure(
                    f"Storage {self.persistence.describe()} holds account "
                    f"{account.number} more than once"
                )
            self.accounts[account.number] = account

    def _next_account_number(self) -> int:
        return max(self.accounts, default=0) + 1

    def _find(self, number: int) -> Account:
        account = self.accounts.get(number)
        if account is None:
            raise UnknownAccount(number)
        return account

    def _check_amount(self, amount) -> Decimal:
        return validate_amount(amount, maximum=self.max_transaction_amount)

    def get_account(self, number: int) -> Account:
        """
        Get an account by number

        Raises:
            UnknownAccount: If the branch holds no such account
        """
        return self._find(number)

    def balance(self, number: int) -> Decimal:
        """Current balance of an account"""
        return self._find(number).balance

    def account_numbers(self) -> List[int]:
        """Account numbers in report order"""
        return list(self.accounts)

    def create_account(self) -> int:
        """
        Open a new zero-balance account

        Returns:
            Number of the created account
        """
        account = Account(self._next_account_number())
        self.accounts[account.number] = account
        log_action(
            self.logger, "info", f"Account {account.number} created",
            action="create_account", resource=f"account:{account.number}"
        )
        return account.number

    def deposit(self, number: int, amount) -> None:
        """
        Deposit an amount into an account

        Raises:
            UnknownAccount: If the account does not exist
            InvalidAmount: If the amount is rejected by the amount policy
        """
        account = self._find(number)
        amt = self._check_amount(amount)
        account.deposit(amt)
        log_action(
            self.logger, "info", f"Deposit into account {number}",
            action="deposit", resource=f"account:{number}",
            extra={"amount": str(amt), "balance": str(account.balance)}
        )

    def withdraw(self, number: int, amount) -> None:
        """
        Withdraw an amount from an account

        Raises:
            UnknownAccount: If the account does not exist
            InvalidAmount: If the amount is rejected by the amount policy
            InsufficientFunds: If the balance does not cover the amount
        """
        account = self._find(number)
        amt = self._check_amount(amount)
        try:
            account.withdraw(amt)
        except InsufficientFunds:
            log_action(
                self.logger, "warning", f"Withdrawal from account {number} refused",
                action="withdraw", resource=f"account:{number}",
                extra={"amount": str(amt), "balance": str(account.balance)}
            )
            raise
        log_action(
            self.logger, "info", f"Withdrawal from account {number}",
            action="withdraw", resource=f"account:{number}",
            extra={"amount": str(amt), "balance": str(account.balance)}
        )

    def transfer(self, source_number: int, destination_number: int, amount) -> TransferResult:
        """
        Transfer an amount between two accounts of this branch

        The source account is looked up first, so when both are missing the
        error names the source.

        Returns:
            The COMPLETED transfer result

        Raises:
            UnknownAccount: If either account does not exist
            InvalidAmount: If the amount is rejected by the amount policy
            InsufficientFunds: If the source balance does not cover the amount
        """
        source = self._find(source_number)
        destination = self._find(destination_number)
        amt = self._check_amount(amount)

        result = source.transfer(destination, amt)
        extra = {
            "amount": str(amt),
            "destination": destination_number,
            "status": result.status.value,
        }
        if not result.succeeded:
            log_action(
                self.logger, "warning", f"Transfer from account {source_number} failed",
                action="transfer", resource=f"account:{source_number}",
                extra={**extra, "error": str(result.error)}
            )
            raise result.error

        log_action(
            self.logger, "info", f"Transfer from account {source_number}",
            action="transfer", resource=f"account:{source_number}", extra=extra
        )
        return result

    def report(self) -> str:
        """Human-readable listing of every account and its balance"""
        lines = [f"==== Branch {self._name} ===="]
        if self.accounts:
            for account in self.accounts.values():
                lines.append(account.statement(self.currency_symbol))
        else:
            lines.append("There are no accounts in this branch.")
        return "\n".join(lines) + "\n"

    def shutdown(self, force: bool = False) -> bool:
        """
        Persist the full account set

        When the storage could not be read at startup, saving would replace
        it with whatever was created since; that is refused unless ``force``
        is set.

        Returns:
            True if the accounts were saved
        """
        if self.degraded and not force:
            log_action(
                self.logger, "error",
                "Refusing to overwrite storage that could not be read at startup",
                action="shutdown", resource=self.persistence.describe()
            )
            return False

        saved = self.persistence.save_all(list(self.accounts.values()))
        log_action(
            self.logger, "info" if saved else "error",
            f"Saved {len(self.accounts)} accounts" if saved else "Saving accounts failed",
            action="shutdown", resource=self.persistence.describe()
        )
        return saved
