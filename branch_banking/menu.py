"""
Interactive Branch Menu

Text front end over a Branch: create accounts, list them, deposit, withdraw
and transfer. Quitting saves the accounts through the branch.
"""

from typing import Callable, Optional

from .branch import Branch
from .currency import format_money, parse_amount
from .errors import BankingError, InsufficientFunds

OPTION_CREATE = 1
OPTION_REPORT = 2
OPTION_DEPOSIT = 3
OPTION_WITHDRAW = 4
OPTION_TRANSFER = 5
OPTION_QUIT = 6

MENU_TEXT = (
    "1 - Create account\n"
    "2 - Report\n"
    "3 - Deposit\n"
    "4 - Withdraw\n"
    "5 - Transfer\n"
    "6 - Quit\n"
)


class BranchMenu:
    """Menu loop reading choices from ``input_func`` and writing with ``output_func``"""

    def __init__(
        self,
        branch: Branch,
        input_func: Optional[Callable[[str], str]] = None,
        output_func: Optional[Callable[..., None]] = None
    ):
        self.branch = branch
        self._input = input_func or input
        self._output = output_func or print

    def run(self) -> bool:
        """
        Show the menu until the user quits, then save

        Returns:
            Whether the accounts were saved on exit
        """
        option = None
        while option != OPTION_QUIT:
            option = self._show_menu()
            self._handle(option)
            if option != OPTION_QUIT:
                self._wait_enter()

        saved = self.branch.shutdown()
        if not saved:
            self._output("Warning: the accounts could not be saved!")
        return saved

    def _show_menu(self) -> int:
        self._output(f"Welcome to branch {self.branch.name}!\n")
        self._output(MENU_TEXT)
        try:
            return int(self._input("Enter your option: "))
        except ValueError:
            return 0
        except EOFError:
            return OPTION_QUIT

    def _handle(self, option: int) -> None:
        self._output()
        handlers = {
            OPTION_CREATE: self._create_account,
            OPTION_REPORT: self._show_report,
            OPTION_DEPOSIT: self._deposit,
            OPTION_WITHDRAW: self._withdraw,
            OPTION_TRANSFER: self._transfer,
        }
        if option == OPTION_QUIT:
            self._output(f"\nThank you for using the services of branch {self.branch.name}!\n")
        elif option in handlers:
            try:
                handlers[option]()
            except EOFError:
                self._output("\nOperation cancelled.\n")
        else:
            self._output("\nInvalid option!\n")

    def _wait_enter(self) -> None:
        try:
            self._input("\n... press ENTER to continue...")
        except EOFError:
            pass
        self._output("\n")

    def _ask_account(self, complement: str) -> int:
        return int(self._input(f"Enter the account number {complement}: "))

    def _ask_amount(self):
        return parse_amount(self._input("Enter the amount: "))

    def _report_failure(self, action: str, error: Exception) -> None:
        if isinstance(error, InsufficientFunds):
            self._output(str(error))
            self._output(
                "The account only had "
                f"{format_money(error.balance, self.branch.currency_symbol)} available!"
            )
        else:
            self._output(f"Could not {action}!")
            self._output(str(error))

    def _create_account(self) -> None:
        number = self.branch.create_account()
        self._output(f"Account {number} created!")

    def _show_report(self) -> None:
        self._output(self.branch.report())

    def _deposit(self) -> None:
        try:
            self.branch.deposit(self._ask_account("for deposit"), self._ask_amount())
            self._output("Deposit completed successfully!")
        except ValueError:
            self._output("Could not deposit!\nAccount numbers must be whole numbers.")
        except BankingError as e:
            self._report_failure("deposit", e)

    def _withdraw(self) -> None:
        try:
            self.branch.withdraw(self._ask_account("for withdrawal"), self._ask_amount())
            self._output("Withdrawal completed successfully!")
        except ValueError:
            self._output("Could not withdraw!\nAccount numbers must be whole numbers.")
        except BankingError as e:
            self._report_failure("withdraw", e)

    def _transfer(self) -> None:
        try:
            self.branch.transfer(
                self._ask_account("of origin"),
                self._ask_account("of destination"),
                self._ask_amount()
            )
            self._output("Transfer completed successfully!")
        except ValueError:
            self._output("Could not transfer!\nAccount numbers must be whole numbers.")
        except BankingError as e:
            self._report_failure("transfer", e)
