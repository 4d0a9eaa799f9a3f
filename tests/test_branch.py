"""
Test suite for branch module

Tests account numbering, bootstrap from storage, operation dispatch,
reporting and the single save on shutdown.
"""

import pytest
import tempfile
from decimal import Decimal
from pathlib import Path

from branch_banking.accounts import Account, TransferStatus
from branch_banking.branch import Branch
from branch_banking.errors import (
    InsufficientFunds, InvalidAmount, StorageInitFailure, StorageIOFailure, UnknownAccount
)
from branch_banking.storage import InMemoryPersistence, create_persistence


class RecordingPersistence(InMemoryPersistence):
    """In-memory backend that records calls and can be told to fail"""

    def __init__(self, accounts=None, init_ok=True, save_ok=True, unreadable=False):
        super().__init__(accounts)
        self.init_ok = init_ok
        self.save_ok = save_ok
        self.unreadable = unreadable
        self.calls = []

    def initialize(self) -> bool:
        self.calls.append("initialize")
        return super().initialize() if self.init_ok else False

    def _read_accounts(self):
        self.calls.append("load")
        if self.unreadable:
            raise StorageIOFailure("checksum mismatch")
        return super()._read_accounts()

    def save_all(self, accounts) -> bool:
        self.calls.append("save_all")
        return super().save_all(accounts) if self.save_ok else False


class TestBootstrap:
    """Test the create vs. load protocol"""

    def test_first_run_initializes_storage(self):
        """Test uninitialized storage is created and nothing is loaded"""
        storage = RecordingPersistence()
        branch = Branch("UFLA", storage)

        assert storage.calls == ["initialize"]
        assert len(branch) == 0
        assert not branch.degraded

    def test_init_failure_is_fatal(self):
        """Test the branch cannot come up without usable storage"""
        with pytest.raises(StorageInitFailure):
            Branch("UFLA", RecordingPersistence(init_ok=False))

    def test_existing_storage_is_loaded(self):
        """Test persisted accounts are restored with their balances"""
        storage = RecordingPersistence([Account(3, Decimal('30.00')), Account(7, Decimal('70.00'))])
        branch = Branch("UFLA", storage)

        assert storage.calls == ["load"]
        assert branch.account_numbers() == [3, 7]
        assert branch.balance(7) == Decimal('70.00')
        assert all(number == account.number for number, account in branch.accounts.items())

    def test_duplicate_numbers_fail_fast(self):
        """Test a backend returning a number twice aborts construction"""
        storage = RecordingPersistence([Account(1, Decimal('1.00')), Account(1, Decimal('2.00'))])
        with pytest.raises(StorageIOFailure, match="more than once"):
            Branch("UFLA", storage)

    def test_unreadable_storage_starts_degraded(self):
        """Test unreadable storage yields an empty branch that will not overwrite it"""
        storage = RecordingPersistence([Account(1, Decimal('500.00'))], unreadable=True)
        branch = Branch("UFLA", storage)

        assert branch.degraded
        assert len(branch) == 0

        branch.create_account()
        assert not branch.shutdown()
        assert "save_all" not in storage.calls

        assert branch.shutdown(force=True)
        assert storage.calls[-1] == "save_all"


class TestAccountNumbering:
    """Test assignment of account numbers"""

    def test_sequential_on_empty_branch(self):
        """Test numbers 1, 2, 3 in creation order"""
        branch = Branch("UFLA", InMemoryPersistence())
        assert [branch.create_account() for _ in range(3)] == [1, 2, 3]
        assert branch.account_numbers() == [1, 2, 3]

    def test_next_after_loaded_numbers(self):
        """Test the next number follows the highest loaded one"""
        branch = Branch("UFLA", InMemoryPersistence([Account(3), Account(7)]))
        assert branch.create_account() == 8
        assert branch.create_account() == 9

    def test_new_account_has_zero_balance(self):
        """Test a created account starts empty"""
        branch = Branch("UFLA", InMemoryPersistence())
        number = branch.create_account()
        assert branch.balance(number) == Decimal('0.00')
        assert number in branch


class TestOperations:
    """Test deposit, withdraw and transfer dispatch"""

    def setup_method(self):
        """Set up test fixtures"""
        self.branch = Branch("UFLA", InMemoryPersistence())
        self.first = self.branch.create_account()
        self.second = self.branch.create_account()

    def test_deposit_withdraw_report_scenario(self):
        """Test create, deposit 100, withdraw 30, then a refused withdrawal"""
        self.branch.deposit(self.first, Decimal('100'))
        self.branch.withdraw(self.first, Decimal('30'))
        assert "Account 1 - balance: R$ 70.00" in self.branch.report()

        with pytest.raises(InsufficientFunds) as exc_info:
            self.branch.withdraw(self.first, Decimal('1000'))
        assert exc_info.value.balance == Decimal('70.00')

        assert "Account 1 - balance: R$ 70.00" in self.branch.report()

    def test_transfer_scenario(self):
        """Test a full transfer succeeds and a further one fails without changes"""
        self.branch.deposit(self.first, Decimal('50'))

        result = self.branch.transfer(self.first, self.second, Decimal('50'))
        assert result.status == TransferStatus.COMPLETED
        assert self.branch.balance(self.first) == Decimal('0.00')
        assert self.branch.balance(self.second) == Decimal('50.00')

        with pytest.raises(InsufficientFunds):
            self.branch.transfer(self.first, self.second, Decimal('1'))
        assert self.branch.balance(self.first) == Decimal('0.00')
        assert self.branch.balance(self.second) == Decimal('50.00')

    def test_unknown_accounts(self):
        """Test operations on missing accounts raise UnknownAccount"""
        with pytest.raises(UnknownAccount) as exc_info:
            self.branch.deposit(99, Decimal('1'))
        assert exc_info.value.account_number == 99

        with pytest.raises(UnknownAccount):
            self.branch.withdraw(99, Decimal('1'))
        with pytest.raises(UnknownAccount):
            self.branch.get_account(99)

    def test_transfer_checks_source_first(self):
        """Test the missing source is reported before the missing destination"""
        with pytest.raises(UnknownAccount) as exc_info:
            self.branch.transfer(98, 99, Decimal('1'))
        assert exc_info.value.account_number == 98

        with pytest.raises(UnknownAccount) as exc_info:
            self.branch.transfer(self.first, 99, Decimal('1'))
        assert exc_info.value.account_number == 99

    def test_invalid_amounts(self):
        """Test the amount policy applies to every operation"""
        with pytest.raises(InvalidAmount):
            self.branch.deposit(self.first, Decimal('-10'))
        with pytest.raises(InvalidAmount):
            self.branch.withdraw(self.first, Decimal('0'))
        with pytest.raises(InvalidAmount):
            self.branch.transfer(self.first, self.second, "NaN")
        assert self.branch.balance(self.first) == Decimal('0.00')

    def test_maximum_transaction_amount(self):
        """Test the configured ceiling is enforced by the branch"""
        branch = Branch("UFLA", InMemoryPersistence(), max_transaction_amount=Decimal('100.00'))
        number = branch.create_account()

        branch.deposit(number, Decimal('100.00'))
        with pytest.raises(InvalidAmount):
            branch.deposit(number, Decimal('100.01'))
        assert branch.balance(number) == Decimal('100.00')

    def test_failed_credit_is_rolled_back_and_raised(self):
        """Test a failing destination leaves the source intact and surfaces the error"""
        class BrokenAccount(Account):
            def deposit(self, amount) -> None:
                raise RuntimeError("credit refused")

        self.branch.deposit(self.first, Decimal('40'))
        self.branch.accounts[3] = BrokenAccount(3)

        with pytest.raises(RuntimeError, match="credit refused"):
            self.branch.transfer(self.first, 3, Decimal('10'))
        assert self.branch.balance(self.first) == Decimal('40.00')


class TestReportAndShutdown:
    """Test reporting and persistence on shutdown"""

    def test_empty_report(self):
        """Test an empty branch reports an explicit notice"""
        branch = Branch("UFLA", InMemoryPersistence())
        assert branch.report() == (
            "==== Branch UFLA ====\n"
            "There are no accounts in this branch.\n"
        )

    def test_report_lists_accounts_in_order(self):
        """Test every account appears once, in mapping order"""
        branch = Branch("Centro", InMemoryPersistence([Account(2, Decimal('5')), Account(1)]),
                        currency_symbol="$")
        assert branch.report() == (
            "==== Branch Centro ====\n"
            "Account 2 - balance: $ 5.00\n"
            "Account 1 - balance: $ 0.00\n"
        )

    def test_nothing_persisted_before_shutdown(self):
        """Test operations do not write to storage"""
        storage = RecordingPersistence()
        branch = Branch("UFLA", storage)
        number = branch.create_account()
        branch.deposit(number, Decimal('10'))

        assert "save_all" not in storage.calls
        assert branch.shutdown()
        assert storage.calls.count("save_all") == 1

    def test_shutdown_reports_save_failure(self):
        """Test a failed save is returned to the caller"""
        branch = Branch("UFLA", RecordingPersistence(save_ok=False))
        branch.create_account()
        assert not branch.shutdown()

    @pytest.mark.parametrize("backend", ["memory", "text", "binary", "sqlite"])
    def test_restart_restores_accounts(self, backend):
        """Test a branch restored from a fresh snapshot has the same accounts"""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / f"accounts.{backend}"
            storage = create_persistence(backend, path)

            branch = Branch("UFLA", storage)
            a = branch.create_account()
            b = branch.create_account()
            branch.deposit(a, Decimal('100'))
            branch.transfer(a, b, Decimal('25.50'))
            assert branch.shutdown()

            if backend != "memory":
                storage = create_persistence(backend, path)
            restored = Branch("UFLA", storage)

            assert restored.balance(a) == Decimal('74.50')
            assert restored.balance(b) == Decimal('25.50')
            assert restored.create_account() == 3
