"""
Storage Backend Module

Provides the abstract persistence interface the branch saves its accounts
through, and implementations for in-memory (testing), delimited text,
binary snapshot and SQLite storage. Every backend honours the same contract:
reads never fail the caller, writes report success as a boolean.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Union
from decimal import Decimal, InvalidOperation
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from contextlib import contextmanager
import csv
import io
import os
import pickle
import sqlite3
import tempfile

from .accounts import Account
from .errors import InvalidAmount, StorageIOFailure
from .logging_config import get_logger, log_action


logger = get_logger("branch.storage")

DEFAULT_TEXT_FILE = "contas.txt"
DEFAULT_BINARY_FILE = "contas.dat"
DEFAULT_DATABASE_FILE = "contas.db"


class LoadStatus(Enum):
    """Outcome of reading the persisted account set"""
    NOT_INITIALIZED = "not_initialized"  # Storage was never created
    LOADED = "loaded"                    # Storage read successfully (possibly empty)
    UNREADABLE = "unreadable"            # Storage exists but could not be read


@dataclass
class LoadResult:
    """Accounts read from storage, tagged with how the read went"""
    status: LoadStatus
    accounts: List[Account] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == LoadStatus.LOADED


class PersistenceInterface(ABC):
    """Abstract interface for account persistence backends"""

    @abstractmethod
    def is_initialized(self) -> bool:
        """Check whether the storage artifact already exists (no side effects)"""
        pass

    @abstractmethod
    def initialize(self) -> bool:
        """Prepare empty storage for first use; False if it could not be prepared"""
        pass

    @abstractmethod
    def _read_accounts(self) -> List[Account]:
        """Read every persisted account, raising StorageIOFailure on any error"""
        pass

    @abstractmethod
    def save_all(self, accounts: Iterable[Account]) -> bool:
        """Persist the full account set as the new durable state"""
        pass

    def load_accounts(self) -> LoadResult:
        """Load every persisted account, telling missing storage apart from broken storage"""
        if not self.is_initialized():
            return LoadResult(LoadStatus.NOT_INITIALIZED)
        try:
            accounts = self._read_accounts()
        except StorageIOFailure as e:
            log_action(
                logger, "error", f"Could not load accounts: {e}",
                action="load_accounts", resource=self.describe()
            )
            return LoadResult(LoadStatus.UNREADABLE, error=str(e))
        return LoadResult(LoadStatus.LOADED, accounts=accounts)

    def load_all(self) -> List[Account]:
        """Load every persisted account; any failure yields an empty list"""
        return self.load_accounts().accounts

    def describe(self) -> str:
        """Short label of the backend used in log records"""
        return type(self).__name__


class InMemoryPersistence(PersistenceInterface):
    """In-memory persistence implementation for testing"""

    def __init__(self, accounts: Optional[Iterable[Account]] = None):
        self._rows: Optional[List[tuple]] = None
        if accounts is not None:
            self._rows = [(a.number, a.balance) for a in accounts]

    def is_initialized(self) -> bool:
        return self._rows is not None

    def initialize(self) -> bool:
        self._rows = []
        return True

    def _read_accounts(self) -> List[Account]:
        return [Account(number, balance) for number, balance in self._rows]

    def save_all(self, accounts: Iterable[Account]) -> bool:
        # Copy so later mutations of the live accounts are not "saved"
        self._rows = [(a.number, a.balance) for a in accounts]
        return True

    def describe(self) -> str:
        return "memory"


class FilePersistence(PersistenceInterface):
    """Base class for backends that keep the whole account set in one file"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def is_initialized(self) -> bool:
        return self.path.exists()

    def describe(self) -> str:
        return str(self.path)

    def _replace_contents(self, data: bytes) -> None:
        """Write to a temporary file beside the target, then atomically swap it in"""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self.path)
        except OSError:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise

    def _save_bytes(self, data: bytes, count: int) -> bool:
        try:
            self._replace_contents(data)
        except OSError as e:
            log_action(
                logger, "error", f"Error while trying to save file {self.path}: {e}",
                action="save_all", resource=self.describe()
            )
            return False
        log_action(
            logger, "debug", f"Saved {count} accounts",
            action="save_all", resource=self.describe()
        )
        return True


class TextFilePersistence(FilePersistence):
    """
    Delimited text persistence: one ``number,balance`` record per line

    A single malformed line makes the whole file unreadable rather than
    silently dropping that record.
    """

    def __init__(self, path: Union[str, Path] = DEFAULT_TEXT_FILE):
        super().__init__(path)

    def initialize(self) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("", encoding="utf-8")
        except OSError as e:
            log_action(
                logger, "error", f"Error while trying to create file {self.path}: {e}",
                action="initialize", resource=self.describe()
            )
            return False
        return True

    def _read_accounts(self) -> List[Account]:
        accounts = []
        try:
            with open(self.path, newline="", encoding="utf-8") as f:
                for line_no, row in enumerate(csv.reader(f), start=1):
                    if not row:
                        continue
                    accounts.append(self._parse_row(row, line_no))
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            raise StorageIOFailure(f"Error while trying to load file {self.path}: {e}") from e
        return accounts

    def _parse_row(self, row: List[str], line_no: int) -> Account:
        if len(row) != 2:
            raise StorageIOFailure(
                f"{self.path}:{line_no}: expected 2 fields, got {len(row)}"
            )
        try:
            number = int(row[0])
            balance = Decimal(row[1].strip())
            if number > 0 and balance.is_finite():
                return Account(number, balance)
        except (ValueError, InvalidOperation, InvalidAmount) as e:
            raise StorageIOFailure(f"{self.path}:{line_no}: malformed record {row!r}") from e
        raise StorageIOFailure(f"{self.path}:{line_no}: malformed record {row!r}")

    def save_all(self, accounts: Iterable[Account]) -> bool:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        count = 0
        for account in accounts:
            writer.writerow([account.number, account.balance])
            count += 1
        return self._save_bytes(buffer.getvalue().encode("utf-8"), count)


class BinaryFilePersistence(FilePersistence):
    """Binary snapshot persistence: the whole account list pickled as one blob"""

    def __init__(self, path: Union[str, Path] = DEFAULT_BINARY_FILE):
        super().__init__(path)

    def initialize(self) -> bool:
        # Nothing to prepare: the file is created by the first save
        return True

    def _read_accounts(self) -> List[Account]:
        try:
            with open(self.path, "rb") as f:
                payload = pickle.load(f)
        except (OSError, EOFError, pickle.UnpicklingError,
                AttributeError, ImportError, IndexError, TypeError, ValueError) as e:
            raise StorageIOFailure(f"Error while trying to load file {self.path}: {e}") from e

        if not isinstance(payload, list) or not all(isinstance(a, Account) for a in payload):
            raise StorageIOFailure(f"{self.path} does not contain an account snapshot")
        return payload

    def save_all(self, accounts: Iterable[Account]) -> bool:
        snapshot = list(accounts)
        return self._save_bytes(pickle.dumps(snapshot, protocol=pickle.HIGHEST_PROTOCOL), len(snapshot))


class SQLitePersistence(PersistenceInterface):
    """
    SQLite persistence using the ``CONTA(NUMERO, SALDO)`` table

    Saving is an upsert per account (UPDATE when a row with the same NUMERO
    exists, INSERT otherwise) applied inside one transaction. Rows for
    accounts no longer held in memory are left in place; ``remove_account``
    is the only way to delete one.
    """

    TABLE = "CONTA"

    def __init__(self, db_path: Union[str, Path] = DEFAULT_DATABASE_FILE):
        self.db_path = Path(db_path)

    def describe(self) -> str:
        return str(self.db_path)

    @contextmanager
    def _connection(self):
        """Open a connection for one operation; commit on success, roll back on error"""
        conn = sqlite3.connect(str(self.db_path))
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def _using(self, conn: Optional[sqlite3.Connection]):
        """Reuse the caller's connection, or open one just for this statement"""
        if conn is not None:
            yield conn
        else:
            with self._connection() as own:
                yield own

    def is_initialized(self) -> bool:
        return self.db_path.exists()

    def initialize(self) -> bool:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._connection() as conn:
                conn.execute(f"""
                    CREATE TABLE {self.TABLE}
                    (NUMERO   INT    NOT NULL,
                     SALDO    REAL   NOT NULL)
                """)
        except (sqlite3.Error, OSError) as e:
            log_action(
                logger, "error", f"Error while trying to create database {self.db_path}: {e}",
                action="initialize", resource=self.describe()
            )
            return False
        return True

    def _read_accounts(self) -> List[Account]:
        try:
            with self._connection() as conn:
                rows = conn.execute(f"SELECT NUMERO, SALDO FROM {self.TABLE}").fetchall()
        except sqlite3.Error as e:
            raise StorageIOFailure(f"Error while trying to load database {self.db_path}: {e}") from e
        accounts = []
        for number, balance in rows:
            try:
                amount = Decimal(str(balance))
                if amount.is_finite():
                    accounts.append(Account(int(number), amount))
                    continue
            except (ValueError, TypeError, InvalidOperation, InvalidAmount) as e:
                raise StorageIOFailure(
                    f"{self.db_path}: malformed row ({number!r}, {balance!r})"
                ) from e
            raise StorageIOFailure(f"{self.db_path}: malformed row ({number!r}, {balance!r})")
        return accounts

    def save_all(self, accounts: Iterable[Account]) -> bool:
        count = 0
        try:
            with self._connection() as conn:
                for account in accounts:
                    if self.account_exists(account.number, conn):
                        self.update_account(account, conn)
                    else:
                        self.insert_account(account, conn)
                    count += 1
        except (StorageIOFailure, sqlite3.Error) as e:
            log_action(
                logger, "error", f"Saving accounts failed, no changes applied: {e}",
                action="save_all", resource=self.describe()
            )
            return False
        log_action(
            logger, "debug", f"Saved {count} accounts",
            action="save_all", resource=self.describe()
        )
        return True

    def account_exists(self, number: int, conn: Optional[sqlite3.Connection] = None) -> bool:
        """Check if a row with this account number exists"""
        try:
            with self._using(conn) as c:
                row = c.execute(
                    f"SELECT 1 FROM {self.TABLE} WHERE NUMERO = ? LIMIT 1", (number,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageIOFailure(f"Could not check whether account {number} exists: {e}") from e
        return row is not None

    def insert_account(self, account: Account, conn: Optional[sqlite3.Connection] = None) -> None:
        """Insert a new row for the account"""
        try:
            with self._using(conn) as c:
                c.execute(
                    f"INSERT INTO {self.TABLE} (NUMERO, SALDO) VALUES (?, ?)",
                    (account.number, float(account.balance))
                )
        except sqlite3.Error as e:
            raise StorageIOFailure(f"Could not persist account {account.number}: {e}") from e

    def update_account(self, account: Account, conn: Optional[sqlite3.Connection] = None) -> None:
        """Update the balance of every row with the account's number"""
        try:
            with self._using(conn) as c:
                c.execute(
                    f"UPDATE {self.TABLE} SET SALDO = ? WHERE NUMERO = ?",
                    (float(account.balance), account.number)
                )
        except sqlite3.Error as e:
            raise StorageIOFailure(f"Could not update account {account.number}: {e}") from e

    def remove_account(self, account: Account, conn: Optional[sqlite3.Connection] = None) -> bool:
        """Delete the account's rows; returns whether any row was removed"""
        try:
            with self._using(conn) as c:
                cursor = c.execute(
                    f"DELETE FROM {self.TABLE} WHERE NUMERO = ?", (account.number,)
                )
                removed = cursor.rowcount > 0
        except sqlite3.Error as e:
            raise StorageIOFailure(f"Could not remove account {account.number}: {e}") from e
        return removed


BACKENDS = {
    "text": (TextFilePersistence, DEFAULT_TEXT_FILE),
    "binary": (BinaryFilePersistence, DEFAULT_BINARY_FILE),
    "sqlite": (SQLitePersistence, DEFAULT_DATABASE_FILE),
}


def create_persistence(backend: str, path: Optional[Union[str, Path]] = None) -> PersistenceInterface:
    """Factory function to create persistence backends by name"""
    backend = backend.lower()

    if backend == "memory":
        return InMemoryPersistence()

    if backend not in BACKENDS:
        raise ValueError(
            f"Unknown storage backend '{backend}' "
            f"(expected one of: memory, {', '.join(sorted(BACKENDS))})"
        )

    backend_class, default_file = BACKENDS[backend]
    return backend_class(path if path is not None else default_file)
