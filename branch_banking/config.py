"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings

from .currency import validate_amount


class BranchConfig(BaseSettings):
    """Branch banking system configuration"""

    # Branch configuration
    branch_name: str = "UFLA"
    currency_symbol: str = "R$"

    # Storage configuration
    storage_backend: str = "sqlite"  # text, binary, sqlite or memory
    data_dir: str = "."
    text_file: str = "contas.txt"
    binary_file: str = "contas.dat"
    database_file: str = "contas.db"

    # Business rules configuration
    max_transaction_amount: str = ""  # Empty = unlimited

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    class Config:
        env_prefix = "BRANCH_"
        env_file = ".env"
        case_sensitive = False

    def storage_path(self) -> Optional[Path]:
        """Resolve the storage file for the configured backend (None for memory)"""
        files = {
            "text": self.text_file,
            "binary": self.binary_file,
            "sqlite": self.database_file,
        }
        file_name = files.get(self.storage_backend.lower())
        if file_name is None:
            return None
        return Path(self.data_dir) / file_name

    def max_amount(self) -> Optional[Decimal]:
        """
        Configured per-transaction ceiling, or None when unlimited

        Raises:
            InvalidAmount: If the setting is not a positive amount
        """
        if not self.max_transaction_amount.strip():
            return None
        return validate_amount(self.max_transaction_amount)


# Global configuration instance
config = BranchConfig()


def get_config() -> BranchConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BranchConfig:
    """Reload configuration from environment"""
    global config
    config = BranchConfig()
    return config
