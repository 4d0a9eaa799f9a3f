"""
Application wiring: configuration → logging → storage backend → branch → menu.
"""

from typing import Optional

from .branch import Branch
from .config import BranchConfig, get_config
from .errors import BankingError
from .logging_config import setup_logging
from .menu import BranchMenu
from .storage import create_persistence


def build_branch(config: BranchConfig) -> Branch:
    """Create the configured backend and bring the branch up on it"""
    persistence = create_persistence(config.storage_backend, config.storage_path())
    return Branch(
        config.branch_name,
        persistence,
        max_transaction_amount=config.max_amount(),
        currency_symbol=config.currency_symbol
    )


def main(config: Optional[BranchConfig] = None) -> int:
    """Run the interactive branch; returns the process exit status"""
    config = config or get_config()
    logger = setup_logging(config.log_level, fmt=config.log_format)

    try:
        branch = build_branch(config)
    except (BankingError, ValueError) as e:
        logger.error(f"Branch could not start: {e}")
        return 1

    saved = BranchMenu(branch).run()
    return 0 if saved else 2
