#!/usr/bin/env python3
"""
Branch Banking Entry Point

Starts the interactive menu for the configured branch and storage backend
(see BRANCH_* environment variables in branch_banking/config.py).
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from branch_banking.app import main


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted; accounts were not saved.")
        sys.exit(1)
