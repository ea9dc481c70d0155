"""
Entry point for running cbind as a module.

Usage:
    python -m cbind parse header.h --json
"""

import sys
from .cli import main

if __name__ == "__main__":
    sys.exit(main())
