"""
Main entry point for running the package as a module.

Usage:
    python -m derivgen init-db
    python -m derivgen work
    python -m derivgen submit photo.jpg --gallery-id g1 --user alice
    python -m derivgen status --gallery-id g1
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
