"""
Package main entry point
"""

from ledger_sync.cli import main

if __name__ == "__main__":
    main()
