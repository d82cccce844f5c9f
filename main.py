#!/usr/bin/env python3
"""Main entry point for takesync.

This file allows running the application directly with:
    python main.py

For full CLI usage, use:
    takesync --help
"""

from takesync.cli import cli

if __name__ == "__main__":
    cli()
