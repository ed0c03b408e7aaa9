"""CLI module for skiller.

Provides the command-line interface over the skiller core library.
"""

from skiller.cli.main import create_parser, main

__all__ = ["create_parser", "main"]
