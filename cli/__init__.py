"""CLI package for Mail Delegate

Connect, inspect, disconnect and use delegated mail accounts from a
terminal, or run the HTTP service.
"""

from cli.main import main

__all__ = [
    "main",
]
