"""CLI package for rhoas

Commands receive a Factory built once in main.
"""

from cli.factory import Factory
from cli.main import main

__all__ = [
    "Factory",
    "main",
]
