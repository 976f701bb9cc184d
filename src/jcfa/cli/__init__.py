"""jcfa command-line interface."""

from .main import build_parser, exit_code_for, main, run

__all__ = ["build_parser", "exit_code_for", "main", "run"]
