"""jcfa: a Jira Cloud command-line client for humans and agents."""

from .__version__ import __version__

__all__ = ["__version__"]
