"""linetrack - incremental line-count history for git repositories."""

__version__ = "0.1.0"
