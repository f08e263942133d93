"""CLI commands for hashdrift."""

from . import check

__all__ = ["check"]
