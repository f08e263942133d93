"""Main CLI entry point for hashdrift."""  # pragma: no cover

from hashdrift.cli.app import app  # pragma: no cover

# Register commands
from hashdrift.cli.commands import check  # pragma: no cover

__all__ = ["check"]  # pragma: no cover

if __name__ == "__main__":  # pragma: no cover
    app()
