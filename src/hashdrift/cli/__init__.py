"""Command line interface for hashdrift."""
