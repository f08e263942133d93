"""hashdrift - track content drift of directory trees with hash manifests."""

__version__ = "0.1.0"
