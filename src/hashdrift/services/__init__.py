"""Services for hashdrift."""

from .exceptions import ConfigError, FormatError, HashdriftError, StoreError

__all__ = ["HashdriftError", "ConfigError", "StoreError", "FormatError"]
