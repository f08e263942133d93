class HashdriftError(Exception):
    """Base class for errors raised by hashdrift"""

    pass


class ConfigError(HashdriftError):
    """Raised for invalid options, arguments or invocation environment"""

    pass


class StoreError(HashdriftError, OSError):
    """Raised when manifest or log files cannot be read, written or locked"""

    pass


class FormatError(HashdriftError):
    """Raised when a persisted manifest contains an unparseable record"""

    def __init__(self, source: str, line_number: int, line: str):
        self.source = source
        self.line_number = line_number
        self.line = line
        super().__init__(f"{source}:{line_number}: malformed manifest record: {line!r}")
