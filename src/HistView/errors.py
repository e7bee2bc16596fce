class HistViewError(Exception):
    """Base class for every error raised by HistView."""


class InvalidConfiguration(HistViewError, ValueError):
    """Zero bins, an inverted range or a malformed definition/cut file."""


class NotFound(HistViewError, LookupError):
    """A histogram name, cut id or column that is not registered."""


class LengthMismatch(HistViewError, ValueError):
    """Sequences that have to line up row by row do not have the same length."""
