"""Domain errors raised by services.

`ValueError` is used for malformed input throughout the services; the
classes below cover the remaining failure kinds that controllers map to
HTTP status codes.
"""


class NotFoundError(LookupError):
    """A referenced identity does not exist."""


class ConflictError(Exception):
    """A write would break a uniqueness or reference constraint."""


class ResolveError(Exception):
    """A page could not be fetched to read its metadata."""
