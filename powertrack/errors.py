"""
Domain error taxonomy.

Read-path errors are raised by services and mapped to HTTP responses by the
exception handlers registered in powertrack.api.main. Ingestion errors are
raised by the message parser and abort the current consumer batch.

CHANGELOG:
- 2026-04-20: Add NoDataError for uninstrumented metrics (STORY-019)
- 2026-04-03: Initial creation (STORY-002)

TODO:
- None
"""


class PowerTrackError(Exception):
    """Base class for all PowerTrack domain errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MalformedInputError(PowerTrackError):
    """Bad date or id format, or conflicting filters in a request."""

    status_code = 400


class NotFoundError(PowerTrackError):
    """Referenced report or entity does not exist."""

    status_code = 404


class NoDataError(PowerTrackError):
    """A requested metric has no underlying data or no configured target.

    Reported as a client error instead of defaulting to zero, since a zero
    would read as a real measurement of an uninstrumented grid.
    """

    status_code = 400


class FatalIngestionError(Exception):
    """A stream message is malformed (null key/value, bad key, bad date).

    Never swallowed by the ingestion handlers: a malformed producer must
    surface as a failed consumer batch.
    """
