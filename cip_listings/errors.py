"""Exceptions raised by the CIP listings tool.

Every error carries the process exit status the command line reports it with.
"""


class CipError(Exception):
    """Base class for all errors surfaced to the user."""

    exit_code = 1


class NetworkError(CipError):
    """A page could not be fetched (unreachable host, bad status, timeout)."""

    exit_code = 3

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class ParseError(CipError):
    """A fetched page does not have the expected structure."""

    exit_code = 4


class StoreError(CipError):
    """The local database could not be read or written."""

    exit_code = 5


class NotFoundError(CipError):
    """No seance with the requested id exists in the store."""

    exit_code = 1

    def __init__(self, seance_id: int) -> None:
        super().__init__(f"Seance [{seance_id}] not found")
        self.seance_id = seance_id


class QueryValidationError(CipError):
    """A query filter argument is malformed."""

    exit_code = 2
