from __future__ import annotations


class GateError(Exception):
    """
    Base for every outcome the release gate reports to a client.

    Services raise these; the HTTP layer maps `status_code` to a response.
    """

    status_code: int = 500
    retriable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequestError(GateError):
    status_code = 400


class ForbiddenError(GateError):
    status_code = 403


class NotFoundError(GateError):
    status_code = 404


class RangeNotSatisfiableError(GateError):
    status_code = 416

    def __init__(self, message: str, total_length: int | None = None) -> None:
        super().__init__(message)
        # size of the whole object, for `Content-Range: bytes */N`
        self.total_length = total_length


class InternalError(GateError):
    status_code = 500
    retriable = True


class StorageError(InternalError):
    """Storage backend failed or timed out."""


class MappingResolutionError(InternalError):
    """The storage listing could not be read in full."""
