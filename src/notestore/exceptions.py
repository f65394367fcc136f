"""Exceptions for notestore.

These are raised inside gateway transports and classified once at the
gateway boundary; callers above the gateway receive an
:class:`~notestore.outcome.Outcome` instead.
"""


class GatewayError(Exception):
    """Raised when a remote call fails for a reason the caller can only retry.

    *status* carries the HTTP status code when the transport has one.
    """

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class NotConnectedError(GatewayError):
    """Raised when no user identity or repository connection is available."""


class NotFoundError(GatewayError):
    """Raised when the remote path (or ref) does not exist."""


class ConflictError(GatewayError):
    """Raised when a revision precondition does not match the remote.

    Re-read the path to get its current revision, reconcile the content,
    and write again with the new revision.
    """
