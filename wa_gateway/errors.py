"""
Error kinds raised by the gateway.

Every ``GatewayError`` carries the HTTP status it maps to; the exception
handlers registered in ``wa_gateway.main`` render it through ``resp()`` so
no raw library error ever reaches a caller.
"""

from fastapi import status


class GatewayError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidRequest(GatewayError):
    """Missing, empty or malformed request fields."""

    status_code = status.HTTP_400_BAD_REQUEST


class PayloadTooLarge(GatewayError):
    """An uploaded file exceeded the per-file size ceiling."""

    status_code = 413


class SendFailure(GatewayError):
    """The messaging client failed to deliver a message."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class SendTimeout(SendFailure):
    pass


class ShutdownError(GatewayError):
    """Session teardown failed during shutdown. Logged only."""
