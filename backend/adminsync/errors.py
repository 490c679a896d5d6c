"""
Exception types raised by the sync layer and the upstream REST client
"""

from typing import Optional

TOKEN_MISSING_MESSAGE = "Authentication token not found"


class AdminSyncError(Exception):
    """Base class for AdminSync errors"""


class TokenMissingError(AdminSyncError):
    def __init__(self, message: str = TOKEN_MISSING_MESSAGE):
        super().__init__(message)
        self.message = message


class AdminApiError(AdminSyncError):
    """An upstream REST call failed or answered with ``success: false``.

    ``message`` is the server's own message when it sent one. ``status_code``
    is None when the request never produced an HTTP response.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (status={self.status_code})"
