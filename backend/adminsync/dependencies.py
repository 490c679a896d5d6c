"""
Shared router dependencies
"""

from fastapi import HTTPException, Request, status

from adminsync.errors import AdminApiError, AdminSyncError, TokenMissingError
from adminsync.realtime import RealtimeManager
from adminsync.sync.service import DashboardSync


def get_sync(request: Request) -> DashboardSync:
    return request.app.state.sync


def http_error(error: AdminSyncError) -> HTTPException:
    """Translate a sync-layer failure into the HTTP error a route raises"""
    if isinstance(error, TokenMissingError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=error.message)
    if isinstance(error, AdminApiError):
        if error.status_code is None or error.status_code >= 500:
            return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=error.message)
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error.message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


def get_realtime(request: Request) -> RealtimeManager:
    return request.app.state.realtime
