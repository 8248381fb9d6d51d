from typing import Optional

from fastapi import Header, HTTPException, status

from officeflow.core.errors import (
    DuplicateStatusError,
    LastStatusError,
    OfficeflowError,
    ProtectedStatusError,
    RecordNotFound,
    ValidationFailed,
)
from officeflow.sync.workspace import Workspace, registry

SESSION_HEADER = "X-Session-Id"


async def get_workspace(x_session_id: Optional[str] = Header(None)) -> Workspace:
    if not x_session_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Missing {SESSION_HEADER} header")
    workspace = registry.get(x_session_id)
    if workspace is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session not found or closed")
    return workspace


def http_error(exc: OfficeflowError) -> HTTPException:
    if isinstance(exc, RecordNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, (DuplicateStatusError, ProtectedStatusError, LastStatusError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, ValidationFailed):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
