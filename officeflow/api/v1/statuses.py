from fastapi import APIRouter, Depends, Path, HTTPException, status

from officeflow.core.errors import OfficeflowError
from officeflow.core.session import get_workspace, http_error
from officeflow.schemas.status_schema import StatusIn, StatusUpdate, StatusOut, StatusListOut, WorkflowStatus
from officeflow.sync.statuses import is_protected
from officeflow.sync.workspace import Workspace

router = APIRouter(prefix="/statuses", tags=["statuses"])


def _out(ws: Workspace, item: WorkflowStatus) -> StatusOut:
    return StatusOut(**item.model_dump(), protected=is_protected(item.label), pending=ws.is_pending(item.id))


@router.get("", response_model=StatusListOut)
async def list_statuses(ws: Workspace = Depends(get_workspace)):
    items = [_out(ws, s) for s in ws.statuses]
    return {"items": items, "total": len(items), "page": 1, "size": len(items)}


@router.post("", response_model=StatusOut, status_code=status.HTTP_202_ACCEPTED)
async def create_status(payload: StatusIn, ws: Workspace = Depends(get_workspace)):
    try:
        mutation = ws.taxonomy.add(payload.label, icon=payload.icon, color=payload.color)
    except OfficeflowError as exc:
        raise http_error(exc) from exc
    return _out(ws, mutation.record)


@router.patch("/{status_id}", response_model=StatusOut, status_code=status.HTTP_202_ACCEPTED)
async def update_status(
    payload: StatusUpdate,
    status_id: str = Path(...),
    ws: Workspace = Depends(get_workspace),
):
    if not payload.model_fields_set:
        raise HTTPException(status_code=400, detail="No changes supplied")
    try:
        mutation = ws.taxonomy.update(status_id, label=payload.label, icon=payload.icon, color=payload.color)
    except OfficeflowError as exc:
        raise http_error(exc) from exc
    return _out(ws, mutation.record)


@router.delete("/{status_id}", status_code=status.HTTP_202_ACCEPTED)
async def delete_status(status_id: str = Path(...), ws: Workspace = Depends(get_workspace)):
    # Demands carrying the status move to the first remaining one
    try:
        mutation = ws.taxonomy.delete(status_id)
    except OfficeflowError as exc:
        raise http_error(exc) from exc
    return {"status": "deleted", "id": mutation.record.id}
