from typing import Optional
from fastapi import APIRouter, Depends, Query, Path, HTTPException, status

from officeflow.core.errors import OfficeflowError
from officeflow.core.session import get_workspace, http_error
from officeflow.schemas.vacation_schema import (
    Vacation,
    VacationIn,
    VacationUpdate,
    VacationOut,
    VacationListOut,
)
from officeflow.sync.workspace import Workspace

router = APIRouter(prefix="/vacations", tags=["vacations"])


def _out(ws: Workspace, vacation: Vacation) -> VacationOut:
    return VacationOut(**vacation.model_dump(), pending=ws.is_pending(vacation.id))


@router.get("", response_model=VacationListOut)
async def list_vacations(
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=500),
    employee_id: Optional[str] = Query(None),
    ws: Workspace = Depends(get_workspace),
):
    items = sorted(ws.vacations, key=lambda v: v.start_date)
    if employee_id:
        employee_id = ws.engine.resolve(employee_id)
        items = [v for v in items if v.employee_id == employee_id]
    page_items = items[(page - 1) * size: page * size]
    return {"items": [_out(ws, v) for v in page_items], "total": len(items), "page": page, "size": size}


@router.get("/{vacation_id}", response_model=VacationOut)
async def get_vacation(vacation_id: str = Path(...), ws: Workspace = Depends(get_workspace)):
    try:
        return _out(ws, ws.get(ws.vacations, vacation_id))
    except OfficeflowError as exc:
        raise http_error(exc) from exc


@router.post("", response_model=VacationOut, status_code=status.HTTP_202_ACCEPTED)
async def create_vacation(payload: VacationIn, ws: Workspace = Depends(get_workspace)):
    try:
        mutation = ws.add_vacation(payload)
    except OfficeflowError as exc:
        raise http_error(exc) from exc
    return _out(ws, mutation.record)


@router.patch("/{vacation_id}", response_model=VacationOut, status_code=status.HTTP_202_ACCEPTED)
async def update_vacation(
    payload: VacationUpdate,
    vacation_id: str = Path(...),
    ws: Workspace = Depends(get_workspace),
):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No changes supplied")
    try:
        mutation = ws.update_vacation(vacation_id, changes)
    except OfficeflowError as exc:
        raise http_error(exc) from exc
    return _out(ws, mutation.record)


@router.delete("/{vacation_id}", status_code=status.HTTP_202_ACCEPTED)
async def delete_vacation(vacation_id: str = Path(...), ws: Workspace = Depends(get_workspace)):
    try:
        mutation = ws.delete_vacation(vacation_id)
    except OfficeflowError as exc:
        raise http_error(exc) from exc
    return {"status": "deleted", "id": mutation.record.id}
