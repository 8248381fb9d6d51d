from typing import Optional
from fastapi import APIRouter, Depends, Query, Path, HTTPException, status

from officeflow.core.errors import OfficeflowError
from officeflow.core.session import get_workspace, http_error
from officeflow.schemas.common import Priority
from officeflow.schemas.demand_schema import (
    Demand,
    DemandIn,
    DemandUpdate,
    DemandStatusIn,
    DemandOut,
    DemandListOut,
)
from officeflow.sync.statuses import label_key
from officeflow.sync.workspace import Workspace

router = APIRouter(prefix="/demands", tags=["demands"])


def _out(ws: Workspace, demand: Demand) -> DemandOut:
    return DemandOut(**demand.model_dump(), pending=ws.is_pending(demand.id))


@router.get("", response_model=DemandListOut)
async def list_demands(
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=500),
    status_label: Optional[str] = Query(None, alias="status"),
    priority: Optional[Priority] = Query(None),
    owner_id: Optional[str] = Query(None),
    ws: Workspace = Depends(get_workspace),
):
    items = list(ws.demands)
    if status_label:
        items = [d for d in items if label_key(d.status) == label_key(status_label)]
    if priority:
        items = [d for d in items if d.priority == priority]
    if owner_id:
        owner_id = ws.engine.resolve(owner_id)
        items = [d for d in items if d.owner_id == owner_id]
    page_items = items[(page - 1) * size: page * size]
    return {"items": [_out(ws, d) for d in page_items], "total": len(items), "page": page, "size": size}


@router.get("/{demand_id}", response_model=DemandOut)
async def get_demand(demand_id: str = Path(...), ws: Workspace = Depends(get_workspace)):
    try:
        return _out(ws, ws.get(ws.demands, demand_id))
    except OfficeflowError as exc:
        raise http_error(exc) from exc


@router.post("", response_model=DemandOut, status_code=status.HTTP_202_ACCEPTED)
async def create_demand(payload: DemandIn, ws: Workspace = Depends(get_workspace)):
    try:
        mutation = ws.add_demand(payload)
    except OfficeflowError as exc:
        raise http_error(exc) from exc
    return _out(ws, mutation.record)


@router.patch("/{demand_id}", response_model=DemandOut, status_code=status.HTTP_202_ACCEPTED)
async def update_demand(
    payload: DemandUpdate,
    demand_id: str = Path(...),
    ws: Workspace = Depends(get_workspace),
):
    # owner_id may be cleared explicitly; other fields are only ever set
    changes = {
        k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None or k == "owner_id"
    }
    if not changes:
        raise HTTPException(status_code=400, detail="No changes supplied")
    try:
        mutation = ws.update_demand(demand_id, changes)
    except OfficeflowError as exc:
        raise http_error(exc) from exc
    return _out(ws, mutation.record)


@router.patch("/{demand_id}/status", response_model=DemandOut, status_code=status.HTTP_202_ACCEPTED)
async def set_demand_status(
    payload: DemandStatusIn,
    demand_id: str = Path(...),
    ws: Workspace = Depends(get_workspace),
):
    try:
        mutation = ws.set_demand_status(demand_id, payload.status)
    except OfficeflowError as exc:
        raise http_error(exc) from exc
    return _out(ws, mutation.record)


@router.delete("/{demand_id}", status_code=status.HTTP_202_ACCEPTED)
async def delete_demand(demand_id: str = Path(...), ws: Workspace = Depends(get_workspace)):
    try:
        mutation = ws.delete_demand(demand_id)
    except OfficeflowError as exc:
        raise http_error(exc) from exc
    return {"status": "deleted", "id": mutation.record.id}
