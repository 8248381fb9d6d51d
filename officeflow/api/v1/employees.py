from fastapi import APIRouter, Depends, Query, Path, HTTPException, status

from officeflow.core.errors import OfficeflowError
from officeflow.core.session import get_workspace, http_error
from officeflow.schemas.employee_schema import (
    ComplianceOut,
    Employee,
    EmployeeIn,
    EmployeeUpdate,
    EmployeeOut,
    EmployeeListOut,
)
from officeflow.services.compliance import CertificateAnalysis
from officeflow.sync.workspace import Workspace

router = APIRouter(prefix="/employees", tags=["employees"])


def _out(ws: Workspace, employee: Employee) -> EmployeeOut:
    return EmployeeOut(**employee.model_dump(), pending=ws.is_pending(employee.id))


def compliance_out(employee: Employee, analysis: CertificateAnalysis) -> ComplianceOut:
    return ComplianceOut(
        employee_id=employee.id,
        employee_name=employee.name,
        contract_class=employee.contract_class,
        accumulated_days=analysis.accumulated_days,
        status=analysis.status,
        limit=analysis.limit,
        groups=analysis.groups,
    )


@router.get("", response_model=EmployeeListOut)
async def list_employees(
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=500),
    ws: Workspace = Depends(get_workspace),
):
    items = sorted(ws.employees, key=lambda e: e.name.casefold())
    page_items = items[(page - 1) * size: page * size]
    return {"items": [_out(ws, e) for e in page_items], "total": len(items), "page": page, "size": size}


@router.get("/{employee_id}", response_model=EmployeeOut)
async def get_employee(employee_id: str = Path(...), ws: Workspace = Depends(get_workspace)):
    try:
        return _out(ws, ws.get(ws.employees, employee_id))
    except OfficeflowError as exc:
        raise http_error(exc) from exc


@router.get("/{employee_id}/compliance", response_model=ComplianceOut)
async def get_employee_compliance(employee_id: str = Path(...), ws: Workspace = Depends(get_workspace)):
    try:
        employee = ws.get(ws.employees, employee_id)
        employee, analysis = ws.analyze_employee(employee.id)
    except OfficeflowError as exc:
        raise http_error(exc) from exc
    return compliance_out(employee, analysis)


@router.post("", response_model=EmployeeOut, status_code=status.HTTP_202_ACCEPTED)
async def create_employee(payload: EmployeeIn, ws: Workspace = Depends(get_workspace)):
    try:
        mutation = ws.add_employee(payload)
    except OfficeflowError as exc:
        raise http_error(exc) from exc
    return _out(ws, mutation.record)


@router.patch("/{employee_id}", response_model=EmployeeOut, status_code=status.HTTP_202_ACCEPTED)
async def update_employee(
    payload: EmployeeUpdate,
    employee_id: str = Path(...),
    ws: Workspace = Depends(get_workspace),
):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No changes supplied")
    try:
        mutation = ws.update_employee(employee_id, changes)
    except OfficeflowError as exc:
        raise http_error(exc) from exc
    return _out(ws, mutation.record)


@router.delete("/{employee_id}", status_code=status.HTTP_202_ACCEPTED)
async def delete_employee(employee_id: str = Path(...), ws: Workspace = Depends(get_workspace)):
    # Certificates of the employee go with it
    try:
        mutation = ws.delete_employee(employee_id)
    except OfficeflowError as exc:
        raise http_error(exc) from exc
    return {"status": "deleted", "id": mutation.record.id}
