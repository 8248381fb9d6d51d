from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query

from officeflow.api.v1.employees import compliance_out
from officeflow.core.session import get_workspace
from officeflow.schemas.employee_schema import ComplianceOut
from officeflow.sync.workspace import Workspace

router = APIRouter(prefix="/compliance", tags=["compliance"])


@router.get("", response_model=list[ComplianceOut])
async def list_compliance(
    today: Optional[date] = Query(None),
    flagged_only: bool = Query(False),
    ws: Workspace = Depends(get_workspace),
):
    if flagged_only:
        return [compliance_out(e, a) for e, a in ws.flagged_employees(today)]
    rows = [compliance_out(*ws.analyze_employee(e.id, today)) for e in ws.employees]
    rows.sort(key=lambda r: r.accumulated_days, reverse=True)
    return rows
