from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query

from officeflow.api.v1.employees import compliance_out
from officeflow.core.feature_flags import features
from officeflow.core.session import get_workspace
from officeflow.schemas.dashboard_schema import SummaryMetrics
from officeflow.sync.workspace import Workspace

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary", response_model=SummaryMetrics)
async def get_summary(
    today: Optional[date] = Query(None),
    upcoming: int = Query(5, ge=0, le=50),
    ws: Workspace = Depends(get_workspace),
):
    summary = ws.demand_summary(today, upcoming_limit=upcoming)
    flagged = []
    if features.compliance_alerts:
        flagged = [compliance_out(e, a) for e, a in ws.flagged_employees(today)]
    summary["upcoming"] = [d.model_dump() for d in summary["upcoming"]]
    return {**summary, "flagged_employees": flagged}
