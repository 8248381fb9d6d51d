from fastapi import APIRouter, Depends, HTTPException

from officeflow.core.feature_flags import features
from officeflow.core.session import get_workspace
from officeflow.schemas.backup_schema import BackupDocument
from officeflow.sync.workspace import Workspace

router = APIRouter(prefix="/backup", tags=["backup"])


def _require_backup() -> None:
    if not features.backup:
        raise HTTPException(status_code=404, detail="Backup is disabled")


@router.get("/export", response_model=BackupDocument)
async def export_backup(ws: Workspace = Depends(get_workspace)):
    _require_backup()
    # Pending creations are exported once they have their durable ids
    await ws.sync()
    return ws.export()


@router.post("/import")
async def import_backup(payload: BackupDocument, ws: Workspace = Depends(get_workspace)):
    _require_backup()
    counts = await ws.import_backup(payload)
    return {"status": "imported", "counts": counts}
