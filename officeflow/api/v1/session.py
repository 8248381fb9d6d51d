import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, status

from officeflow.core.session import get_workspace
from officeflow.sync.engine import SyncEvent
from officeflow.sync.workspace import Workspace, registry

router = APIRouter(prefix="/session", tags=["session"])

logger = logging.getLogger(__name__)


def _event_out(event: SyncEvent) -> dict:
    return {
        "kind": event.kind,
        "operation": event.operation,
        "collection": event.collection,
        "record_id": event.record_id,
        "message": event.message,
        "occurred_at": event.occurred_at,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def open_session():
    session_id, ws = await registry.open()
    logger.info("Opened session (%d active)", len(registry))
    return {
        "session_id": session_id,
        "counts": {name: len(coll) for name, coll in ws.collections.items()},
    }


@router.delete("")
async def close_session(x_session_id: Optional[str] = Header(None)):
    if not x_session_id or not await registry.close(x_session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"status": "closed"}


@router.post("/sync")
async def sync_session(ws: Workspace = Depends(get_workspace)):
    await ws.sync()
    return {"events": [_event_out(e) for e in ws.engine.pop_events()]}


@router.get("/events")
async def list_events(ws: Workspace = Depends(get_workspace)):
    # Events stay queued until a sync reads them
    return {"events": [_event_out(e) for e in ws.engine.events]}
