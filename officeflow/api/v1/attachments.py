from fastapi import APIRouter, Path, Response

from officeflow.core.errors import OfficeflowError
from officeflow.core.session import http_error
from officeflow.db.attachments import get_attachment_store

router = APIRouter(prefix="/attachments", tags=["attachments"])


@router.get("/{file_id}")
async def get_attachment(file_id: str = Path(...)):
    # Served without a session so the URL can be opened directly
    try:
        content, content_type = await get_attachment_store().fetch(file_id)
    except OfficeflowError as exc:
        raise http_error(exc) from exc
    return Response(content=content, media_type=content_type)
