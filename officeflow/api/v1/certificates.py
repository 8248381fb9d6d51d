from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, Path, UploadFile, File, Form, HTTPException, status
from pydantic import ValidationError

from officeflow.core.errors import OfficeflowError
from officeflow.core.session import get_workspace, http_error
from officeflow.schemas.certificate_schema import (
    Certificate,
    CertificateIn,
    CertificateUpdate,
    CertificateOut,
    CertificateListOut,
)
from officeflow.sync.workspace import Attachment, Workspace

router = APIRouter(prefix="/certificates", tags=["certificates"])


def _out(ws: Workspace, certificate: Certificate) -> CertificateOut:
    return CertificateOut(**certificate.model_dump(), pending=ws.is_pending(certificate.id))


@router.get("", response_model=CertificateListOut)
async def list_certificates(
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=500),
    employee_id: Optional[str] = Query(None),
    ws: Workspace = Depends(get_workspace),
):
    items = sorted(ws.certificates, key=lambda c: c.certificate_date, reverse=True)
    if employee_id:
        employee_id = ws.engine.resolve(employee_id)
        items = [c for c in items if c.employee_id == employee_id]
    page_items = items[(page - 1) * size: page * size]
    return {"items": [_out(ws, c) for c in page_items], "total": len(items), "page": page, "size": size}


@router.get("/{certificate_id}", response_model=CertificateOut)
async def get_certificate(certificate_id: str = Path(...), ws: Workspace = Depends(get_workspace)):
    try:
        return _out(ws, ws.get(ws.certificates, certificate_id))
    except OfficeflowError as exc:
        raise http_error(exc) from exc


@router.post("", response_model=CertificateOut, status_code=status.HTTP_202_ACCEPTED)
async def create_certificate(
    employee_id: str = Form(...),
    certificate_date: date = Form(...),
    days: float = Form(1),
    half_day: bool = Form(False),
    original_received: bool = Form(False),
    diagnosis_code: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    ws: Workspace = Depends(get_workspace),
):
    try:
        draft = CertificateIn(
            employee_id=employee_id,
            certificate_date=certificate_date,
            days=days,
            half_day=half_day,
            original_received=original_received,
            diagnosis_code=diagnosis_code or None,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors()[0]["msg"]) from exc

    attachment = None
    if file is not None and file.filename:
        content = await file.read()
        attachment = Attachment(filename=file.filename, content=content, content_type=file.content_type)
    try:
        mutation = ws.add_certificate(draft, attachment)
    except OfficeflowError as exc:
        raise http_error(exc) from exc
    return _out(ws, mutation.record)


@router.patch("/{certificate_id}", response_model=CertificateOut, status_code=status.HTTP_202_ACCEPTED)
async def update_certificate(
    payload: CertificateUpdate,
    certificate_id: str = Path(...),
    ws: Workspace = Depends(get_workspace),
):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No changes supplied")
    try:
        mutation = ws.update_certificate(certificate_id, changes)
    except OfficeflowError as exc:
        raise http_error(exc) from exc
    return _out(ws, mutation.record)


@router.delete("/{certificate_id}", status_code=status.HTTP_202_ACCEPTED)
async def delete_certificate(certificate_id: str = Path(...), ws: Workspace = Depends(get_workspace)):
    try:
        mutation = ws.delete_certificate(certificate_id)
    except OfficeflowError as exc:
        raise http_error(exc) from exc
    return {"status": "deleted", "id": mutation.record.id}
