from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse

from clinicdesk.api.deps import get_image_service, get_store
from clinicdesk.core.errors import StorageError
from clinicdesk.services.storage_service import AssessmentImageService, UploadedFile
from clinicdesk.services.sync_store import SyncStore

router = APIRouter()

@router.post("/appointments/{appointment_id}/images")
async def upload_images(
    appointment_id: UUID,
    files: List[UploadFile] = File(...),
    store: SyncStore = Depends(get_store),
    service: AssessmentImageService = Depends(get_image_service),
):
    appointment = store.get(appointment_id)
    if not appointment:
        raise HTTPException(status_code=404, detail="Appointment not found")

    uploads = [
        UploadedFile(filename=f.filename or "upload", content_type=f.content_type or "", file=f.file)
        for f in files
    ]
    result = await service.add_images(appointment_id, uploads)
    return {
        "paths": result.paths,
        "rejected": result.rejected,
        # Persisted only when the edit form is saved
        "assessment_images": list(appointment.assessment_images) + result.paths,
    }

@router.delete("/images/{path}")
async def remove_image(path: str, service: AssessmentImageService = Depends(get_image_service)):
    try:
        await service.remove_image(path)
    except StorageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"removed": path}

@router.get("/images/signed-urls")
async def signed_urls(
    path: List[str] = Query(default=[]),
    service: AssessmentImageService = Depends(get_image_service),
):
    return {"urls": await service.signed_urls(path)}

@router.get("/storage/{bucket}/{path}")
def read_signed_object(
    bucket: str,
    path: str,
    token: str,
    service: AssessmentImageService = Depends(get_image_service),
):
    if bucket != service.storage.bucket:
        raise HTTPException(status_code=404, detail="Bucket not found")
    try:
        target = service.storage.resolve_signed(path, token)
    except StorageError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return FileResponse(target)
