from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.database import get_db
from app.api.deps import get_applicant
from app.models.user import User
from app.schemas.application import SectionRecord, SectionWrite
from app.services.application_service import application_service
import uuid

router = APIRouter()


@router.put("/{application_id}/sections/{section_type}", response_model=SectionRecord)
async def update_section(
    application_id: uuid.UUID,
    section_type: str,
    payload: SectionWrite,
    current_user: User = Depends(get_applicant),
    db: AsyncSession = Depends(get_db)
):
    """Replace a section's data. Scored sections trigger a rescore."""
    record = await application_service.update_section(
        db, application_id, section_type, payload.data, current_user
    )
    await db.commit()
    return record


@router.post("/{application_id}/sections/{section_type}/document", response_model=SectionRecord)
async def upload_section_document(
    application_id: uuid.UUID,
    section_type: str,
    file: UploadFile = File(...),
    current_user: User = Depends(get_applicant),
    db: AsyncSession = Depends(get_db)
):
    """Attach a PDF (or a JPEG/PNG for photo and signature) to a section"""
    content = await file.read()
    record = await application_service.attach_document(
        db, application_id, section_type, file.filename, file.content_type, content, current_user
    )
    await db.commit()
    return record


@router.delete("/{application_id}/sections/{section_type}/document", response_model=SectionRecord)
async def delete_section_document(
    application_id: uuid.UUID,
    section_type: str,
    current_user: User = Depends(get_applicant),
    db: AsyncSession = Depends(get_db)
):
    record = await application_service.detach_document(db, application_id, section_type, current_user)
    await db.commit()
    return record
