import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..authorization import Action, ActorScope, Kind, authorize, ensure, target
from ..config import Settings
from ..database import NO_MONGO_ID, get_app_settings, get_db, get_or_404, iso_now
from ..errors import ValidationError, ok
from ..models import DOCUMENT_TYPES, Actor, DocumentRecord, DocumentVerify, Role
from ..scope import require_profile
from ..security import get_scope, require_roles
from ..storage import check_upload_policy, remove_upload, store_upload

logger = logging.getLogger(__name__)

documents_router = APIRouter(prefix="/documents", tags=["documents"])

DECISIONS = ["verified", "rejected"]


@documents_router.post("")
async def upload_document(
    file: UploadFile = File(...),
    document_type: str = Form(...),
    actor: Actor = Depends(require_roles(Role.STUDENT)),
    db: AsyncIOMotorDatabase = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    document_type = (document_type or "").strip().lower()
    if document_type not in DOCUMENT_TYPES:
        raise ValidationError("Invalid document type", {"allowed": DOCUMENT_TYPES})
    student = await require_profile(db, actor)
    content = await file.read()
    mimetype = file.content_type or ""
    check_upload_policy(mimetype, len(content), settings)

    filename = store_upload(content, mimetype, student["id"], settings)
    record = DocumentRecord(
        student_id=student["id"],
        document_type=document_type,
        file_path=filename,
        mimetype=mimetype,
        size=len(content),
        original_name=file.filename or filename,
    )
    doc = record.model_dump(mode="json")
    try:
        await db.documents.insert_one(doc)
    except Exception:
        remove_upload(filename, settings)
        raise
    doc.pop("_id", None)
    return ok(doc, status_code=status.HTTP_201_CREATED)


@documents_router.put("/{document_id}/verify")
async def verify_document(
    document_id: str,
    payload: DocumentVerify,
    actor: Actor = Depends(require_roles(Role.ADMIN)),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    decision = (payload.status or "").strip().lower()
    if decision not in DECISIONS:
        raise ValidationError("status must be verified or rejected")
    document = await get_or_404(db, "documents", document_id, "Document")
    if document.get("status") != "pending":
        raise ValidationError("Document already processed")
    updated = await db.documents.find_one_and_update(
        {"id": document_id, "status": "pending"},
        {"$set": {
            "status": decision,
            "remarks": payload.remarks,
            "verified_by": actor.id,
            "verified_at": iso_now(),
        }},
        projection=NO_MONGO_ID,
        return_document=True,
    )
    if not updated:
        # Another verifier decided between the read and the write.
        raise ValidationError("Document already processed")
    await db.students.update_one({"id": document["student_id"]}, {"$set": {"document_status": decision}})
    logger.info("Document %s %s by %s", document_id, decision, actor.id)
    return ok(updated)


@documents_router.get("/student/{student_id}", dependencies=[Depends(require_roles(Role.ADMIN, Role.STUDENT))])
async def student_documents(
    student_id: str, scope: ActorScope = Depends(get_scope), db: AsyncIOMotorDatabase = Depends(get_db)
):
    student = await get_or_404(db, "students", student_id, "Student")
    ensure(authorize(scope, Action.READ, target(Kind.DOCUMENT, campus_ids=[student.get("campus_id")], owner_id=student["id"])))
    documents = await db.documents.find({"student_id": student_id}, NO_MONGO_ID).sort("created_at", -1).to_list(200)
    return ok(documents, count=len(documents))
