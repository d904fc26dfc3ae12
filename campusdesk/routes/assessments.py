import io

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse
from motor.motor_asyncio import AsyncIOMotorDatabase

from .. import assessments, exports
from ..authorization import Action, ActorScope
from ..database import get_db
from ..errors import ValidationError, ok
from ..models import AssessmentBatchUpsert, AssessmentMarksUpdate, AssessmentMetaUpdate, Role
from ..security import get_scope, require_roles

assessments_router = APIRouter(
    prefix="/assessments",
    tags=["assessments"],
    dependencies=[Depends(require_roles(Role.ADMIN, Role.COORDINATOR, Role.TEACHER))],
)


@assessments_router.post("")
async def upsert_batch(
    payload: AssessmentBatchUpsert,
    scope: ActorScope = Depends(get_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    batch, created = await assessments.upsert_batch(db, scope, payload)
    return ok(batch, status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


@assessments_router.get("/course/{course_id}")
async def course_batches(
    course_id: str, scope: ActorScope = Depends(get_scope), db: AsyncIOMotorDatabase = Depends(get_db)
):
    batches = await assessments.list_course_batches(db, scope, course_id)
    return ok(batches, count=len(batches))


@assessments_router.get("/{batch_id}")
async def get_batch(batch_id: str, scope: ActorScope = Depends(get_scope), db: AsyncIOMotorDatabase = Depends(get_db)):
    return ok(await assessments.get_batch(db, scope, batch_id))


@assessments_router.patch("/{batch_id}")
async def update_meta(
    batch_id: str,
    payload: AssessmentMetaUpdate,
    scope: ActorScope = Depends(get_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return ok(await assessments.update_batch_meta(db, scope, batch_id, payload))


@assessments_router.put("/{batch_id}/marks")
async def update_marks(
    batch_id: str,
    payload: AssessmentMarksUpdate,
    scope: ActorScope = Depends(get_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return ok(await assessments.update_batch_marks(db, scope, batch_id, payload.entries))


@assessments_router.delete("/{batch_id}")
async def delete_batch(
    batch_id: str, scope: ActorScope = Depends(get_scope), db: AsyncIOMotorDatabase = Depends(get_db)
):
    deleted = await assessments.delete_batch(db, scope, batch_id)
    return ok(message="Assessment deleted", deleted=deleted)


@assessments_router.delete("/{batch_id}/student/{student_id}")
async def delete_row(
    batch_id: str,
    student_id: str,
    scope: ActorScope = Depends(get_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    batch_removed = await assessments.delete_batch_row(db, scope, batch_id, student_id)
    message = "Student removed; batch had no rows left and was deleted" if batch_removed else "Student removed"
    return ok(message=message, batch_deleted=batch_removed)


@assessments_router.get("/{batch_id}/export")
async def export_batch(
    batch_id: str,
    format: str = Query("xlsx"),
    scope: ActorScope = Depends(get_scope),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    _, course = await assessments.load_batch(db, scope, batch_id, Action.READ)
    batch = await assessments.batch_view(db, batch_id)
    safe_title = "".join(ch if ch.isalnum() else "_" for ch in batch["meta"].get("title") or "assessment")
    if format in ("xlsx", "excel"):
        content = exports.generate_batch_excel(batch, course)
        filename = f"{safe_title}.xlsx"
        media_type = exports.EXCEL_MEDIA_TYPE
    elif format == "pdf":
        content = exports.generate_batch_pdf(batch, course)
        filename = f"{safe_title}.pdf"
        media_type = exports.PDF_MEDIA_TYPE
    else:
        raise ValidationError("format must be xlsx or pdf")
    headers = {"Content-Disposition": f"attachment; filename={filename}"}
    return StreamingResponse(io.BytesIO(content), media_type=media_type, headers=headers)
