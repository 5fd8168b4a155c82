from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.orm import Session

from coursework.core.clock import Clock, get_clock
from coursework.core.current_user import Identity
from coursework.core.deps import get_blob_store, get_db, read_upload
from coursework.core.errors import MissingField, NotAssigned
from coursework.core.permissions import require_staff, require_student, require_teacher
from coursework.routers.tasks import owned_task
from coursework.schemas.submission import SubmissionGradeUpdate, SubmissionRead
from coursework.services import submission_service, task_service
from coursework.services.content_store import BlobStore

router = APIRouter()


def _payload(file: UploadFile):
    payload = read_upload(file)
    if payload is None:
        raise MissingField("a file is required")
    return payload


@router.post(
    "/tasks/{task_id}/submission",
    response_model=SubmissionRead,
    status_code=status.HTTP_201_CREATED,
)
def submit(
    task_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    clock: Clock = Depends(get_clock),
    me: Identity = Depends(require_student),
):
    now = clock()
    sub = submission_service.submit(
        db, blobs, task_id=task_id, student_id=me.subject_id, upload=_payload(file), now=now
    )
    return submission_service.submission_view(sub, sub.task, now)


@router.put("/tasks/{task_id}/submission", response_model=SubmissionRead)
def replace(
    task_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    clock: Clock = Depends(get_clock),
    me: Identity = Depends(require_student),
):
    now = clock()
    sub = submission_service.replace(
        db, blobs, task_id=task_id, student_id=me.subject_id, upload=_payload(file), now=now
    )
    return submission_service.submission_view(sub, sub.task, now)


@router.delete("/tasks/{task_id}/submission", response_model=SubmissionRead)
def unsubmit(
    task_id: int,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    clock: Clock = Depends(get_clock),
    me: Identity = Depends(require_student),
):
    now = clock()
    sub = submission_service.unsubmit(db, blobs, task_id=task_id, student_id=me.subject_id, now=now)
    return submission_service.submission_view(sub, sub.task, now)


@router.get("/tasks/{task_id}/submission", response_model=SubmissionRead)
def my_submission(
    task_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    me: Identity = Depends(require_student),
):
    task = task_service.get_task(db, task_id)
    sub = submission_service.get_submission(db, task_id, me.subject_id)
    if sub is None and not task_service.is_in_audience(db, task, me.subject_id):
        raise NotAssigned(f"student {me.subject_id} is not assigned to task {task_id}")
    return submission_service.submission_view(sub, task, clock(), student_id=me.subject_id)


@router.get("/tasks/{task_id}/submissions", response_model=list[SubmissionRead])
def task_roster(
    task_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    me: Identity = Depends(require_staff),
):
    task = owned_task(db, task_id, me)
    return submission_service.roster_for_task(db, task, clock())


@router.patch("/submissions/{submission_id}/grade", response_model=SubmissionRead)
def grade_submission(
    submission_id: int,
    payload: SubmissionGradeUpdate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    me: Identity = Depends(require_teacher),
):
    sub = submission_service.get_submission_by_id(db, submission_id)
    owned_task(db, sub.task_id, me)

    now = clock()
    sub = submission_service.grade(
        db, submission_id=submission_id, grade=payload.grade, feedback=payload.feedback, now=now
    )
    return submission_service.submission_view(sub, sub.task, now)
