"""Submission workflow: submit, unsubmit, replace and grade.

Every mutation is a read-check-write on the single (task, student) record
finished by one commit. The record carries a version counter, so if another
request changed the same pair in between, the UPDATE matches no row and the
whole operation fails with ConcurrentModification. Different pairs never
contend.

Write order is blob first, record second. A storage failure therefore leaves
the record untouched, and a record failure releases the blob it just wrote.
"""
import logging
import math
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from coursework.core.config import BLOB_IO_TIMEOUT_SECONDS
from coursework.core.errors import (
    AlreadySubmitted,
    CannotReplaceGraded,
    CannotUnsubmitGraded,
    ConcurrentModification,
    GradeOutOfRange,
    NotAssigned,
    NotSubmitted,
    SubmissionNotFound,
)
from coursework.models.submission import Submission
from coursework.models.task import Task
from coursework.services.content_store import BlobStore, release_blob
from coursework.services.status import SubmissionStatus, late_by_minutes, status_of
from coursework.services.task_service import get_task, is_in_audience, resolve_audience
from coursework.services.upload_policy import UploadPayload, check_submission_upload

logger = logging.getLogger(__name__)


def get_submission(db: Session, task_id: int, student_id: int) -> Optional[Submission]:
    return (
        db.query(Submission)
        .filter(Submission.task_id == task_id, Submission.student_id == student_id)
        .first()
    )


def get_submission_by_id(db: Session, submission_id: int) -> Submission:
    sub = db.query(Submission).filter(Submission.id == submission_id).first()
    if not sub:
        raise SubmissionNotFound(f"submission {submission_id} not found")
    return sub


def _commit(db: Session, action: str, task_id: int, student_id: int) -> None:
    try:
        db.commit()
    except (StaleDataError, IntegrityError) as exc:
        db.rollback()
        logger.warning("%s lost a race on task %s student %s", action, task_id, student_id)
        raise ConcurrentModification(
            f"cannot {action}: the submission was changed by another request, reload and retry"
        ) from exc
    except Exception:
        db.rollback()
        raise


def _store_submitted_blob(
    blobs: BlobStore, task: Task, student_id: int, upload: UploadPayload
) -> str:
    return blobs.store(
        upload.data,
        upload.media_type,
        upload.filename,
        metadata={
            "task_id": task.id,
            "kind": task.kind,
            "student_id": student_id,
            "purpose": "submission",
        },
        timeout=BLOB_IO_TIMEOUT_SECONDS,
    )


def submit(
    db: Session,
    blobs: BlobStore,
    *,
    task_id: int,
    student_id: int,
    upload: UploadPayload,
    now: datetime,
) -> Submission:
    task = get_task(db, task_id)
    if not is_in_audience(db, task, student_id):
        raise NotAssigned(f"student {student_id} is not assigned to task {task_id}")

    sub = get_submission(db, task_id, student_id)
    if sub is not None and sub.is_submitted:
        current = status_of(sub, task, now)
        raise AlreadySubmitted(
            f"cannot submit: already submitted (status {current.value}); replace or unsubmit instead",
            current_status=current.value,
        )

    # rejected uploads never reach the store
    check_submission_upload(task.kind, upload)
    blob_id = _store_submitted_blob(blobs, task, student_id, upload)

    if sub is None:
        sub = Submission(task_id=task_id, student_id=student_id)
        db.add(sub)

    sub.is_submitted = True
    sub.submitted_at = now
    sub.document_id = blob_id
    sub.document_name = upload.filename
    sub.document_type = upload.media_type

    # a fresh submission always starts ungraded
    sub.grade = None
    sub.feedback = None
    sub.graded_at = None

    try:
        _commit(db, "submit", task_id, student_id)
    except Exception:
        release_blob(blobs, blob_id, f"submit rolled back for task {task_id}")
        raise

    db.refresh(sub)
    logger.info(
        "student %s submitted task %s (%s)",
        student_id,
        task_id,
        status_of(sub, task, now).value,
    )
    return sub


def unsubmit(
    db: Session,
    blobs: BlobStore,
    *,
    task_id: int,
    student_id: int,
    now: datetime,
) -> Submission:
    task = get_task(db, task_id)
    sub = get_submission(db, task_id, student_id)
    current = status_of(sub, task, now)

    if sub is None or not sub.is_submitted:
        raise NotSubmitted(
            f"cannot unsubmit: nothing has been submitted (status {current.value})",
            current_status=current.value,
        )
    if sub.grade is not None:
        raise CannotUnsubmitGraded(
            "cannot unsubmit: submission already graded", current_status=current.value
        )

    old_blob = sub.document_id

    # the record stays for the audit trail, only the submission is withdrawn
    sub.is_submitted = False
    sub.submitted_at = None
    sub.document_id = None
    sub.document_name = None
    sub.document_type = None

    _commit(db, "unsubmit", task_id, student_id)

    release_blob(blobs, old_blob, f"unsubmit of task {task_id} by student {student_id}")
    db.refresh(sub)
    logger.info("student %s unsubmitted task %s", student_id, task_id)
    return sub


def replace(
    db: Session,
    blobs: BlobStore,
    *,
    task_id: int,
    student_id: int,
    upload: UploadPayload,
    now: datetime,
) -> Submission:
    task = get_task(db, task_id)
    sub = get_submission(db, task_id, student_id)
    current = status_of(sub, task, now)

    if sub is None or not sub.is_submitted:
        raise NotSubmitted(
            f"cannot replace: nothing has been submitted (status {current.value}); submit instead",
            current_status=current.value,
        )
    if sub.grade is not None:
        raise CannotReplaceGraded(
            "cannot replace: submission already graded", current_status=current.value
        )

    check_submission_upload(task.kind, upload)
    new_blob = _store_submitted_blob(blobs, task, student_id, upload)
    old_blob = sub.document_id

    sub.document_id = new_blob
    sub.document_name = upload.filename
    sub.document_type = upload.media_type
    sub.submitted_at = now

    try:
        _commit(db, "replace", task_id, student_id)
    except Exception:
        release_blob(blobs, new_blob, f"replace rolled back for task {task_id}")
        raise

    release_blob(blobs, old_blob, f"replaced submission on task {task_id}")
    db.refresh(sub)
    logger.info("student %s replaced submission on task %s", student_id, task_id)
    return sub


def grade(
    db: Session,
    *,
    submission_id: int,
    grade: float,
    feedback: Optional[str] = None,
    now: datetime,
) -> Submission:
    sub = get_submission_by_id(db, submission_id)
    task = sub.task

    # NaN slips through plain comparisons
    if grade is None or not math.isfinite(grade) or grade < 0 or grade > task.total_points:
        raise GradeOutOfRange(f"grade must be between 0 and {task.total_points:g}")

    if not sub.is_submitted:
        current = status_of(sub, task, now)
        raise NotSubmitted(
            f"cannot grade: nothing has been submitted (status {current.value})",
            current_status=current.value,
        )

    # re-grading simply overwrites
    sub.grade = float(grade)
    sub.feedback = feedback or None
    sub.graded_at = now

    _commit(db, "grade", sub.task_id, sub.student_id)

    db.refresh(sub)
    logger.info("graded submission %s on task %s: %g/%g", sub.id, task.id, sub.grade, task.total_points)
    return sub


def submission_view(sub: Optional[Submission], task: Task, now: datetime, student_id: Optional[int] = None) -> dict:
    """Flatten a record (or its absence) with the derived fields attached."""
    status = status_of(sub, task, now)
    submitted_at = sub.submitted_at if sub else None
    return {
        "id": sub.id if sub else None,
        "task_id": task.id,
        "student_id": sub.student_id if sub else student_id,
        "is_submitted": bool(sub.is_submitted) if sub else False,
        "document_id": sub.document_id if sub else None,
        "document_name": sub.document_name if sub else None,
        "document_type": sub.document_type if sub else None,
        "submitted_at": submitted_at,
        "grade": sub.grade if sub else None,
        "feedback": sub.feedback if sub else None,
        "graded_at": sub.graded_at if sub else None,
        "status": status.value,
        "is_late": status == SubmissionStatus.SUBMITTED_LATE
        or (status == SubmissionStatus.GRADED and late_by_minutes(submitted_at, task.due_at) is not None),
        "late_by_minutes": late_by_minutes(submitted_at, task.due_at),
    }


def list_submissions_for_task(db: Session, task: Task) -> list[Submission]:
    return (
        db.query(Submission)
        .filter(Submission.task_id == task.id)
        .order_by(Submission.student_id.asc())
        .all()
    )


def roster_for_task(db: Session, task: Task, now: datetime) -> list[dict]:
    """One row per audience member, plus anyone who still holds a record."""
    subs = {s.student_id: s for s in list_submissions_for_task(db, task)}
    students = resolve_audience(db, task) | set(subs)
    return [submission_view(subs.get(sid), task, now, student_id=sid) for sid in sorted(students)]
