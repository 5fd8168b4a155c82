import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from coursework.core.clock import as_utc
from coursework.core.config import (
    BLOB_IO_TIMEOUT_SECONDS,
    DEFAULT_PAGE_LIMIT,
    DEFAULT_TOTAL_POINTS,
    MAX_TOTAL_POINTS,
    TITLE_MAX_LENGTH,
)
from coursework.core.errors import (
    MissingField,
    PermissionDenied,
    StorageFailure,
    TaskNotFound,
    ValidationError,
)
from coursework.models.submission import Submission
from coursework.models.task import AudienceMode, Task, TaskAssignee, TaskKind
from coursework.models.user import User
from coursework.services.content_store import BlobStore, DeleteResult, release_blob
from coursework.services.upload_policy import UploadPayload, check_attachment_upload, policy_for

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass
class TaskDeletionResult:
    task_id: int
    blobs_deleted: int = 0
    blobs_absent: int = 0
    blobs_failed: int = 0


def task_order_by():
    """
    Task ordering:
    - due_at NULLs last (SQLite-safe)
    - due_at ascending
    - task id ascending (stable tie-break)
    """
    return (
        Task.due_at.is_(None),
        Task.due_at.asc(),
        Task.id.asc(),
    )


def _clean_title(title: Optional[str]) -> str:
    title = (title or "").strip()
    if not title:
        raise MissingField("title is required")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"title must be at most {TITLE_MAX_LENGTH} characters")
    return title


def _check_total_points(total_points: float) -> float:
    if total_points <= 0 or total_points > MAX_TOTAL_POINTS:
        raise ValidationError(f"total_points must be between 1 and {MAX_TOTAL_POINTS}")
    return float(total_points)


def _check_students(db: Session, owner_id: int, student_ids: Iterable[int]) -> list[int]:
    ids = sorted(set(student_ids))
    if not ids:
        return ids

    students = db.query(User).filter(User.id.in_(ids), User.role == "student").all()
    if len(students) != len(ids):
        raise ValidationError("one or more students not found")

    foreign = [s.id for s in students if s.teacher_id != owner_id]
    if foreign:
        raise PermissionDenied(f"students {foreign} are not assigned to this teacher")
    return ids


def get_task(db: Session, task_id: int) -> Task:
    task = db.query(Task).filter(Task.id == task_id).first()
    if not task:
        raise TaskNotFound(f"task {task_id} not found")
    return task


def resolve_audience(db: Session, task: Task) -> set[int]:
    if task.audience_mode == AudienceMode.OWNER_ROSTER.value:
        rows = (
            db.query(User.id)
            .filter(User.teacher_id == task.owner_id, User.role == "student")
            .all()
        )
        return {r.id for r in rows}
    return {a.student_id for a in task.assignees}


def is_in_audience(db: Session, task: Task, student_id: int) -> bool:
    if task.audience_mode == AudienceMode.OWNER_ROSTER.value:
        return (
            db.query(User.id)
            .filter(
                User.id == student_id,
                User.teacher_id == task.owner_id,
                User.role == "student",
            )
            .first()
            is not None
        )
    return (
        db.query(TaskAssignee.id)
        .filter(TaskAssignee.task_id == task.id, TaskAssignee.student_id == student_id)
        .first()
        is not None
    )


def _store_attachment(blobs: BlobStore, kind, document: UploadPayload, owner_id: int) -> str:
    check_attachment_upload(kind, document)
    return blobs.store(
        document.data,
        document.media_type,
        document.filename,
        metadata={"owner_id": owner_id, "kind": TaskKind(kind).value, "purpose": "task_document"},
        timeout=BLOB_IO_TIMEOUT_SECONDS,
    )


def create_task(
    db: Session,
    blobs: BlobStore,
    *,
    owner_id: int,
    kind,
    title: str,
    description: Optional[str] = None,
    due_at: Optional[datetime] = None,
    total_points: Optional[float] = None,
    student_ids: Iterable[int] = (),
    document: Optional[UploadPayload] = None,
    now: datetime,
) -> Task:
    policy = policy_for(kind)
    title = _clean_title(title)
    points = _check_total_points(DEFAULT_TOTAL_POINTS if total_points is None else total_points)

    ids = _check_students(db, owner_id, student_ids)
    mode = policy.audience_mode(ids)
    if mode == AudienceMode.EXPLICIT and not ids:
        raise MissingField("at least one student must be selected")

    document_id = None
    if document is not None:
        document_id = _store_attachment(blobs, policy.kind, document, owner_id)

    task = Task(
        kind=policy.kind.value,
        owner_id=owner_id,
        title=title,
        description=description,
        # SQLite drops the offset, so persist UTC
        due_at=as_utc(due_at),
        total_points=points,
        document_id=document_id,
        document_name=document.filename if document else None,
        document_type=document.media_type if document else None,
        audience_mode=mode.value,
        created_at=now,
        updated_at=now,
    )
    task.assignees = [TaskAssignee(student_id=sid) for sid in ids]
    # pending shells so the roster shows everyone from the start
    task.submissions = [Submission(student_id=sid, is_submitted=False) for sid in ids]
    db.add(task)

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        release_blob(blobs, document_id, "task create rolled back")
        raise

    db.refresh(task)
    logger.info("teacher %s created %s %s (%d students)", owner_id, task.kind, task.id, len(ids))
    return task


def list_tasks_for_owner(
    db: Session,
    owner_id: int,
    kind=None,
    skip: int = 0,
    limit: int = DEFAULT_PAGE_LIMIT,
) -> list[Task]:
    q = db.query(Task).filter(Task.owner_id == owner_id)
    if kind is not None:
        q = q.filter(Task.kind == TaskKind(kind).value)
    return q.order_by(*task_order_by()).offset(skip).limit(limit).all()


def student_tasks_query(db: Session, student_id: int):
    """Every task whose audience includes the student, unordered."""
    student = db.query(User).filter(User.id == student_id).first()
    teacher_id = student.teacher_id if student else None

    explicit = select(TaskAssignee.task_id).where(TaskAssignee.student_id == student_id)
    return db.query(Task).filter(
        or_(
            Task.id.in_(explicit),
            (Task.audience_mode == AudienceMode.OWNER_ROSTER.value) & (Task.owner_id == teacher_id),
        )
    )


def list_tasks_for_student(
    db: Session,
    student_id: int,
    kind=None,
    skip: int = 0,
    limit: int = DEFAULT_PAGE_LIMIT,
) -> list[Task]:
    q = student_tasks_query(db, student_id)
    if kind is not None:
        q = q.filter(Task.kind == TaskKind(kind).value)
    return q.order_by(*task_order_by()).offset(skip).limit(limit).all()


def list_all_tasks(
    db: Session,
    kind=None,
    skip: int = 0,
    limit: int = DEFAULT_PAGE_LIMIT,
) -> list[Task]:
    q = db.query(Task)
    if kind is not None:
        q = q.filter(Task.kind == TaskKind(kind).value)
    return q.order_by(Task.created_at.desc(), Task.id.desc()).offset(skip).limit(limit).all()


def update_task(
    db: Session,
    task: Task,
    *,
    title=_UNSET,
    description=_UNSET,
    due_at=_UNSET,
    total_points=_UNSET,
    student_ids=_UNSET,
    now: datetime,
) -> Task:
    """Partial update; only the arguments that are passed change.

    Editing ``due_at`` reclassifies existing submissions on the next read,
    because status is derived rather than stored.
    """
    if title is not _UNSET:
        task.title = _clean_title(title)
    if description is not _UNSET:
        task.description = description
    if due_at is not _UNSET:
        task.due_at = as_utc(due_at)

    if total_points is not _UNSET and total_points is not None:
        points = _check_total_points(total_points)
        top = (
            db.query(Submission.grade)
            .filter(Submission.task_id == task.id, Submission.grade.is_not(None))
            .order_by(Submission.grade.desc())
            .first()
        )
        if top is not None and top.grade > points:
            raise ValidationError(
                f"total_points {points:g} is below an existing grade of {top.grade:g}"
            )
        task.total_points = points

    if student_ids is not _UNSET and student_ids is not None:
        policy = policy_for(task.kind)
        ids = _check_students(db, task.owner_id, student_ids)
        mode = policy.audience_mode(ids)
        if mode == AudienceMode.EXPLICIT and not ids:
            raise MissingField("at least one student must be selected")

        current = {a.student_id: a for a in task.assignees}
        for sid, assignee in current.items():
            if sid not in ids:
                task.assignees.remove(assignee)

        # removed students keep their submission records for the audit trail
        existing = {s.student_id for s in task.submissions}
        for sid in ids:
            if sid not in current:
                task.assignees.append(TaskAssignee(student_id=sid))
            if sid not in existing:
                task.submissions.append(Submission(student_id=sid, is_submitted=False))
        task.audience_mode = mode.value

    task.updated_at = now

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(task)
    return task


def replace_task_document(
    db: Session,
    blobs: BlobStore,
    task: Task,
    document: UploadPayload,
    *,
    now: datetime,
) -> Task:
    new_id = _store_attachment(blobs, task.kind, document, task.owner_id)
    old_id = task.document_id

    task.document_id = new_id
    task.document_name = document.filename
    task.document_type = document.media_type
    task.updated_at = now

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        release_blob(blobs, new_id, "task document update rolled back")
        raise

    release_blob(blobs, old_id, f"task {task.id} document replaced")
    db.refresh(task)
    return task


def delete_task(db: Session, blobs: BlobStore, task: Task) -> TaskDeletionResult:
    """Delete a task, its submissions and every blob they reference.

    The records go first in one transaction; blob cleanup afterwards is
    best-effort, and failures are counted and logged rather than raised.
    """
    task_id = task.id
    blob_ids = [task.document_id] if task.document_id else []
    blob_ids += [s.document_id for s in task.submissions if s.document_id]

    db.delete(task)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    result = TaskDeletionResult(task_id=task_id)
    for blob_id in blob_ids:
        try:
            outcome = blobs.delete(blob_id)
        except StorageFailure:
            logger.warning("could not delete blob %s of task %s", blob_id, task_id, exc_info=True)
            result.blobs_failed += 1
            continue
        if outcome == DeleteResult.DELETED:
            result.blobs_deleted += 1
        else:
            result.blobs_absent += 1

    logger.info(
        "deleted task %s (blobs deleted=%d absent=%d failed=%d)",
        task_id,
        result.blobs_deleted,
        result.blobs_absent,
        result.blobs_failed,
    )
    return result
