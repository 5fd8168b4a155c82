from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from coursework.core.clock import Clock, get_clock
from coursework.core.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from coursework.core.current_user import Identity, get_identity
from coursework.core.deps import get_blob_store, get_db, read_upload
from coursework.core.errors import MissingField, NotAssigned, PermissionDenied
from coursework.core.permissions import require_staff, require_teacher
from coursework.models.task import Task, TaskKind
from coursework.schemas.task import TaskDeletionRead, TaskDetail, TaskRead, TaskUpdate
from coursework.services import task_service
from coursework.services.content_store import BlobStore

router = APIRouter()


def _detail(db: Session, task: Task) -> TaskDetail:
    return TaskDetail(
        **TaskRead.model_validate(task).model_dump(),
        student_ids=sorted(task_service.resolve_audience(db, task)),
    )


def owned_task(db: Session, task_id: int, identity: Identity) -> Task:
    """Load a task the caller may manage: its owner, or any administrator."""
    task = task_service.get_task(db, task_id)
    if not identity.is_administrator and task.owner_id != identity.subject_id:
        raise PermissionDenied(f"task {task_id} belongs to another teacher")
    return task


@router.post(
    "",
    response_model=TaskDetail,
    status_code=status.HTTP_201_CREATED,
)
def create_task(
    kind: TaskKind = Form(...),
    title: str = Form(...),
    description: Optional[str] = Form(None),
    due_at: Optional[datetime] = Form(None),
    total_points: Optional[float] = Form(None),
    student_ids: list[int] = Form(default=[]),
    document: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    clock: Clock = Depends(get_clock),
    me: Identity = Depends(require_teacher),
):
    task = task_service.create_task(
        db,
        blobs,
        owner_id=me.subject_id,
        kind=kind,
        title=title,
        description=description,
        due_at=due_at,
        total_points=total_points,
        student_ids=student_ids,
        document=read_upload(document),
        now=clock(),
    )
    return _detail(db, task)


@router.get("", response_model=list[TaskRead])
def list_tasks(
    kind: Optional[TaskKind] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    db: Session = Depends(get_db),
    me: Identity = Depends(get_identity),
):
    if me.is_teacher:
        return task_service.list_tasks_for_owner(db, me.subject_id, kind=kind, skip=skip, limit=limit)
    if me.is_student:
        return task_service.list_tasks_for_student(db, me.subject_id, kind=kind, skip=skip, limit=limit)
    return task_service.list_all_tasks(db, kind=kind, skip=skip, limit=limit)


@router.get("/{task_id}", response_model=TaskDetail)
def get_task(
    task_id: int,
    db: Session = Depends(get_db),
    me: Identity = Depends(get_identity),
):
    task = task_service.get_task(db, task_id)
    if me.is_student:
        if not task_service.is_in_audience(db, task, me.subject_id):
            raise NotAssigned(f"student {me.subject_id} is not assigned to task {task_id}")
    elif me.is_teacher and task.owner_id != me.subject_id:
        raise PermissionDenied(f"task {task_id} belongs to another teacher")
    return _detail(db, task)


@router.patch("/{task_id}", response_model=TaskDetail)
def update_task(
    task_id: int,
    payload: TaskUpdate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    me: Identity = Depends(require_teacher),
):
    task = owned_task(db, task_id, me)
    task = task_service.update_task(db, task, now=clock(), **payload.model_dump(exclude_unset=True))
    return _detail(db, task)


@router.put("/{task_id}/document", response_model=TaskDetail)
def replace_task_document(
    task_id: int,
    document: UploadFile = File(...),
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    clock: Clock = Depends(get_clock),
    me: Identity = Depends(require_teacher),
):
    task = owned_task(db, task_id, me)
    payload = read_upload(document)
    if payload is None:
        raise MissingField("a document file is required")
    task = task_service.replace_task_document(db, blobs, task, payload, now=clock())
    return _detail(db, task)


@router.delete("/{task_id}", response_model=TaskDeletionRead)
def delete_task(
    task_id: int,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    me: Identity = Depends(require_staff),
):
    task = owned_task(db, task_id, me)
    return task_service.delete_task(db, blobs, task)
