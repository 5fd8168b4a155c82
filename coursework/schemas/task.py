from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from coursework.core.config import TITLE_MAX_LENGTH


class TaskRead(BaseModel):
    id: int
    kind: str
    owner_id: int
    title: str
    description: Optional[str] = None
    due_at: Optional[datetime] = None
    total_points: float
    document_id: Optional[str] = None
    document_name: Optional[str] = None
    document_type: Optional[str] = None
    audience_mode: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TaskDetail(TaskRead):
    student_ids: list[int] = []


class TaskUpdate(BaseModel):
    # omitted fields are left alone
    title: Optional[str] = Field(default=None, min_length=1, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = None
    due_at: Optional[datetime] = None
    total_points: Optional[float] = None
    student_ids: Optional[list[int]] = None


class TaskDeletionRead(BaseModel):
    task_id: int
    blobs_deleted: int
    blobs_absent: int
    blobs_failed: int

    class Config:
        from_attributes = True
