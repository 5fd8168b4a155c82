from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class SubmissionRead(BaseModel):
    id: Optional[int] = None
    task_id: int
    student_id: int
    is_submitted: bool
    document_id: Optional[str] = None
    document_name: Optional[str] = None
    document_type: Optional[str] = None
    submitted_at: Optional[datetime] = None
    grade: Optional[float] = None
    feedback: Optional[str] = None
    graded_at: Optional[datetime] = None

    # derived on read, never stored
    status: str
    is_late: bool = False
    late_by_minutes: Optional[int] = None


class SubmissionGradeUpdate(BaseModel):
    grade: float = Field(allow_inf_nan=False)
    feedback: Optional[str] = None
