from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class KindProgress(BaseModel):
    kind: str
    total: int
    completed: int
    pending: int
    overdue: int


class UpcomingTask(BaseModel):
    task_id: int
    kind: str
    title: str
    due_at: datetime
    status: str
    submission_id: Optional[int] = None


class StudentDashboard(BaseModel):
    total_tasks: int
    completed_tasks: int
    completion_rate: int
    average_grade: int
    by_kind: list[KindProgress]
    upcoming: list[UpcomingTask]


class KindWorkload(BaseModel):
    kind: str
    tasks: int
    pending_grading: int


class PendingSubmission(BaseModel):
    submission_id: int
    task_id: int
    task_title: str
    kind: str
    student_id: int
    student_email: str
    student_name: Optional[str] = None
    submitted_at: Optional[datetime] = None


class RosterStudent(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None

    class Config:
        from_attributes = True


class TeacherDashboard(BaseModel):
    total_students: int
    total_tasks: int
    by_kind: list[KindWorkload]
    pending_grading: int
    total_submissions: int
    graded_submissions: int
    average_class_grade: int
    recent_submissions: list[PendingSubmission]
    students: list[RosterStudent]
