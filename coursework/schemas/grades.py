from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class GradeBand(BaseModel):
    name: str  # "A (90-100)" ... "F (Below 70)"
    count: int
    percent: int


class TaskPerformanceRow(BaseModel):
    task_id: int
    title: str
    kind: str
    average: int
    passed: int
    total: int


class TeacherGradeStats(BaseModel):
    class_average: int
    pass_rate: int
    passing_students: int
    graded_students: int
    pending_grading: int
    distribution: list[GradeBand]
    performance_by_task: list[TaskPerformanceRow]
    total_students: int
    total_assignments: int
    total_quizzes: int
    total_exams: int
    total_graded: int


class GradeTrendPoint(BaseModel):
    month: str  # "2025-03"
    average: int


class GradedItem(BaseModel):
    submission_id: int
    task_id: int
    title: str
    kind: str
    percent: int
    date: Optional[datetime] = None


class PendingTask(BaseModel):
    task_id: int
    title: str
    kind: str
    due_at: Optional[datetime] = None


class StudentGradeStats(BaseModel):
    overall_average: int
    highest_grade: float
    highest_grade_item: Optional[str] = None
    completed: int
    total: int
    grade_trend: list[GradeTrendPoint]
    recent_grades: list[GradedItem]
    pending_tasks: list[PendingTask]
