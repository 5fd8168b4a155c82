from datetime import datetime

from sqlalchemy.orm import Session

from coursework.core.clock import as_utc
from coursework.core.config import RECENT_PENDING_LIMIT, UPCOMING_TASKS_LIMIT
from coursework.models.submission import Submission
from coursework.models.task import Task, TaskKind
from coursework.models.user import User
from coursework.schemas.dashboard import (
    KindProgress,
    KindWorkload,
    PendingSubmission,
    RosterStudent,
    StudentDashboard,
    TeacherDashboard,
    UpcomingTask,
)
from coursework.services.grade_stats_service import percent_of, round_half_up, teacher_grade_stats
from coursework.services.status import SubmissionStatus, status_of
from coursework.services.task_service import student_tasks_query, task_order_by

_DONE = {SubmissionStatus.SUBMITTED_ON_TIME, SubmissionStatus.SUBMITTED_LATE, SubmissionStatus.GRADED}


def student_dashboard(db: Session, student_id: int, now: datetime) -> StudentDashboard:
    """Progress counts per kind, the average grade and the next tasks due."""
    tasks = student_tasks_query(db, student_id).order_by(*task_order_by()).all()
    subs = {
        s.task_id: s
        for s in db.query(Submission).filter(Submission.student_id == student_id).all()
    }

    progress = {kind: KindProgress(kind=kind.value, total=0, completed=0, pending=0, overdue=0) for kind in TaskKind}
    percents: list[float] = []
    upcoming: list[UpcomingTask] = []

    for task in tasks:
        s = subs.get(task.id)
        current = status_of(s, task, now)
        row = progress[TaskKind(task.kind)]
        row.total += 1
        if current in _DONE:
            row.completed += 1
        elif current == SubmissionStatus.DUE_UNSUBMITTED:
            row.overdue += 1
        else:
            row.pending += 1

        if current == SubmissionStatus.GRADED:
            percents.append(percent_of(s.grade, task.total_points))

        # tasks come sorted by due date, so the first ones still ahead are the next due
        if task.due_at is not None and as_utc(task.due_at) >= as_utc(now) and len(upcoming) < UPCOMING_TASKS_LIMIT:
            upcoming.append(
                UpcomingTask(
                    task_id=task.id,
                    kind=task.kind,
                    title=task.title,
                    due_at=as_utc(task.due_at),
                    status=current.value,
                    submission_id=s.id if s is not None else None,
                )
            )

    total = len(tasks)
    completed = sum(row.completed for row in progress.values())
    return StudentDashboard(
        total_tasks=total,
        completed_tasks=completed,
        completion_rate=int(round_half_up(completed / total * 100)) if total else 0,
        average_grade=int(round_half_up(sum(percents) / len(percents))) if percents else 0,
        by_kind=list(progress.values()),
        upcoming=upcoming,
    )


def teacher_dashboard(db: Session, teacher_id: int) -> TeacherDashboard:
    """Workload summary over the teacher's own tasks and roster."""
    students = (
        db.query(User)
        .filter(User.teacher_id == teacher_id, User.role == "student")
        .order_by(User.id)
        .all()
    )
    tasks = db.query(Task).filter(Task.owner_id == teacher_id).all()
    kind_of = {t.id: t.kind for t in tasks}

    subs = []
    if tasks:
        subs = db.query(Submission).filter(Submission.task_id.in_(list(kind_of))).all()

    workload = {kind: KindWorkload(kind=kind.value, tasks=0, pending_grading=0) for kind in TaskKind}
    for task in tasks:
        workload[TaskKind(task.kind)].tasks += 1

    submitted = [s for s in subs if s.is_submitted]
    ungraded = [s for s in submitted if s.grade is None]
    for s in ungraded:
        workload[TaskKind(kind_of[s.task_id])].pending_grading += 1

    recent = (
        db.query(Submission, Task, User)
        .join(Task, Task.id == Submission.task_id)
        .join(User, User.id == Submission.student_id)
        .filter(
            Task.owner_id == teacher_id,
            Submission.is_submitted.is_(True),
            Submission.grade.is_(None),
        )
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
        .limit(RECENT_PENDING_LIMIT)
        .all()
    )

    return TeacherDashboard(
        total_students=len(students),
        total_tasks=len(tasks),
        by_kind=list(workload.values()),
        pending_grading=len(ungraded),
        total_submissions=len(submitted),
        graded_submissions=sum(1 for s in submitted if s.grade is not None),
        average_class_grade=teacher_grade_stats(db, teacher_id).class_average,
        recent_submissions=[
            PendingSubmission(
                submission_id=s.id,
                task_id=t.id,
                task_title=t.title,
                kind=t.kind,
                student_id=u.id,
                student_email=u.email,
                student_name=u.full_name,
                submitted_at=as_utc(s.submitted_at),
            )
            for s, t, u in recent
        ],
        students=[RosterStudent.model_validate(u) for u in students],
    )
