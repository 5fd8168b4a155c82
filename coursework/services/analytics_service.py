"""Reporting metrics derived from task and submission records.

Everything is read-only and recomputed per request. Reports read several
tables without a shared snapshot, so a grade committed mid-aggregation may or
may not be reflected; report volumes are small enough that no caching is
needed.

``owner_id`` scopes a report to one teacher's tasks; None means all tasks.
"""
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from coursework.core.clock import as_utc
from coursework.core.config import DEFAULT_ACTIVITY_WEEKS, MAX_ACTIVITY_WEEKS
from coursework.core.errors import ValidationError
from coursework.models.submission import Submission
from coursework.models.task import Task, TaskKind
from coursework.models.user import User
from coursework.schemas.analytics import (
    QuizTopicPerformanceRow,
    TeacherAnalytics,
    TimelinessReport,
    TimelinessRow,
    WeeklyActivityRow,
)
from coursework.services.status import Timeliness, classify_timeliness
from coursework.services.task_service import resolve_audience


def _percent(part: int, total: int) -> float:
    # rounded independently; the three buckets may not sum to exactly 100
    if total <= 0:
        return 0.0
    return round(part / total * 100, 1)


def quiz_performance_by_topic(db: Session, owner_id: Optional[int] = None) -> list[QuizTopicPerformanceRow]:
    """Graded quiz results grouped by exact quiz title.

    Quizzes that share a title are one topic even across teachers; the
    average is taken over all their graded submissions.
    """
    q = (
        db.query(
            Task.title.label("title"),
            Task.total_points.label("total_points"),
            Submission.grade.label("grade"),
            User.email.label("teacher_email"),
        )
        .join(Submission, Submission.task_id == Task.id)
        .join(User, User.id == Task.owner_id)
        .filter(
            Task.kind == TaskKind.QUIZ.value,
            Submission.is_submitted.is_(True),
            Submission.grade.is_not(None),
        )
    )
    if owner_id is not None:
        q = q.filter(Task.owner_id == owner_id)

    percents: dict[str, list[float]] = defaultdict(list)
    teachers: dict[str, set[str]] = defaultdict(set)
    points: dict[str, float] = {}
    for r in q.all():
        percents[r.title].append(r.grade / r.total_points * 100)
        teachers[r.title].add(r.teacher_email)
        points[r.title] = max(points.get(r.title, 0.0), r.total_points)

    rows = [
        QuizTopicPerformanceRow(
            topic=title,
            submission_count=len(values),
            average_percent=round(sum(values) / len(values), 1),
            total_points=points[title],
            teachers=sorted(teachers[title]),
        )
        for title, values in percents.items()
    ]
    rows.sort(key=lambda row: (-row.average_percent, row.topic))
    return rows


def submission_timeliness(
    db: Session,
    now: datetime,
    owner_id: Optional[int] = None,
    kind=None,
) -> TimelinessReport:
    """ON_TIME / LATE / NOT_SUBMITTED counts over every dated task.

    Each audience member of each task is one expected submission. Pairs that
    are neither submitted nor past due do not count yet.
    """
    q = db.query(Task).filter(Task.due_at.is_not(None))
    if owner_id is not None:
        q = q.filter(Task.owner_id == owner_id)
    if kind is not None:
        q = q.filter(Task.kind == TaskKind(kind).value)
    tasks = q.all()

    subs: dict[int, dict[int, Submission]] = defaultdict(dict)
    if tasks:
        for s in db.query(Submission).filter(Submission.task_id.in_([t.id for t in tasks])).all():
            subs[s.task_id][s.student_id] = s

    counts = {bucket: 0 for bucket in Timeliness}
    for task in tasks:
        by_student = subs[task.id]
        for student_id in resolve_audience(db, task) | set(by_student):
            s = by_student.get(student_id)
            bucket = classify_timeliness(
                is_submitted=bool(s and s.is_submitted),
                submitted_at=s.submitted_at if s else None,
                due_at=task.due_at,
                now=now,
            )
            if bucket is not None:
                counts[bucket] += 1

    total = sum(counts.values())
    return TimelinessReport(
        on_time=counts[Timeliness.ON_TIME],
        late=counts[Timeliness.LATE],
        not_submitted=counts[Timeliness.NOT_SUBMITTED],
        total=total,
        rows=[
            TimelinessRow(category=bucket.value, count=counts[bucket], percent=_percent(counts[bucket], total))
            for bucket in Timeliness
        ],
    )


def _week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


def weekly_content_activity(
    db: Session,
    now: datetime,
    weeks: int = DEFAULT_ACTIVITY_WEEKS,
    owner_id: Optional[int] = None,
) -> list[WeeklyActivityRow]:
    """Tasks created per ISO week (Monday start, UTC) over the trailing weeks.

    Always returns exactly ``weeks`` rows, oldest first and ending with the
    current week; weeks without activity are zero rows.
    """
    if weeks < 1 or weeks > MAX_ACTIVITY_WEEKS:
        raise ValidationError(f"weeks must be between 1 and {MAX_ACTIVITY_WEEKS}")

    first = _week_start(as_utc(now).date()) - timedelta(weeks=weeks - 1)
    window_start = datetime.combine(first, time.min, tzinfo=timezone.utc)

    counts = [{kind: 0 for kind in TaskKind} for _ in range(weeks)]

    q = db.query(Task.kind, Task.created_at).filter(Task.created_at >= window_start)
    if owner_id is not None:
        q = q.filter(Task.owner_id == owner_id)

    for r in q.all():
        created = as_utc(r.created_at).date()
        index = (_week_start(created) - first).days // 7
        if 0 <= index < weeks:
            counts[index][TaskKind(r.kind)] += 1

    rows: list[WeeklyActivityRow] = []
    for index, bucket in enumerate(counts):
        start = first + timedelta(weeks=index)
        iso_year, iso_week, _ = start.isocalendar()
        rows.append(
            WeeklyActivityRow(
                week=f"{iso_year}-W{iso_week:02d}",
                week_start=start,
                week_end=start + timedelta(days=6),
                assignments=bucket[TaskKind.ASSIGNMENT],
                quizzes=bucket[TaskKind.QUIZ],
                exams=bucket[TaskKind.EXAM],
                total=sum(bucket.values()),
            )
        )
    return rows


def teacher_analytics(
    db: Session,
    now: datetime,
    owner_id: Optional[int] = None,
    weeks: int = DEFAULT_ACTIVITY_WEEKS,
) -> TeacherAnalytics:
    return TeacherAnalytics(
        quiz_performance=quiz_performance_by_topic(db, owner_id=owner_id),
        submission_timeliness=submission_timeliness(db, now, owner_id=owner_id),
        weekly_activity=weekly_content_activity(db, now, weeks=weeks, owner_id=owner_id),
    )
