"""Grade statistics for the teacher gradebook and the student progress view.

Grades are compared as percentages of each task's ``total_points``. The
overall average weights the per-kind means by ``GRADE_WEIGHTS``; a kind with
no tasks or nothing graded yet counts as 100 so it cannot drag the average
down.
"""
import math
from collections import defaultdict
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from coursework.core.clock import as_utc
from coursework.core.config import (
    GRADE_WEIGHTS,
    PASSING_PERCENT,
    RECENT_GRADES_LIMIT,
    TOP_TASKS_LIMIT,
)
from coursework.models.submission import Submission
from coursework.models.task import Task, TaskKind
from coursework.models.user import User
from coursework.schemas.grades import (
    GradeBand,
    GradedItem,
    GradeTrendPoint,
    PendingTask,
    StudentGradeStats,
    TaskPerformanceRow,
    TeacherGradeStats,
)
from coursework.services.task_service import student_tasks_query, task_order_by

# (label, lower bound inclusive, upper bound exclusive)
GRADE_BANDS = (
    ("A (90-100)", 90, None),
    ("B (80-89)", 80, 90),
    ("C (70-79)", 70, 80),
    ("F (Below 70)", None, 70),
)


def round_half_up(value: float, digits: int = 0) -> float:
    # round() is banker's rounding; grades round .5 up
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def percent_of(grade: float, total_points: float) -> float:
    return grade * 100 / total_points


def _is_graded(submission: Submission) -> bool:
    return bool(submission.is_submitted) and submission.grade is not None


def _mean(values: list[float]) -> float:
    return sum(values) / len(values)


def weighted_average(percents_by_kind: dict[str, list[float]]) -> int:
    total = 0.0
    for kind, weight in GRADE_WEIGHTS.items():
        values = percents_by_kind.get(kind)
        category = _mean(values) if values else 100
        total += weight * category
    return int(round_half_up(total))


def _band_of(percent: float) -> str:
    for name, low, high in GRADE_BANDS:
        if (low is None or percent >= low) and (high is None or percent < high):
            return name
    return GRADE_BANDS[-1][0]


def _distribution(percents: list[float]) -> list[GradeBand]:
    counts = {name: 0 for name, _, _ in GRADE_BANDS}
    for p in percents:
        counts[_band_of(p)] += 1
    graded = len(percents)
    return [
        GradeBand(
            name=name,
            count=counts[name],
            percent=int(round_half_up(counts[name] / graded * 100)) if graded else 0,
        )
        for name, _, _ in GRADE_BANDS
    ]


def teacher_grade_stats(db: Session, teacher_id: int) -> TeacherGradeStats:
    """Class-wide grade picture over the tasks the teacher owns."""
    students = db.query(User).filter(User.teacher_id == teacher_id, User.role == "student").all()
    tasks = db.query(Task).filter(Task.owner_id == teacher_id).order_by(Task.id).all()
    by_id = {t.id: t for t in tasks}

    subs = []
    if tasks:
        subs = db.query(Submission).filter(Submission.task_id.in_(list(by_id))).all()

    rounded: list[float] = []
    by_kind: dict[str, list[float]] = defaultdict(list)
    by_task: dict[int, list[float]] = defaultdict(list)
    passing: dict[int, bool] = {}
    pending = 0

    for s in subs:
        if s.is_submitted and s.grade is None:
            pending += 1
        if not _is_graded(s):
            continue
        task = by_id[s.task_id]
        raw = percent_of(s.grade, task.total_points)
        pct = round_half_up(raw, 1)
        rounded.append(pct)
        by_kind[task.kind].append(pct)
        by_task[task.id].append(raw)
        passing[s.student_id] = passing.get(s.student_id, False) or raw >= PASSING_PERCENT

    performance = [
        TaskPerformanceRow(
            task_id=task_id,
            title=by_id[task_id].title,
            kind=by_id[task_id].kind,
            average=int(round_half_up(_mean(values))),
            passed=sum(1 for v in values if v >= PASSING_PERCENT),
            total=len(values),
        )
        for task_id, values in by_task.items()
    ]
    performance.sort(key=lambda row: (-row.average, row.task_id))

    passing_students = sum(1 for ok in passing.values() if ok)
    graded_students = len(passing)
    kinds = [t.kind for t in tasks]

    return TeacherGradeStats(
        class_average=weighted_average(by_kind),
        pass_rate=int(round_half_up(passing_students / graded_students * 100)) if graded_students else 0,
        passing_students=passing_students,
        graded_students=graded_students,
        pending_grading=pending,
        distribution=_distribution(rounded),
        performance_by_task=performance[:TOP_TASKS_LIMIT],
        total_students=len(students),
        total_assignments=kinds.count(TaskKind.ASSIGNMENT.value),
        total_quizzes=kinds.count(TaskKind.QUIZ.value),
        total_exams=kinds.count(TaskKind.EXAM.value),
        total_graded=len(rounded),
    )


def _graded_on(s: Submission) -> datetime:
    # graded rows always carry graded_at
    return as_utc(s.graded_at or s.submitted_at)


def student_grade_stats(db: Session, student_id: int) -> StudentGradeStats:
    """One student's averages, trend and outstanding work across every task in their audience."""
    tasks = student_tasks_query(db, student_id).order_by(*task_order_by()).all()
    by_id = {t.id: t for t in tasks}

    subs: dict[int, Submission] = {}
    if tasks:
        for s in (
            db.query(Submission)
            .filter(Submission.student_id == student_id, Submission.task_id.in_(list(by_id)))
            .all()
        ):
            subs[s.task_id] = s

    by_kind: dict[str, list[float]] = defaultdict(list)
    monthly: dict[str, list[float]] = defaultdict(list)
    items: list[GradedItem] = []
    highest: Optional[tuple[float, str]] = None

    for task in tasks:
        s = subs.get(task.id)
        if s is None or not _is_graded(s):
            continue
        raw = percent_of(s.grade, task.total_points)
        pct = round_half_up(raw, 1)
        by_kind[task.kind].append(pct)
        if highest is None or pct > highest[0]:
            highest = (pct, task.title)

        when = _graded_on(s)
        monthly[when.strftime("%Y-%m")].append(pct)
        items.append(
            GradedItem(
                submission_id=s.id,
                task_id=task.id,
                title=task.title,
                kind=task.kind,
                percent=int(round_half_up(raw)),
                date=when,
            )
        )

    # newest first; ties keep task order
    items.sort(key=lambda item: item.date, reverse=True)

    trend = [
        GradeTrendPoint(month=month, average=int(round_half_up(_mean(values))))
        for month, values in sorted(monthly.items())
    ]

    pending = [
        PendingTask(task_id=t.id, title=t.title, kind=t.kind, due_at=t.due_at)
        for t in tasks
        if t.id not in subs or not subs[t.id].is_submitted
    ]

    return StudentGradeStats(
        overall_average=weighted_average(by_kind),
        highest_grade=highest[0] if highest else 0.0,
        highest_grade_item=highest[1] if highest else None,
        completed=len(items),
        total=len(tasks),
        grade_trend=trend,
        recent_grades=items[:RECENT_GRADES_LIMIT],
        pending_tasks=pending,
    )
