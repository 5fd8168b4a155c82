from datetime import timedelta

import pytest

from coursework.services import dashboard_service, submission_service, task_service
from coursework.services.upload_policy import UploadPayload
from tests.conftest import NOW, PDF, PNG


def upload_for(kind):
    if kind == "assignment":
        return UploadPayload(data=PDF, media_type="application/pdf", filename="essay.pdf")
    return UploadPayload(data=PNG, media_type="image/png", filename="answers.png")


def make(db, blobs, owner, students, kind, title, due_at=None, total_points=100):
    return task_service.create_task(
        db,
        blobs,
        owner_id=owner,
        kind=kind,
        title=title,
        due_at=due_at,
        total_points=total_points,
        student_ids=students,
        now=NOW - timedelta(days=7),
    )


def hand_in(db, blobs, task, student, grade=None, when=NOW):
    sub = submission_service.submit(
        db, blobs, task_id=task.id, student_id=student, upload=upload_for(task.kind), now=when
    )
    if grade is not None:
        sub = submission_service.grade(db, submission_id=sub.id, grade=grade, now=when)
    return sub


@pytest.fixture()
def term(db, blobs, users):
    alice, bob = users["alice"], users["bob"]
    a1 = make(db, blobs, users["teacher"], [alice, bob], "assignment", "A1", due_at=NOW - timedelta(days=1))
    a2 = make(db, blobs, users["teacher"], [alice, bob], "assignment", "A2", due_at=NOW + timedelta(days=1))
    q1 = make(db, blobs, users["teacher"], [alice, bob], "quiz", "Q1", due_at=NOW + timedelta(days=3), total_points=50)
    e1 = make(db, blobs, users["teacher"], [], "exam", "E1")

    hand_in(db, blobs, a1, alice, 80, when=NOW - timedelta(days=2))
    hand_in(db, blobs, a2, bob)
    hand_in(db, blobs, q1, alice, 40)
    return a1, a2, q1, e1


def progress(dashboard):
    return {row.kind: (row.total, row.completed, row.pending, row.overdue) for row in dashboard.by_kind}


def test_student_dashboard_counts(db, users, term):
    board = dashboard_service.student_dashboard(db, users["alice"], NOW)

    assert progress(board) == {
        "assignment": (2, 1, 1, 0),
        "quiz": (1, 1, 0, 0),
        "exam": (1, 0, 1, 0),
    }
    assert (board.total_tasks, board.completed_tasks, board.completion_rate) == (4, 2, 50)
    # 80/100 and 40/50
    assert board.average_grade == 80


def test_overdue_work_is_counted_separately(db, users, term):
    board = dashboard_service.student_dashboard(db, users["bob"], NOW)

    assert progress(board)["assignment"] == (2, 1, 0, 1)
    assert board.completion_rate == 25
    assert board.average_grade == 0


def test_upcoming_lists_next_due_with_status(db, users, term):
    _, a2, q1, _ = term

    upcoming = dashboard_service.student_dashboard(db, users["alice"], NOW).upcoming

    assert [(u.task_id, u.status) for u in upcoming] == [(a2.id, "NOT_SUBMITTED"), (q1.id, "GRADED")]
    # explicit assignees hold a pending record from the start
    assert upcoming[0].submission_id is not None


def test_upcoming_is_capped(db, blobs, users):
    for day in range(7, 0, -1):
        make(db, blobs, users["teacher"], [users["alice"]], "assignment", f"Day {day}", due_at=NOW + timedelta(days=day))

    upcoming = dashboard_service.student_dashboard(db, users["alice"], NOW).upcoming

    assert [u.title for u in upcoming] == ["Day 1", "Day 2", "Day 3", "Day 4", "Day 5"]


def test_empty_student_dashboard(db, users):
    board = dashboard_service.student_dashboard(db, users["carol"], NOW)

    assert (board.total_tasks, board.completion_rate, board.average_grade) == (0, 0, 0)
    assert board.upcoming == []


def test_teacher_dashboard(db, users, term):
    _, a2, _, _ = term

    board = dashboard_service.teacher_dashboard(db, users["teacher"])

    assert (board.total_students, board.total_tasks) == (2, 4)
    assert {row.kind: (row.tasks, row.pending_grading) for row in board.by_kind} == {
        "assignment": (2, 1),
        "quiz": (1, 0),
        "exam": (1, 0),
    }
    assert (board.pending_grading, board.total_submissions, board.graded_submissions) == (1, 3, 2)
    # assignments 80, quizzes 80, no exam grades yet
    assert board.average_class_grade == 90
    assert [(r.task_id, r.student_email) for r in board.recent_submissions] == [(a2.id, "bob@example.com")]
    assert [s.email for s in board.students] == ["alice@example.com", "bob@example.com"]


def test_recent_submissions_newest_first_and_capped(db, blobs, users):
    for hours in range(6):
        task = make(db, blobs, users["teacher"], [users["alice"]], "assignment", f"Essay {hours}")
        hand_in(db, blobs, task, users["alice"], when=NOW - timedelta(hours=hours))

    recent = dashboard_service.teacher_dashboard(db, users["teacher"]).recent_submissions

    assert [r.task_title for r in recent] == ["Essay 0", "Essay 1", "Essay 2", "Essay 3", "Essay 4"]
    assert recent[0].student_name == "Alice"


def test_teacher_dashboard_ignores_other_classes(db, blobs, users, term):
    board = dashboard_service.teacher_dashboard(db, users["other_teacher"])

    assert (board.total_students, board.total_tasks, board.pending_grading) == (1, 0, 0)
    assert board.average_class_grade == 100
    assert board.recent_submissions == []
