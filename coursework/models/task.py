import enum

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from coursework.core.config import DEFAULT_TOTAL_POINTS
from coursework.db.base_class import Base


class TaskKind(str, enum.Enum):
    ASSIGNMENT = "assignment"
    QUIZ = "quiz"
    EXAM = "exam"


class AudienceMode(str, enum.Enum):
    EXPLICIT = "explicit"
    OWNER_ROSTER = "owner_roster"


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String(20), nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    due_at = Column(DateTime(timezone=True), nullable=True)
    total_points = Column(Float, nullable=False, default=DEFAULT_TOTAL_POINTS)

    # reference document handed out with the task (content store id)
    document_id = Column(String(32), nullable=True)
    document_name = Column(String(255), nullable=True)
    document_type = Column(String(100), nullable=True)

    audience_mode = Column(String(20), nullable=False, default=AudienceMode.EXPLICIT.value)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    owner = relationship("User")

    assignees = relationship("TaskAssignee", back_populates="task", cascade="all, delete-orphan")
    submissions = relationship("Submission", back_populates="task", cascade="all, delete-orphan")


class TaskAssignee(Base):
    __tablename__ = "task_assignees"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("task_id", "student_id", name="uq_task_assignee_task_student"),
    )

    task = relationship("Task", back_populates="assignees")
