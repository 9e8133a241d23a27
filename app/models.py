from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import declarative_base, relationship
from .utils import utcnow

Base = declarative_base()

# Vocabularies shared with schemas.py
STATUS_OPEN = "open"
STATUS_IN_PROGRESS = "in_progress"
STATUS_DONE = "done"
TASK_STATUSES = (STATUS_OPEN, STATUS_IN_PROGRESS, STATUS_DONE)

PRIORITY_LOW = "low"
PRIORITY_NORMAL = "normal"
PRIORITY_HIGH = "high"
TASK_PRIORITIES = (PRIORITY_LOW, PRIORITY_NORMAL, PRIORITY_HIGH)


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(80), nullable=False, unique=True)

    tasks = relationship("TaskItem", back_populates="category")

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"


class TaskItem(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    title = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=STATUS_OPEN)
    priority = Column(String(20), nullable=False, default=PRIORITY_NORMAL)
    due_date = Column(Date, nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False, index=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    category = relationship("Category", back_populates="tasks")
    subtasks = relationship(
        "Subtask",
        back_populates="task",
        order_by="Subtask.sort_order",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<TaskItem(id={self.id}, title='{self.title}', status='{self.status}')>"


class Subtask(Base):
    __tablename__ = "subtasks"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(120), nullable=False)
    is_completed = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)

    task = relationship("TaskItem", back_populates="subtasks")

    def __repr__(self):
        return f"<Subtask(id={self.id}, task_id={self.task_id}, title='{self.title}')>"
