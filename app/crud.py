import logging
from datetime import date
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import and_
from sqlalchemy.orm import contains_eager, selectinload
from .errors import ConflictError, InvalidTransitionError, TaskLockedError, ValidationFailedError
from .models import (
    Category,
    Subtask,
    TaskItem,
    STATUS_DONE,
    STATUS_IN_PROGRESS,
    STATUS_OPEN,
)
from .schemas import CategoryCreate, SubtaskIn, TaskCreate, TaskFilter, TaskUpdate
from .utils import ensure_due_date_not_past, ordered_non_blank, utcnow

logger = logging.getLogger(__name__)

# Done is terminal: nothing moves out of it.
ALLOWED_TRANSITIONS = {
    STATUS_OPEN: {STATUS_IN_PROGRESS, STATUS_DONE},
    STATUS_IN_PROGRESS: {STATUS_OPEN, STATUS_DONE},
    STATUS_DONE: set(),
}


def _active_tasks():
    """Base query for tasks that are not soft-deleted, with relations loaded"""
    return (
        select(TaskItem)
        .where(TaskItem.is_deleted.is_(False))
        .options(selectinload(TaskItem.category), selectinload(TaskItem.subtasks))
        .execution_options(populate_existing=True)
    )


async def _ensure_category(db: AsyncSession, category_id: Optional[int]) -> None:
    if category_id is None:
        return
    if await db.get(Category, category_id) is None:
        raise ValidationFailedError(f"Category {category_id} does not exist", field="category_id")


# Categories

async def create_category(db: AsyncSession, category: CategoryCreate) -> Category:
    """Create a category with a unique name"""
    existing = await db.execute(select(Category).filter(Category.name == category.name))
    if existing.scalar_one_or_none():
        raise ConflictError(f"Category '{category.name}' already exists", field="name")

    db_category = Category(name=category.name)
    db.add(db_category)
    await db.commit()
    await db.refresh(db_category)
    logger.info("Created category %s (%s)", db_category.id, db_category.name)
    return db_category


async def list_categories(db: AsyncSession) -> List[Category]:
    result = await db.execute(select(Category).order_by(Category.name))
    return result.scalars().all()


# Tasks

async def create_task(db: AsyncSession, task: TaskCreate, today: Optional[date] = None) -> TaskItem:
    """Create a task together with its non-blank subtasks"""
    ensure_due_date_not_past(task.due_date, today)
    await _ensure_category(db, task.category_id)

    now = utcnow()
    db_task = TaskItem(**task.model_dump(exclude={"subtasks"}), created_at=now, updated_at=now)
    db_task.subtasks = [
        Subtask(title=sub.title.strip(), is_completed=sub.is_completed, sort_order=order)
        for order, sub in ordered_non_blank(task.subtasks)
    ]
    db.add(db_task)
    await db.commit()
    logger.info("Created task %s with %d subtasks", db_task.id, len(db_task.subtasks))
    return await get_task(db, db_task.id)


async def get_task(db: AsyncSession, task_id: int) -> Optional[TaskItem]:
    """Get a task by ID. Soft-deleted tasks are treated as missing."""
    result = await db.execute(_active_tasks().filter(TaskItem.id == task_id))
    return result.scalar_one_or_none()


async def list_tasks(
    db: AsyncSession,
    task_filter: Optional[TaskFilter] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[TaskItem]:
    """List tasks with optional filtering and sorting"""
    task_filter = task_filter or TaskFilter()
    query = _active_tasks()

    conditions = []
    if task_filter.category_id is not None:
        conditions.append(TaskItem.category_id == task_filter.category_id)
    if task_filter.status:
        conditions.append(TaskItem.status == task_filter.status)
    if task_filter.priority:
        conditions.append(TaskItem.priority == task_filter.priority)
    if conditions:
        query = query.filter(and_(*conditions))

    if task_filter.sort == "updated":
        query = query.order_by(TaskItem.updated_at.desc(), TaskItem.id.desc())
    elif task_filter.sort == "due":
        # tasks without a due date go last
        query = query.order_by(
            TaskItem.due_date.is_(None),
            TaskItem.due_date.asc(),
            TaskItem.created_at.desc(),
            TaskItem.id.desc(),
        )
    else:
        query = query.order_by(TaskItem.created_at.desc(), TaskItem.id.desc())

    result = await db.execute(query.offset(skip).limit(limit))
    return result.scalars().all()


def _check_submitted_ids(task: TaskItem, submitted: List[SubtaskIn]) -> None:
    owned = {sub.id for sub in task.subtasks}
    seen = set()
    for sub in submitted:
        if sub.id is None:
            continue
        if sub.id not in owned:
            raise ValidationFailedError(
                f"Subtask {sub.id} does not belong to task {task.id}", field="subtasks"
            )
        if sub.id in seen:
            raise ValidationFailedError(f"Subtask {sub.id} was submitted twice", field="subtasks")
        seen.add(sub.id)


async def update_task(
    db: AsyncSession,
    task_id: int,
    task_update: TaskUpdate,
    today: Optional[date] = None,
) -> Optional[TaskItem]:
    """Update a task and reconcile its subtasks with the submitted list.

    Submitted rows with an id update the matching persisted row, persisted rows
    whose id was not submitted are deleted, and rows without an id are
    inserted. Sort order follows the submitted order after blank rows are
    dropped. Returns None when the task does not exist.
    """
    db_task = await get_task(db, task_id)
    if not db_task:
        return None

    if db_task.status == STATUS_DONE:
        logger.warning("Rejected edit of done task %s", task_id)
        raise TaskLockedError("A done task cannot be edited")

    ensure_due_date_not_past(task_update.due_date, today)
    await _ensure_category(db, task_update.category_id)

    incoming = ordered_non_blank(task_update.subtasks)
    _check_submitted_ids(db_task, [sub for _, sub in incoming])

    for field, value in task_update.model_dump(exclude={"subtasks"}).items():
        setattr(db_task, field, value)
    db_task.updated_at = utcnow()

    persisted = {sub.id: sub for sub in db_task.subtasks}
    kept_ids = set()

    # update matched
    for order, sub in incoming:
        if sub.id is None:
            continue
        row = persisted[sub.id]
        row.title = sub.title.strip()
        row.is_completed = sub.is_completed
        row.sort_order = order
        kept_ids.add(sub.id)

    # delete unmatched
    removed = [row for row_id, row in persisted.items() if row_id not in kept_ids]
    for row in removed:
        db_task.subtasks.remove(row)
    await db.flush()

    # insert new
    added = 0
    for order, sub in incoming:
        if sub.id is None:
            db_task.subtasks.append(
                Subtask(title=sub.title.strip(), is_completed=sub.is_completed, sort_order=order)
            )
            added += 1

    await db.commit()
    logger.info(
        "Updated task %s: %d subtasks updated, %d deleted, %d inserted",
        task_id, len(kept_ids), len(removed), added,
    )
    return await get_task(db, task_id)


async def change_status(db: AsyncSession, task_id: int, new_status: str) -> Optional[TaskItem]:
    """Move a task to a new status if the transition is allowed"""
    db_task = await get_task(db, task_id)
    if not db_task:
        return None

    if new_status not in ALLOWED_TRANSITIONS[db_task.status]:
        logger.warning("Rejected transition of task %s: %s -> %s", task_id, db_task.status, new_status)
        if db_task.status == STATUS_DONE:
            raise InvalidTransitionError("A done task cannot change status", field="status")
        raise InvalidTransitionError(
            f"Cannot move task from '{db_task.status}' to '{new_status}'", field="status"
        )

    old_status = db_task.status
    db_task.status = new_status
    db_task.updated_at = utcnow()
    await db.commit()
    logger.info("Task %s moved from %s to %s", task_id, old_status, new_status)
    return await get_task(db, task_id)


async def toggle_subtask(db: AsyncSession, subtask_id: int) -> Optional[Subtask]:
    """Flip a subtask's completion flag. Returns None if it is not visible."""
    result = await db.execute(
        select(Subtask)
        .join(Subtask.task)
        .filter(Subtask.id == subtask_id, TaskItem.is_deleted.is_(False))
        .options(contains_eager(Subtask.task))
    )
    db_subtask = result.scalar_one_or_none()
    if not db_subtask:
        return None

    if db_subtask.task.status == STATUS_DONE:
        logger.warning("Rejected toggle of subtask %s on done task %s", subtask_id, db_subtask.task_id)
        raise TaskLockedError("Subtasks of a done task cannot be changed")

    db_subtask.is_completed = not db_subtask.is_completed
    db_subtask.task.updated_at = utcnow()
    await db.commit()
    await db.refresh(db_subtask)
    return db_subtask


async def soft_delete_task(db: AsyncSession, task_id: int) -> bool:
    """Hide a task instead of deleting its row"""
    db_task = await get_task(db, task_id)
    if not db_task:
        return False

    now = utcnow()
    db_task.is_deleted = True
    db_task.deleted_at = now
    db_task.updated_at = now
    await db.commit()
    logger.info("Soft-deleted task %s", task_id)
    return True
