from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from .. import crud
from ..db import get_db
from ..models import STATUS_DONE, STATUS_IN_PROGRESS, STATUS_OPEN
from ..schemas import (
    PRIORITY_PATTERN,
    SORT_PATTERN,
    STATUS_PATTERN,
    TaskCreate,
    TaskFilter,
    TaskResponse,
    TaskUpdate,
)

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post("/", response_model=TaskResponse, status_code=201)
async def create_task(
    task: TaskCreate,
    db: AsyncSession = Depends(get_db)
):
    """Create a new task with its subtasks"""
    db_task = await crud.create_task(db, task)
    return TaskResponse.model_validate(db_task)


@router.get("/", response_model=List[TaskResponse])
async def list_tasks(
    category_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN),
    priority: Optional[str] = Query(None, pattern=PRIORITY_PATTERN),
    sort: str = Query("created", pattern=SORT_PATTERN),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db)
):
    """List tasks, optionally filtered by category, status and priority"""
    task_filter = TaskFilter(category_id=category_id, status=status, priority=priority, sort=sort)
    tasks = await crud.list_tasks(db, task_filter, skip=skip, limit=limit)
    return [TaskResponse.model_validate(task) for task in tasks]


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Get a specific task with its subtasks"""
    task = await crud.get_task(db, task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return TaskResponse.model_validate(task)


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    task_update: TaskUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Edit a task and reconcile its subtask list"""
    task = await crud.update_task(db, task_id, task_update)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return TaskResponse.model_validate(task)


@router.delete("/{task_id}")
async def delete_task(
    task_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Soft-delete a specific task"""
    success = await crud.soft_delete_task(db, task_id)
    if not success:
        raise HTTPException(status_code=404, detail="Task not found")
    return {"message": "Task deleted successfully"}


async def _transition(db: AsyncSession, task_id: int, new_status: str) -> TaskResponse:
    task = await crud.change_status(db, task_id, new_status)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return TaskResponse.model_validate(task)


@router.post("/{task_id}/start", response_model=TaskResponse)
async def start_task(task_id: int, db: AsyncSession = Depends(get_db)):
    return await _transition(db, task_id, STATUS_IN_PROGRESS)


@router.post("/{task_id}/complete", response_model=TaskResponse)
async def complete_task(task_id: int, db: AsyncSession = Depends(get_db)):
    return await _transition(db, task_id, STATUS_DONE)


@router.post("/{task_id}/reopen", response_model=TaskResponse)
async def reopen_task(task_id: int, db: AsyncSession = Depends(get_db)):
    return await _transition(db, task_id, STATUS_OPEN)
