from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from .. import crud
from ..db import get_db
from ..schemas import SubtaskResponse

router = APIRouter(prefix="/subtasks", tags=["subtasks"])


@router.post("/{subtask_id}/toggle", response_model=SubtaskResponse)
async def toggle_subtask(
    subtask_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Flip a subtask between done and not done"""
    subtask = await crud.toggle_subtask(db, subtask_id)
    if not subtask:
        raise HTTPException(status_code=404, detail="Subtask not found")
    return SubtaskResponse.model_validate(subtask)
