from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

STATUS_PATTERN = "^(open|in_progress|done)$"
PRIORITY_PATTERN = "^(low|normal|high)$"
SORT_PATTERN = "^(created|updated|due)$"


def _strip(value):
    """Trim text before length checks so padding does not count"""
    if isinstance(value, str):
        return value.strip()
    return value


# Category schemas
class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=80)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return _strip(value)


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


# Subtask schemas
class SubtaskIn(BaseModel):
    """A subtask row as submitted with a task form.

    No id means a new row. Blank titles are allowed here and dropped on save.
    """
    id: Optional[int] = Field(None, ge=1)
    title: str = Field("", max_length=120)
    is_completed: bool = False

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        return _strip(value)


class SubtaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    task_id: int
    title: str
    is_completed: bool
    sort_order: int


# Task schemas
class TaskBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=4000)
    status: str = Field(default="open", pattern=STATUS_PATTERN)
    priority: str = Field(default="normal", pattern=PRIORITY_PATTERN)
    due_date: Optional[date] = None
    category_id: Optional[int] = None

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        return _strip(value)


class TaskCreate(TaskBase):
    subtasks: List[SubtaskIn] = Field(default_factory=list)


class TaskUpdate(TaskBase):
    """Full replacement of the editable fields, including the subtask list."""
    subtasks: List[SubtaskIn] = Field(default_factory=list)


class TaskResponse(TaskBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: Optional[CategoryResponse] = None
    subtasks: List[SubtaskResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class TaskFilter(BaseModel):
    category_id: Optional[int] = None
    status: Optional[str] = Field(None, pattern=STATUS_PATTERN)
    priority: Optional[str] = Field(None, pattern=PRIORITY_PATTERN)
    sort: str = Field(default="created", pattern=SORT_PATTERN)
