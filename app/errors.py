"""
Domain exceptions raised by the task service.

The HTTP layer maps each class to a status code in main.py; crud functions
never build HTTP responses themselves.
"""
from typing import Optional


class TaskBoardError(Exception):
    """Base exception for task and category operations."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message}, field={self.field})"


class TaskLockedError(TaskBoardError):
    """The task is done and can no longer be edited."""


class InvalidTransitionError(TaskBoardError):
    """The requested status change is not allowed from the current status."""


class ValidationFailedError(TaskBoardError):
    """Submitted data is well-formed but breaks a business rule."""
    status_code = 422


class ConflictError(TaskBoardError):
    """A category with the same name already exists."""
    status_code = 409
