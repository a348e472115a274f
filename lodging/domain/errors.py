"""Typed failures raised by the assignment engine."""

from __future__ import annotations


class AssignmentError(Exception):
    """Base exception for assignment engine failures."""


class NotFoundError(AssignmentError):
    """Raised when a referenced entity does not exist."""


class AttendeeNotFoundError(NotFoundError):
    pass


class RoomNotFoundError(NotFoundError):
    pass


class EventNotFoundError(NotFoundError):
    pass


class AssignmentValidationError(AssignmentError):
    """Raised when a request violates a hard placement rule."""


class AssignmentConflictError(AssignmentError):
    """Raised when a write loses a race against a concurrent write.

    The whole operation is safe to retry.
    """
