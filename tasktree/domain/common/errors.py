from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from tasktree.domain.tasks.graph import TaskGraph


class DomainError(Exception):
    """Base for errors whose message is safe to show to the user."""


class ValidationError(DomainError):
    pass


class ConflictError(DomainError):
    pass


class NotFoundError(DomainError):
    pass


class GraphError(ValidationError):
    """A dependency or subtask mutation was rejected before touching the graph."""

    def __init__(self, message: str, task_id: Optional[str] = None, other_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.task_id = task_id
        self.other_id = other_id


class CycleDetected(GraphError):
    pass


class DuplicateEdge(GraphError):
    pass


class CircularMove(GraphError):
    pass


class PersistenceFailure(DomainError):
    """
    Commit failed after a valid mutation was applied in memory.

    `graph` is the mutated in-memory graph; the caller decides whether to
    retry saving it or throw it away. The original error is chained as
    __cause__.
    """

    def __init__(self, message: str, graph: "TaskGraph") -> None:
        super().__init__(message)
        self.graph = graph
