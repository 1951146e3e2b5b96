from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from tasktree.domain.tasks.graph import TaskGraph


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime: ...


class IdGenerator(ABC):
    @abstractmethod
    def new_id(self) -> str: ...


class TaskRepository(ABC):
    """
    Durable home of the task universe.

    load() returns a fresh, independent graph on every call. save() commits the
    whole graph atomically: either every change is stored or none is.
    """

    @abstractmethod
    async def load(self) -> TaskGraph: ...

    @abstractmethod
    async def save(self, graph: TaskGraph) -> None: ...
