"""Фикстуры pytest для тестирования release-sequencer."""

from __future__ import annotations

from typing import Any

import pytest

from release_sequencer.context import WorkflowContext
from release_sequencer.interfaces import SkipDecision, Task


class RecordingTask(Task):
    """Задача, записывающая выполнение и откат в общие журналы.

    Выполнение добавляет идентификатор в ``execution_log`` и форкает
    контекст (ключ = идентификатор задачи). Откат (если ``undoable``)
    добавляет идентификатор в ``undo_log``.
    """

    def __init__(
        self,
        task_id: str,
        dependencies: list[str] | None = None,
        *,
        execution_log: list[str] | None = None,
        undo_log: list[str] | None = None,
        undoable: bool = True,
        fail_with: Exception | None = None,
        skip: SkipDecision | None = None,
        description: str = "",
        required_features: list[str] | None = None,
    ) -> None:
        self._id = task_id
        self._dependencies = dependencies or []
        self.execution_log = execution_log if execution_log is not None else []
        self.undo_log = undo_log if undo_log is not None else []
        self.undoable = undoable
        self.fail_with = fail_with
        self.skip = skip
        self._description = description
        self._required_features = required_features or []
        self.skip_calls = 0

    @property
    def id(self) -> str:
        return self._id

    @property
    def description(self) -> str:
        return self._description

    @property
    def dependencies(self) -> list[str]:
        return self._dependencies

    @property
    def required_features(self) -> list[str]:
        return self._required_features

    def should_skip(self, context: WorkflowContext) -> SkipDecision | None:
        self.skip_calls += 1
        return self.skip

    def execute(self, context: WorkflowContext) -> WorkflowContext:
        if self.fail_with is not None:
            raise self.fail_with
        self.execution_log.append(self._id)
        return context.fork(self._id, True)

    def undo(self, context: WorkflowContext) -> None:
        self.undo_log.append(self._id)

    def can_undo(self) -> bool:
        return self.undoable


@pytest.fixture
def execution_log() -> list[str]:
    """Общий журнал выполнения задач."""
    return []


@pytest.fixture
def undo_log() -> list[str]:
    """Общий журнал отката задач."""
    return []


@pytest.fixture
def context() -> WorkflowContext:
    """Создает исходный контекст с простой конфигурацией."""
    return WorkflowContext.create(config={"branch": "main", "dry_run": False})


@pytest.fixture
def make_task(execution_log: list[str], undo_log: list[str]) -> Any:
    """Фабрика RecordingTask с общими журналами."""

    def factory(task_id: str, dependencies: list[str] | None = None, **kwargs: Any) -> RecordingTask:
        return RecordingTask(
            task_id,
            dependencies,
            execution_log=execution_log,
            undo_log=undo_log,
            **kwargs,
        )

    return factory
