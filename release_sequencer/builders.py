"""Построители задач и групп задач."""

from __future__ import annotations

from typing import Callable

from release_sequencer.context import WorkflowContext
from release_sequencer.exceptions import ConfigurationError
from release_sequencer.groups import TaskGroup
from release_sequencer.interfaces import (
    ExecuteFunction,
    FunctionTask,
    SkipFunction,
    Task,
    UndoFunction,
)
from release_sequencer.skip_conditions import (
    Predicate,
    to_skip_condition,
    to_skip_condition_with_jump,
)


class TaskBuilder:
    """Построитель FunctionTask.

    Пример использования:
        >>> task = (
        ...     TaskBuilder("bump")
        ...     .description("Write the next version")
        ...     .depends_on("init")
        ...     .skip_when(from_config("skip_bump"), "Bump disabled")
        ...     .execute(lambda ctx: ctx.fork("version", "1.3.0"))
        ...     .with_undo(lambda ctx: None)
        ...     .build()
        ... )
    """

    def __init__(self, task_id: str) -> None:
        self._id = task_id
        self._description = ""
        self._dependencies: list[str] = []
        self._required_features: list[str] = []
        self._skip: SkipFunction | None = None
        self._execute: ExecuteFunction | None = None
        self._undo: UndoFunction | None = None

    def description(self, text: str) -> TaskBuilder:
        self._description = text
        return self

    def depends_on(self, *task_ids: str) -> TaskBuilder:
        self._dependencies.extend(task_ids)
        return self

    def requires_features(self, *names: str) -> TaskBuilder:
        self._required_features.extend(names)
        return self

    def skip_when(self, predicate: Predicate, reason: str | None = None) -> TaskBuilder:
        self._skip = to_skip_condition(predicate, reason)
        return self

    def skip_when_and_jump_to(
        self, predicate: Predicate, *skip_to_tasks: str
    ) -> TaskBuilder:
        self._skip = to_skip_condition_with_jump(predicate, skip_to_tasks)
        return self

    def should_skip(self, condition: SkipFunction) -> TaskBuilder:
        self._skip = condition
        return self

    def execute(self, fn: ExecuteFunction) -> TaskBuilder:
        self._execute = fn
        return self

    def with_undo(self, fn: UndoFunction) -> TaskBuilder:
        self._undo = fn
        return self

    def build(self) -> FunctionTask:
        """Создает задачу.

        Raises:
            ConfigurationError: Если не задана функция execute или описание
        """
        if self._execute is None:
            raise ConfigurationError(f"Task '{self._id}' must have an execute function")
        if not self._description:
            raise ConfigurationError(f"Task '{self._id}' must have a description")
        return FunctionTask(
            self._id,
            self._execute,
            description=self._description,
            dependencies=self._dependencies,
            required_features=self._required_features,
            should_skip=self._skip,
            undo=self._undo,
        )


class TaskGroupBuilder:
    """Построитель TaskGroup.

    Пример использования:
        >>> group = (
        ...     TaskGroupBuilder("publish")
        ...     .description("Push and release")
        ...     .depends_on_group("git")
        ...     .skip_when(from_config("skip_publish"), "Publishing disabled")
        ...     .tasks(push_task, release_task)
        ...     .build()
        ... )
    """

    def __init__(self, group_id: str) -> None:
        self._id = group_id
        self._description = ""
        self._tasks: list[Task] = []
        self._depends_on_groups: list[str] = []
        self._skip_condition: SkipFunction | None = None
        self._skip_when: Callable[[WorkflowContext], bool] | None = None
        self._skip_reason: str | None = None

    def description(self, text: str) -> TaskGroupBuilder:
        self._description = text
        return self

    def depends_on_group(self, *group_ids: str) -> TaskGroupBuilder:
        self._depends_on_groups.extend(group_ids)
        return self

    def skip_when(self, predicate: Predicate, reason: str | None = None) -> TaskGroupBuilder:
        self._skip_when = predicate
        self._skip_reason = reason
        return self

    def skip_condition(self, condition: SkipFunction) -> TaskGroupBuilder:
        self._skip_condition = condition
        return self

    def task(self, task: Task) -> TaskGroupBuilder:
        self._tasks.append(task)
        return self

    def tasks(self, *tasks: Task) -> TaskGroupBuilder:
        self._tasks.extend(tasks)
        return self

    def build(self) -> TaskGroup:
        """Создает группу.

        Raises:
            ConfigurationError: Если нет описания или нет ни одной задачи
        """
        if not self._description:
            raise ConfigurationError(f"Task group '{self._id}' must have a description")
        if not self._tasks:
            raise ConfigurationError(f"Task group '{self._id}' must have at least one task")
        return TaskGroup(
            id=self._id,
            description=self._description,
            tasks=list(self._tasks),
            depends_on_groups=list(self._depends_on_groups),
            skip_condition=self._skip_condition,
            skip_when=self._skip_when,
            skip_reason=self._skip_reason,
        )
