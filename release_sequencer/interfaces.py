"""Интерфейсы для задач release-sequencer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Sequence

from release_sequencer.context import WorkflowContext

SkipFunction = Callable[[WorkflowContext], "SkipDecision | None"]
ExecuteFunction = Callable[[WorkflowContext], WorkflowContext]
UndoFunction = Callable[[WorkflowContext], None]


@dataclass(frozen=True)
class SkipDecision:
    """Решение о пропуске задачи.

    Attributes:
        should_skip: Пропустить ли задачу
        reason: Причина пропуска (для логов)
        skip_to_tasks: Идентификаторы задач, к первой из которых нужно
            перейти; промежуточные задачи не выполняются и не
            записываются как пропущенные
    """

    should_skip: bool
    reason: str | None = None
    skip_to_tasks: tuple[str, ...] = ()

    @classmethod
    def run(cls) -> SkipDecision:
        """Решение выполнить задачу."""
        return cls(should_skip=False)

    @classmethod
    def skip(
        cls, reason: str | None = None, skip_to_tasks: Sequence[str] = ()
    ) -> SkipDecision:
        """Решение пропустить задачу.

        Args:
            reason: Причина пропуска
            skip_to_tasks: Задачи, к которым нужно перейти

        Returns:
            SkipDecision с should_skip=True
        """
        return cls(should_skip=True, reason=reason, skip_to_tasks=tuple(skip_to_tasks))


class Task(ABC):
    """Абстрактный базовый класс для задач.

    Обязательны только ``id`` и ``execute``. Остальные возможности
    (пропуск, откат, хуки отката, требуемые фичи) имеют нейтральные
    реализации по умолчанию и переопределяются по необходимости.

    Пример использования:
        >>> from release_sequencer.interfaces import Task
        >>> from release_sequencer.context import WorkflowContext
        >>>
        >>> class BumpTask(Task):
        ...     @property
        ...     def id(self) -> str:
        ...         return "bump"
        ...     @property
        ...     def dependencies(self) -> list[str]:
        ...         return ["init"]
        ...     def execute(self, context: WorkflowContext) -> WorkflowContext:
        ...         return context.fork("next_version", "1.3.0")
        ...     def undo(self, context: WorkflowContext) -> None:
        ...         print("restore package.json")
    """

    @property
    @abstractmethod
    def id(self) -> str:
        """Уникальный идентификатор задачи."""
        ...

    @property
    def description(self) -> str:
        return ""

    @property
    def dependencies(self) -> list[str]:
        """Идентификаторы задач, которые должны выполниться раньше.

        Returns:
            Список идентификаторов задач-зависимостей
        """
        return []

    @property
    def dependents(self) -> list[str]:
        """Идентификаторы задач, которые должны выполниться позже."""
        return []

    @property
    def required_features(self) -> list[str]:
        """Фичи, без которых задача отфильтровывается оркестратором."""
        return []

    def should_skip(self, context: WorkflowContext) -> SkipDecision | None:
        """Решает, нужно ли пропустить задачу.

        Вызывается непосредственно перед выполнением.

        Args:
            context: Текущий контекст

        Returns:
            SkipDecision или None (задача выполняется)
        """
        return None

    @abstractmethod
    def execute(self, context: WorkflowContext) -> WorkflowContext:
        """Выполняет задачу.

        Args:
            context: Контекст, полученный от предыдущей задачи

        Returns:
            Новый контекст (или тот же экземпляр)

        Raises:
            Exception: Любое исключение считается провалом задачи
        """
        ...

    def undo(self, context: WorkflowContext) -> None:
        """Откатывает действия задачи. По умолчанию откат не поддерживается."""
        raise NotImplementedError(f"Task '{self.id}' does not support undo")

    def can_undo(self) -> bool:
        """Возвращает True, если подкласс переопределил ``undo``."""
        return type(self).undo is not Task.undo

    def before_rollback(self, context: WorkflowContext) -> bool | None:
        """Хук перед откатом (стратегия custom).

        Returns:
            False - не выполнять undo для этой задачи,
            True/None - выполнить
        """
        return None

    def after_rollback(self, context: WorkflowContext) -> None:
        """Хук после успешного отката (стратегия custom)."""
        return None

    def on_rollback_error(
        self, error: Exception, context: WorkflowContext
    ) -> bool | None:
        """Хук при ошибке отката (стратегия custom).

        Args:
            error: Исключение, выброшенное undo
            context: Контекст отката

        Returns:
            True - подавить ошибку (задача не считается проваленной),
            False/None - записать ошибку
        """
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"


class FunctionTask(Task):
    """Задача, собранная из функций.

    Пример использования:
        >>> task = FunctionTask(
        ...     "init",
        ...     execute=lambda ctx: ctx.fork("initialized", True),
        ...     description="Initialize release",
        ... )
    """

    def __init__(
        self,
        task_id: str,
        execute: ExecuteFunction,
        *,
        description: str = "",
        dependencies: Sequence[str] = (),
        dependents: Sequence[str] = (),
        required_features: Sequence[str] = (),
        should_skip: SkipFunction | None = None,
        undo: UndoFunction | None = None,
    ) -> None:
        self._id = task_id
        self._execute = execute
        self._description = description
        self._dependencies = list(dependencies)
        self._dependents = list(dependents)
        self._required_features = list(required_features)
        self._should_skip = should_skip
        self._undo = undo

    @property
    def id(self) -> str:
        return self._id

    @property
    def description(self) -> str:
        return self._description

    @property
    def dependencies(self) -> list[str]:
        return list(self._dependencies)

    @property
    def dependents(self) -> list[str]:
        return list(self._dependents)

    @property
    def required_features(self) -> list[str]:
        return list(self._required_features)

    def should_skip(self, context: WorkflowContext) -> SkipDecision | None:
        if self._should_skip is None:
            return None
        return self._should_skip(context)

    def execute(self, context: WorkflowContext) -> WorkflowContext:
        return self._execute(context)

    def undo(self, context: WorkflowContext) -> None:
        if self._undo is None:
            super().undo(context)
            return
        self._undo(context)

    def can_undo(self) -> bool:
        return self._undo is not None
