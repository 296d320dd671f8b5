"""Менеджер отката выполненных задач."""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from release_sequencer.context import WorkflowContext
from release_sequencer.exceptions import (
    CompensationNotFoundError,
    ConfigurationError,
    RollbackError,
    TaskOrchestratorError,
)
from release_sequencer.interfaces import Task
from release_sequencer.logging import get_logger
from release_sequencer.results import RollbackResult


class RollbackStrategy(str, Enum):
    """Стратегия отката.

    Attributes:
        REVERSE: undo задач в обратном порядке
        COMPENSATION: как REVERSE, но вместо undo выполняется
            зарегистрированная компенсирующая задача
        CUSTOM: как REVERSE, с вызовом хуков before/after/on_error задачи
        NONE: откат не выполняется
    """

    REVERSE = "reverse"
    COMPENSATION = "compensation"
    CUSTOM = "custom"
    NONE = "none"


@dataclass
class RollbackConfig:
    """Настройки отката.

    Attributes:
        strategy: Стратегия по умолчанию
        max_retries: Число повторных попыток undo после первой неудачи
        continue_on_error: Продолжать ли откат после неудачи
    """

    strategy: RollbackStrategy = RollbackStrategy.REVERSE
    max_retries: int = 0
    continue_on_error: bool = True

    def __post_init__(self) -> None:
        """Валидация данных после инициализации."""
        self.strategy = _coerce_strategy(self.strategy)
        if self.max_retries < 0:
            raise ConfigurationError("max_retries cannot be negative")


@dataclass(frozen=True)
class RollbackEntry:
    """Запись стека отката.

    Attributes:
        task_id: Идентификатор выполненной задачи
        task: Сама задача
        execution_time: Момент завершения задачи
        compensation_id: Идентификатор компенсирующей задачи, если привязана
    """

    task_id: str
    task: Task
    execution_time: datetime
    compensation_id: str | None = None


def _coerce_strategy(strategy: RollbackStrategy | str) -> RollbackStrategy:
    try:
        return RollbackStrategy(strategy)
    except ValueError:
        raise ConfigurationError(
            f"Unknown rollback strategy: {strategy!r}"
        ) from None


class RollbackManager:
    """Стек выполненных задач и его откат.

    Записи добавляются по мере успешного выполнения задач и
    откатываются в обратном порядке одной из стратегий.

    Пример использования:
        >>> manager = RollbackManager()
        >>> manager.add_task(init_task)
        >>> manager.add_task(bump_task)
        >>> result = manager.execute_rollback(context)
        >>> result.rolled_back_tasks
        ('bump', 'init')
    """

    def __init__(self, config: RollbackConfig | None = None) -> None:
        self._config = config or RollbackConfig()
        self._stack: list[RollbackEntry] = []
        self._compensations: dict[str, Task] = {}
        self._pending_compensations: dict[str, str] = {}

    def add_task(self, task: Task) -> RollbackEntry:
        """Кладет задачу на стек отката.

        Если для задачи уже зарегистрирована компенсация, она привязывается
        к записи.

        Args:
            task: Успешно выполненная задача

        Returns:
            Созданная запись
        """
        entry = RollbackEntry(
            task_id=task.id,
            task=task,
            execution_time=datetime.now(),
            compensation_id=self._pending_compensations.pop(task.id, None),
        )
        self._stack.append(entry)
        return entry

    def register_compensation(self, task_id: str, compensation: Task) -> None:
        """Привязывает компенсирующую задачу к задаче.

        Компенсация привязывается к последней записи стека с этим
        идентификатором; если такой записи еще нет, она будет привязана
        при добавлении задачи.

        Args:
            task_id: Задача, которую нужно компенсировать
            compensation: Компенсирующая задача (выполняется ее execute)
        """
        self._compensations[compensation.id] = compensation
        for index in range(len(self._stack) - 1, -1, -1):
            if self._stack[index].task_id == task_id:
                self._stack[index] = replace(
                    self._stack[index], compensation_id=compensation.id
                )
                return
        self._pending_compensations[task_id] = compensation.id

    def has_compensation(self, task_id: str) -> bool:
        """Есть ли компенсация, ожидающая добавления задачи на стек."""
        return task_id in self._pending_compensations

    def execute_rollback(
        self,
        context: WorkflowContext,
        strategy: RollbackStrategy | str | None = None,
    ) -> RollbackResult:
        """Откатывает стек в обратном порядке.

        Args:
            context: Контекст, передаваемый в undo и компенсации
            strategy: Стратегия (по умолчанию из конфигурации)

        Returns:
            RollbackResult

        Raises:
            ConfigurationError: Если стратегия неизвестна
        """
        resolved = self._config.strategy if strategy is None else _coerce_strategy(strategy)
        logger = get_logger()

        if resolved is RollbackStrategy.NONE or not self._stack:
            return RollbackResult.empty()

        logger.info(
            f"Rolling back {len(self._stack)} task(s) using '{resolved.value}' strategy"
        )
        started = time.perf_counter()
        rolled_back: list[str] = []
        skipped: list[str] = []
        failed: list[str] = []
        errors: list[TaskOrchestratorError] = []

        for entry in reversed(self._stack):
            try:
                if self._roll_back_entry(entry, resolved, context):
                    rolled_back.append(entry.task_id)
                else:
                    skipped.append(entry.task_id)
            except TaskOrchestratorError as e:
                get_logger(entry.task_id).error(f"Rollback failed: {e.message}")
                failed.append(entry.task_id)
                errors.append(e)
                if not self._config.continue_on_error:
                    break

        result = RollbackResult(
            success=not failed,
            rolled_back_tasks=tuple(rolled_back),
            failed_tasks=tuple(failed),
            skipped_tasks=tuple(skipped),
            errors=tuple(errors),
            duration_ms=(time.perf_counter() - started) * 1000,
        )
        if result.success:
            logger.info(f"Rollback completed: {len(rolled_back)} task(s) rolled back")
        else:
            logger.error(
                f"Rollback finished with {len(failed)} failure(s): {', '.join(failed)}"
            )
        return result

    def _roll_back_entry(
        self, entry: RollbackEntry, strategy: RollbackStrategy, context: WorkflowContext
    ) -> bool:
        """Откатывает одну запись.

        Returns:
            True - откат выполнен, False - откат намеренно пропущен

        Raises:
            RollbackError: Если undo или компенсация не удались
            CompensationNotFoundError: Если привязанная компенсация не найдена
        """
        task = entry.task
        logger = get_logger(entry.task_id)
        custom = strategy is RollbackStrategy.CUSTOM

        action: Callable[[], Any]
        if strategy is RollbackStrategy.COMPENSATION and entry.compensation_id is not None:
            compensation = self._compensations.get(entry.compensation_id)
            if compensation is None:
                raise CompensationNotFoundError(
                    f"Compensation task '{entry.compensation_id}' for task "
                    f"'{entry.task_id}' is not registered"
                )
            action = lambda: compensation.execute(context)  # noqa: E731
            label = f"compensation '{compensation.id}'"
        elif not task.can_undo():
            logger.warning("Task has no undo, skipping rollback")
            return False
        else:
            action = lambda: task.undo(context)  # noqa: E731
            label = "undo"

        if custom and self._call_hook(entry, task.before_rollback, context) is False:
            logger.info("Rollback suppressed by before_rollback hook")
            return False

        error = self._attempt(action, entry.task_id)
        if error is None:
            logger.info(f"Rolled back ({label})")
            if custom:
                self._call_hook(entry, task.after_rollback, context)
            return True

        if custom and self._call_hook(entry, task.on_rollback_error, error, context) is True:
            logger.warning(f"Rollback error suppressed by on_rollback_error hook: {error}")
            return False

        raise RollbackError(
            f"Failed to roll back task '{entry.task_id}' ({label}): {error}",
            task_id=entry.task_id,
        ) from error

    def _attempt(self, action: Callable[[], Any], task_id: str) -> Exception | None:
        retries = 0
        while True:
            try:
                action()
                return None
            except Exception as e:
                if retries >= self._config.max_retries:
                    return e
                retries += 1
                get_logger(task_id).warning(
                    f"Rollback attempt failed ({e}), retrying "
                    f"{retries}/{self._config.max_retries}"
                )

    def _call_hook(self, entry: RollbackEntry, hook: Callable[..., Any], *args: Any) -> Any:
        try:
            return hook(*args)
        except Exception as e:
            raise RollbackError(
                f"Rollback hook '{hook.__name__}' failed for task '{entry.task_id}': {e}",
                task_id=entry.task_id,
            ) from e

    @property
    def rollback_stack(self) -> list[RollbackEntry]:
        """Копия стека отката в порядке выполнения."""
        return list(self._stack)

    @property
    def task_count(self) -> int:
        return len(self._stack)

    @property
    def has_tasks(self) -> bool:
        return bool(self._stack)

    @property
    def config(self) -> RollbackConfig:
        return replace(self._config)

    def update_config(self, **changes: Any) -> None:
        """Обновляет настройки отката.

        Raises:
            ConfigurationError: Если значения некорректны
        """
        self._config = replace(self._config, **changes)

    def clear(self) -> None:
        """Очищает стек и все привязки компенсаций."""
        self._stack.clear()
        self._compensations.clear()
        self._pending_compensations.clear()
