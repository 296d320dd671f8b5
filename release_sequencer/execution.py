"""Последовательное выполнение упорядоченного списка задач."""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Sequence

from release_sequencer.context import WorkflowContext
from release_sequencer.exceptions import (
    DependencyError,
    TaskExecutionError,
    TaskOrchestratorError,
    UnexpectedError,
    WorkflowTimeoutError,
)
from release_sequencer.interfaces import SkipDecision, Task
from release_sequencer.logging import get_logger
from release_sequencer.results import RollbackResult, WorkflowExecutionResult
from release_sequencer.rollback import RollbackManager, RollbackStrategy

DEFAULT_SKIP_REASON = "condition not met"


class CancellationToken:
    """Кооперативная отмена запуска.

    Срабатывает, если установлен внешний сигнал (threading.Event) или
    истек таймаут. Проверяется только между задачами.

    Пример использования:
        >>> stop = threading.Event()
        >>> token = CancellationToken(signal=stop, timeout_ms=60_000)
        >>> stop.set()
        >>> token.cancelled
        True
    """

    def __init__(
        self,
        signal: threading.Event | None = None,
        timeout_ms: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._signal = signal
        self._timeout_ms = timeout_ms
        self._clock = clock
        self._deadline = clock() + timeout_ms / 1000 if timeout_ms else None

    @property
    def timed_out(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return (self._signal is not None and self._signal.is_set()) or self.timed_out

    def raise_if_cancelled(self) -> None:
        """Выбрасывает WorkflowTimeoutError, если отмена сработала.

        Raises:
            WorkflowTimeoutError: Сигнал установлен или истек таймаут
        """
        if self._signal is not None and self._signal.is_set():
            raise WorkflowTimeoutError("Workflow execution was aborted")
        if self.timed_out:
            raise WorkflowTimeoutError(
                f"Workflow execution timed out after {self._timeout_ms} ms"
            )


class ExecutionStrategy(ABC):
    """Абстрактная стратегия выполнения упорядоченного списка задач."""

    @abstractmethod
    def execute(
        self, tasks: Sequence[Task], context: WorkflowContext
    ) -> WorkflowExecutionResult:
        """Выполняет задачи и возвращает результат запуска."""
        ...


class SequentialExecutionStrategy(ExecutionStrategy):
    """Выполняет задачи строго по одной, в порядке списка.

    Для каждой задачи:
    1. Проверяет отмену
    2. Проверяет, что зависимости не стоят в списке позже задачи
    3. Вычисляет условие пропуска; при ``skip_to_tasks`` переходит к первой
       подходящей задаче из оставшихся
    4. Выполняет задачу и передает полученный контекст следующей

    При ошибке выполнение останавливается и, если откат включен,
    выполненные задачи откатываются в обратном порядке.

    Пример использования:
        >>> strategy = SequentialExecutionStrategy(enable_rollback=True)
        >>> result = strategy.execute([init, bump, changelog], context)
        >>> result.executed_tasks
        ('init', 'bump', 'changelog')

    Attributes:
        rollback_manager: Менеджер отката этого запуска
        rollback_strategy: Стратегия отката
        enable_rollback: Выполнять ли откат при ошибке
        cancellation: Токен отмены
        dry_run: Режим пробного запуска (только предупреждение в логе)
        skipped_satisfies_dependencies: Считать ли пропущенные задачи
            выполненными зависимостями
    """

    def __init__(
        self,
        rollback_manager: RollbackManager | None = None,
        *,
        rollback_strategy: RollbackStrategy = RollbackStrategy.REVERSE,
        enable_rollback: bool = True,
        cancellation: CancellationToken | None = None,
        dry_run: bool = False,
        skipped_satisfies_dependencies: bool = True,
        execution_id: str | None = None,
    ) -> None:
        self.rollback_manager = rollback_manager or RollbackManager()
        self.rollback_strategy = rollback_strategy
        self.enable_rollback = enable_rollback
        self.cancellation = cancellation or CancellationToken()
        self.dry_run = dry_run
        self.skipped_satisfies_dependencies = skipped_satisfies_dependencies
        self.execution_id = execution_id

    def execute(
        self, tasks: Sequence[Task], context: WorkflowContext
    ) -> WorkflowExecutionResult:
        """Выполняет задачи в порядке списка.

        Args:
            tasks: Упорядоченный список задач
            context: Исходный контекст

        Returns:
            WorkflowExecutionResult (всегда ровно один)
        """
        logger = get_logger()
        start_time = datetime.now()
        started = time.perf_counter()

        logger.info(
            f"Starting execution of {len(tasks)} tasks",
            extra={"execution_id": self.execution_id, "dry_run": self.dry_run},
        )
        if self.dry_run:
            logger.warning("DRY RUN mode: tasks must not perform side effects")

        positions = {task.id: index for index, task in enumerate(tasks)}
        executed: list[str] = []
        skipped: list[str] = []
        executed_set: set[str] = set()
        current: Task | None = None
        index = 0

        try:
            while index < len(tasks):
                self.cancellation.raise_if_cancelled()
                current = task = tasks[index]
                task_logger = get_logger(task.id)

                blocked_by = self._check_dependencies(task, index, positions, executed_set)
                if blocked_by is not None:
                    skipped.append(task.id)
                    task_logger.info(f"Skipped - dependency '{blocked_by}' did not execute")
                    index += 1
                    continue

                decision = self._evaluate_skip(task, context)
                if decision is not None and decision.should_skip:
                    skipped.append(task.id)
                    task_logger.info(f"Skipped - {decision.reason or DEFAULT_SKIP_REASON}")
                    index = self._next_index(tasks, index, decision.skip_to_tasks)
                    continue

                context = self._execute_task(task, context)
                executed.append(task.id)
                executed_set.add(task.id)
                if task.can_undo() or self.rollback_manager.has_compensation(task.id):
                    self.rollback_manager.add_task(task)
                index += 1

        except TaskOrchestratorError as error:
            failed_task = None
            if current is not None and not isinstance(error, WorkflowTimeoutError):
                failed_task = current.id
            return self._failure(
                error, failed_task, executed, skipped, context, start_time, started
            )
        except Exception as e:
            get_logger().error(f"Unexpected error during execution: {e}", exc_info=True)
            unexpected = UnexpectedError(f"Unexpected error: {e}")
            unexpected.__cause__ = e
            return self._failure(
                unexpected,
                current.id if current is not None else None,
                executed,
                skipped,
                context,
                start_time,
                started,
            )

        end_time = datetime.now()
        elapsed = (time.perf_counter() - started) * 1000
        logger.info(
            f"Workflow completed in {elapsed:.0f} ms: {len(executed)} executed, "
            f"{len(skipped)} skipped"
        )
        return WorkflowExecutionResult(
            success=True,
            executed_tasks=tuple(executed),
            skipped_tasks=tuple(skipped),
            start_time=start_time,
            end_time=end_time,
            execution_time_ms=elapsed,
            execution_id=self.execution_id,
        )

    def _check_dependencies(
        self,
        task: Task,
        index: int,
        positions: dict[str, int],
        executed: set[str],
    ) -> str | None:
        """Проверяет зависимости задачи перед ее рассмотрением.

        Зависимости вне списка не проверяются (их отсекает валидация
        оркестратора или фильтр фич).

        Returns:
            Идентификатор невыполненной зависимости, если пропущенные
            задачи не считаются выполненными, иначе None

        Raises:
            DependencyError: Если зависимость стоит в списке позже задачи
        """
        for dep in task.dependencies:
            position = positions.get(dep)
            if position is None:
                continue
            if position > index:
                raise DependencyError(
                    f"Task '{task.id}' depends on '{dep}' which is scheduled after it"
                )
            if not self.skipped_satisfies_dependencies and dep not in executed:
                return dep
        return None

    def _evaluate_skip(self, task: Task, context: WorkflowContext) -> SkipDecision | None:
        """Вычисляет условие пропуска задачи.

        Raises:
            TaskExecutionError: Если условие выбросило исключение или вернуло
                не SkipDecision и не None
        """
        try:
            decision = task.should_skip(context)
        except Exception as e:
            get_logger(task.id).error(f"Skip condition failed: {e}", exc_info=True)
            raise TaskExecutionError(
                f"Error evaluating skip condition of task '{task.id}': {e}",
                task_id=task.id,
            ) from e

        if decision is not None and not isinstance(decision, SkipDecision):
            get_logger(task.id).error(
                f"Skip condition returned {type(decision).__name__} instead of a SkipDecision"
            )
            raise TaskExecutionError(
                f"Skip condition of task '{task.id}' must return a SkipDecision or None, "
                f"got {type(decision).__name__}",
                task_id=task.id,
            )
        return decision

    def _next_index(
        self, tasks: Sequence[Task], index: int, skip_to_tasks: Sequence[str]
    ) -> int:
        """Индекс следующей задачи после пропуска.

        Переход к задачам из skip_to_tasks возможен только вперед; если ни
        одна из них не найдена среди оставшихся, выполнение продолжается со
        следующей задачи.
        """
        if not skip_to_tasks:
            return index + 1
        targets = set(skip_to_tasks)
        for position in range(index + 1, len(tasks)):
            if tasks[position].id in targets:
                bypassed = [t.id for t in tasks[index + 1 : position]]
                if bypassed:
                    get_logger(tasks[index].id).info(
                        f"Jumping to '{tasks[position].id}', bypassing: {', '.join(bypassed)}"
                    )
                return position
        get_logger(tasks[index].id).debug(
            f"Skip targets not found in remaining tasks: {', '.join(skip_to_tasks)}"
        )
        return index + 1

    def _execute_task(self, task: Task, context: WorkflowContext) -> WorkflowContext:
        """Выполняет одну задачу.

        Raises:
            TaskExecutionError: Если задача выбросила исключение или вернула
                не WorkflowContext
        """
        logger = get_logger(task.id)
        logger.debug("Executing task")

        try:
            result = task.execute(context)
        except Exception as e:
            logger.error(f"Task execution failed: {e}", exc_info=True)
            raise TaskExecutionError(
                f"Error executing task '{task.id}': {e}",
                task_id=task.id,
            ) from e

        if not isinstance(result, WorkflowContext):
            logger.error(f"Task returned {type(result).__name__} instead of a context")
            raise TaskExecutionError(
                f"Task '{task.id}' must return a WorkflowContext, "
                f"got {type(result).__name__}",
                task_id=task.id,
            )
        logger.info("Task completed successfully")
        return result

    def _failure(
        self,
        error: TaskOrchestratorError,
        failed_task: str | None,
        executed: list[str],
        skipped: list[str],
        context: WorkflowContext,
        start_time: datetime,
        started: float,
    ) -> WorkflowExecutionResult:
        """Формирует результат неудачного запуска, при необходимости выполняя откат."""
        logger = get_logger()
        logger.error(f"Workflow failed: {error.message}")

        rollback_result: RollbackResult | None = None
        rollback_executed = False
        if (
            self.enable_rollback
            and self.rollback_strategy is not RollbackStrategy.NONE
            and self.rollback_manager.has_tasks
        ):
            rollback_executed = True
            try:
                rollback_result = self.rollback_manager.execute_rollback(
                    context, self.rollback_strategy
                )
            except TaskOrchestratorError as e:
                rollback_result = RollbackResult(success=False, errors=(e,))

        return WorkflowExecutionResult(
            success=False,
            executed_tasks=tuple(executed),
            skipped_tasks=tuple(skipped),
            failed_task=failed_task,
            error=error,
            rollback_executed=rollback_executed,
            rollback_result=rollback_result,
            start_time=start_time,
            end_time=datetime.now(),
            execution_time_ms=(time.perf_counter() - started) * 1000,
            execution_id=self.execution_id,
        )
