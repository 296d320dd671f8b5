"""Модели результатов выполнения и отката."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from release_sequencer.exceptions import TaskOrchestratorError, classify_error


class TaskStatus(Enum):
    """Итоговый статус задачи в рамках одного запуска.

    Attributes:
        PENDING: Задача не рассматривалась (в том числе перепрыгнута)
        COMPLETED: Задача выполнена успешно
        SKIPPED: Задача пропущена по условию
        FAILED: Задача завершилась с ошибкой
    """

    PENDING = "pending"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class RollbackResult:
    """Результат отката.

    Attributes:
        success: True, если ни одна задача не осталась в состоянии ошибки
        rolled_back_tasks: Задачи, откат которых выполнен (в порядке отката)
        failed_tasks: Задачи, откат которых не удался
        skipped_tasks: Задачи без undo или с подавленным откатом
        errors: Собранные ошибки отката
        duration_ms: Длительность отката в миллисекундах
    """

    success: bool
    rolled_back_tasks: tuple[str, ...] = ()
    failed_tasks: tuple[str, ...] = ()
    skipped_tasks: tuple[str, ...] = ()
    errors: tuple[TaskOrchestratorError, ...] = ()
    duration_ms: float = 0.0

    @classmethod
    def empty(cls) -> RollbackResult:
        """Успешный пустой результат (нечего откатывать)."""
        return cls(success=True)


@dataclass(frozen=True)
class WorkflowExecutionResult:
    """Результат одного запуска workflow.

    Создается ровно один раз за запуск и после создания не меняется.

    Attributes:
        success: Общий результат
        executed_tasks: Успешно выполненные задачи в порядке выполнения
        skipped_tasks: Задачи, пропущенные по условию
        failed_task: Задача, выбросившая ошибку (не входит в executed_tasks)
        error: Ошибка, остановившая запуск
        rollback_executed: Была ли предпринята попытка отката
        rollback_result: Результат отката, если он выполнялся
        start_time: Время начала
        end_time: Время окончания
        execution_time_ms: Длительность в миллисекундах
        execution_id: Идентификатор запуска
    """

    success: bool
    executed_tasks: tuple[str, ...]
    skipped_tasks: tuple[str, ...]
    start_time: datetime
    end_time: datetime
    execution_time_ms: float
    failed_task: str | None = None
    error: TaskOrchestratorError | None = None
    rollback_executed: bool = False
    rollback_result: RollbackResult | None = None
    execution_id: str | None = None

    def status_of(self, task_id: str) -> TaskStatus:
        """Возвращает итоговый статус задачи в этом запуске."""
        if task_id in self.executed_tasks:
            return TaskStatus.COMPLETED
        if task_id in self.skipped_tasks:
            return TaskStatus.SKIPPED
        if task_id == self.failed_task:
            return TaskStatus.FAILED
        return TaskStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        """Сериализует результат для слоя представления."""
        return {
            "success": self.success,
            "execution_id": self.execution_id,
            "executed_tasks": list(self.executed_tasks),
            "skipped_tasks": list(self.skipped_tasks),
            "failed_task": self.failed_task,
            "error": None
            if self.error is None
            else {"kind": classify_error(self.error).value, "message": self.error.message},
            "rollback_executed": self.rollback_executed,
            "rollback_success": None
            if self.rollback_result is None
            else self.rollback_result.success,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "execution_time_ms": self.execution_time_ms,
        }
