"""Исключения для release-sequencer."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Категория ошибки (вид, а не конкретный тип).

    Attributes:
        VALIDATION: Некорректная регистрация или опции
        NOT_FOUND: Отсутствует группа или компенсирующая задача
        CONFLICT: Повторная регистрация группы
        TIMEOUT: Сработала отмена или истек таймаут
        FAILED: Ошибка в execute или undo задачи
        UNEXPECTED: Все, что не удалось классифицировать
    """

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"
    FAILED = "failed"
    UNEXPECTED = "unexpected"


class TaskOrchestratorError(Exception):
    """Базовое исключение для всех ошибок release-sequencer.

    Все исключения компонента наследуются от этого класса.
    Вид ошибки доступен через атрибут класса ``kind``.
    """

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Инициализирует исключение.

        Args:
            message: Сообщение об ошибке
            details: Дополнительные сведения (например, список ошибок)
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(TaskOrchestratorError, ValueError):
    """Некорректная конфигурация задач, групп или стратегии отката."""

    kind = ErrorKind.VALIDATION


class DuplicateTaskError(ConfigurationError):
    """Задача с таким идентификатором уже зарегистрирована."""


class DependencyError(ConfigurationError):
    """Исключение, возникающее при нарушении зависимостей между задачами.

    Выбрасывается когда:
    - Зависимость задачи не зарегистрирована
    - Зависимость или зависимая задача отсутствуют в наборе задач
    - Зависимость стоит в списке позже самой задачи
    """


class CycleError(DependencyError):
    """Обнаружена циклическая зависимость."""

    def __init__(
        self, message: str, task_id: str, cycle: list[str] | None = None
    ) -> None:
        """Инициализирует исключение.

        Args:
            message: Описание цикла
            task_id: Задача, на которой замкнулся цикл
            cycle: Путь цикла (первый и последний элементы совпадают)
        """
        super().__init__(message, details={"task_id": task_id, "cycle": cycle or []})
        self.task_id = task_id
        self.cycle = cycle or []


class OptionsError(ConfigurationError):
    """Опции оркестратора не прошли валидацию схемы."""


class GroupNotFoundError(ConfigurationError):
    """Группа ссылается на незарегистрированную группу."""

    kind = ErrorKind.NOT_FOUND


class GroupConflictError(ConfigurationError):
    """Группа с таким идентификатором уже зарегистрирована."""

    kind = ErrorKind.CONFLICT


class CompensationNotFoundError(TaskOrchestratorError, LookupError):
    """Компенсирующая задача не найдена."""

    kind = ErrorKind.NOT_FOUND


class ContextKeyError(TaskOrchestratorError, KeyError):
    """Ключ отсутствует в данных контекста."""

    kind = ErrorKind.NOT_FOUND

    def __str__(self) -> str:
        return self.message


class TaskExecutionError(TaskOrchestratorError):
    """Исключение, возникающее при ошибке выполнения задачи.

    Выбрасывается когда задача не может быть выполнена из-за ошибки
    в логике выполнения или внешних факторов.
    """

    kind = ErrorKind.FAILED

    def __init__(self, message: str, task_id: str | None = None) -> None:
        """Инициализирует исключение.

        Args:
            message: Описание ошибки выполнения
            task_id: Идентификатор задачи, при выполнении которой произошла ошибка
        """
        super().__init__(message)
        self.task_id = task_id


class RollbackError(TaskOrchestratorError):
    """Ошибка при откате задачи (undo или компенсация)."""

    kind = ErrorKind.FAILED

    def __init__(self, message: str, task_id: str | None = None) -> None:
        """Инициализирует исключение.

        Args:
            message: Описание ошибки отката
            task_id: Идентификатор задачи, откат которой не удался
        """
        super().__init__(message)
        self.task_id = task_id


class WorkflowTimeoutError(TaskOrchestratorError):
    """Выполнение прервано сигналом отмены или по таймауту."""

    kind = ErrorKind.TIMEOUT


class UnexpectedError(TaskOrchestratorError):
    """Неклассифицированная ошибка, пойманная на границе оркестратора."""

    kind = ErrorKind.UNEXPECTED


def classify_error(error: BaseException) -> ErrorKind:
    """Возвращает вид ошибки.

    Args:
        error: Любое исключение

    Returns:
        ``error.kind`` для исключений пакета, иначе ErrorKind.UNEXPECTED
    """
    if isinstance(error, TaskOrchestratorError):
        return error.kind
    return ErrorKind.UNEXPECTED
