"""Тесты для исключений release-sequencer."""

from __future__ import annotations

import pytest

from release_sequencer.exceptions import (
    CompensationNotFoundError,
    ConfigurationError,
    ContextKeyError,
    CycleError,
    DependencyError,
    DuplicateTaskError,
    ErrorKind,
    GroupConflictError,
    GroupNotFoundError,
    OptionsError,
    RollbackError,
    TaskExecutionError,
    TaskOrchestratorError,
    UnexpectedError,
    WorkflowTimeoutError,
    classify_error,
)


class TestTaskOrchestratorError:
    """Тесты для базового исключения TaskOrchestratorError."""

    def test_base_exception_creation(self) -> None:
        """Тест создания базового исключения."""
        error = TaskOrchestratorError("Test error message")
        assert str(error) == "Test error message"
        assert error.message == "Test error message"
        assert error.details == {}

    def test_details(self) -> None:
        error = TaskOrchestratorError("Invalid", details={"errors": ["a"]})
        assert error.details == {"errors": ["a"]}


class TestSpecificErrors:
    """Тесты конкретных исключений."""

    def test_task_execution_error_with_task_id(self) -> None:
        """Тест создания TaskExecutionError с task_id."""
        error = TaskExecutionError("Execution failed", task_id="bump")
        assert str(error) == "Execution failed"
        assert error.task_id == "bump"

    def test_rollback_error(self) -> None:
        error = RollbackError("Undo failed", task_id="bump")
        assert error.task_id == "bump"
        with pytest.raises(RollbackError, match="Undo failed"):
            raise error

    def test_cycle_error(self) -> None:
        """Тест CycleError с путем цикла."""
        error = CycleError("Circular dependency detected: A → B → A", "A", ["A", "B", "A"])
        assert error.task_id == "A"
        assert error.cycle == ["A", "B", "A"]
        assert error.details["cycle"] == ["A", "B", "A"]

    def test_context_key_error_str(self) -> None:
        """Тест: str(ContextKeyError) не добавляет кавычки KeyError."""
        error = ContextKeyError("Key 'version' not found in workflow context")
        assert str(error) == "Key 'version' not found in workflow context"
        assert isinstance(error, KeyError)


class TestExceptionHierarchy:
    """Тесты для проверки иерархии исключений."""

    @pytest.mark.parametrize(
        "error_class",
        [
            ConfigurationError,
            DuplicateTaskError,
            DependencyError,
            CycleError,
            OptionsError,
            GroupNotFoundError,
            GroupConflictError,
            CompensationNotFoundError,
            ContextKeyError,
            TaskExecutionError,
            RollbackError,
            WorkflowTimeoutError,
            UnexpectedError,
        ],
    )
    def test_all_exceptions_inherit_from_base(self, error_class: type) -> None:
        """Тест проверяет, что все исключения наследуются от TaskOrchestratorError."""
        assert issubclass(error_class, TaskOrchestratorError)

    def test_configuration_errors_are_value_errors(self) -> None:
        assert issubclass(ConfigurationError, ValueError)
        assert issubclass(CycleError, DependencyError)
        assert issubclass(CompensationNotFoundError, LookupError)


class TestClassifyError:
    """Тесты classify_error."""

    @pytest.mark.parametrize(
        ("error", "kind"),
        [
            (DuplicateTaskError("x"), ErrorKind.VALIDATION),
            (OptionsError("x"), ErrorKind.VALIDATION),
            (GroupNotFoundError("x"), ErrorKind.NOT_FOUND),
            (CompensationNotFoundError("x"), ErrorKind.NOT_FOUND),
            (GroupConflictError("x"), ErrorKind.CONFLICT),
            (WorkflowTimeoutError("x"), ErrorKind.TIMEOUT),
            (TaskExecutionError("x"), ErrorKind.FAILED),
            (RollbackError("x"), ErrorKind.FAILED),
            (UnexpectedError("x"), ErrorKind.UNEXPECTED),
            (RuntimeError("x"), ErrorKind.UNEXPECTED),
        ],
    )
    def test_classify(self, error: BaseException, kind: ErrorKind) -> None:
        assert classify_error(error) is kind
