"""Тесты для TaskOrchestrator и функции run."""

from __future__ import annotations

import threading
import uuid
from typing import Any
from unittest.mock import Mock

import pytest

from release_sequencer.context import WorkflowContext
from release_sequencer.core import TaskOrchestrator, TaskRegistry, run
from release_sequencer.exceptions import (
    DependencyError,
    DuplicateTaskError,
    ErrorKind,
    OptionsError,
    TaskExecutionError,
    UnexpectedError,
    WorkflowTimeoutError,
)
from release_sequencer.interfaces import FunctionTask, Task
from release_sequencer.options import OrchestratorOptions
from release_sequencer.validators import DependencyValidator


class DependentsTask(Task):
    """Задача, объявляющая только зависимые задачи."""

    def __init__(self, task_id: str, dependents: list[str], log: list[str]) -> None:
        self._id = task_id
        self._dependents = dependents
        self.log = log

    @property
    def id(self) -> str:
        return self._id

    @property
    def dependents(self) -> list[str]:
        return self._dependents

    def execute(self, context: WorkflowContext) -> WorkflowContext:
        self.log.append(self._id)
        return context


def _mock_task(task_id: str, dependencies: list[str]) -> Mock:
    task = Mock(spec=Task)
    task.id = task_id
    task.dependencies = dependencies
    task.dependents = []
    task.required_features = []
    task.description = ""
    return task


class TestOrchestratorRun:
    """Тесты успешных запусков."""

    def test_orders_tasks_by_dependencies(
        self, make_task: Any, execution_log: list[str], context: WorkflowContext
    ) -> None:
        """Тест: задачи переупорядочиваются по зависимостям."""
        tasks = [make_task("tag", ["bump"]), make_task("bump", ["init"]), make_task("init")]
        result = TaskOrchestrator(tasks).run(context)

        assert result.success
        assert result.executed_tasks == ("init", "bump", "tag")
        assert execution_log == ["init", "bump", "tag"]

    def test_default_context(self, make_task: Any) -> None:
        result = TaskOrchestrator([make_task("init")]).run()
        assert result.success

    def test_declared_dependents_order_tasks(self, context: WorkflowContext) -> None:
        """Тест: объявленные dependents задают порядок выполнения."""
        log: list[str] = []
        tasks = [
            FunctionTask("publish", lambda ctx: log.append("publish") or ctx),
            DependentsTask("build", ["publish"], log),
        ]
        result = TaskOrchestrator(tasks).run(context)

        assert result.success
        assert log == ["build", "publish"]

    def test_execution_id(self, make_task: Any, context: WorkflowContext) -> None:
        """Тест идентификатора запуска."""
        result = TaskOrchestrator([make_task("a")]).run(context)
        uuid.UUID(result.execution_id)

        execution_id = str(uuid.uuid4())
        result = TaskOrchestrator([make_task("a")], {"execution_id": execution_id}).run(context)
        assert result.execution_id == execution_id

    def test_options_model_accepted(self, make_task: Any, context: WorkflowContext) -> None:
        options = OrchestratorOptions(name="release", enable_rollback=False)
        result = TaskOrchestrator([make_task("a")], options).run(context)
        assert result.success
        assert result.execution_id == options.execution_id

    def test_from_registry(self, make_task: Any, context: WorkflowContext) -> None:
        registry = TaskRegistry([make_task("init"), make_task("bump", ["init"])])
        result = TaskOrchestrator.from_registry(registry).run(context)
        assert result.executed_tasks == ("init", "bump")


class TestFeatureFiltering:
    """Тесты фильтрации задач по фичам."""

    def test_tasks_without_enabled_features_are_filtered(
        self, make_task: Any, execution_log: list[str], context: WorkflowContext
    ) -> None:
        """Тест: задачи с выключенными фичами не выполняются и не попадают в результат."""
        tasks = [
            make_task("init"),
            make_task("npm-publish", ["init"], required_features=["npm"]),
            make_task("gh-release", ["init"], required_features=["github"]),
        ]
        result = TaskOrchestrator(tasks, {"enabled_features": {"github"}}).run(context)

        assert result.success
        assert result.executed_tasks == ("init", "gh-release")
        assert "npm-publish" not in result.skipped_tasks
        assert execution_log == ["init", "gh-release"]

    def test_feature_flags_override(
        self, make_task: Any, execution_log: list[str], context: WorkflowContext
    ) -> None:
        tasks = [make_task("a", required_features=["x"]), make_task("b", required_features=["y"])]
        options = {"enabled_features": ["x", "y"], "feature_flags": {"y": False}}
        result = TaskOrchestrator(tasks, options).run(context)
        assert execution_log == ["a"]

    def test_dependency_on_filtered_task_is_satisfied(
        self, make_task: Any, context: WorkflowContext
    ) -> None:
        tasks = [make_task("npm", required_features=["npm"]), make_task("notify", ["npm"])]
        result = TaskOrchestrator(tasks).run(context)
        assert result.executed_tasks == ("notify",)


class TestOrchestratorErrors:
    """Тесты: run никогда не выбрасывает исключения."""

    def test_invalid_options(self, make_task: Any, execution_log: list[str]) -> None:
        """Тест некорректных опций."""
        result = TaskOrchestrator([make_task("a")], {"rollback_strategy": "sideways"}).run()

        assert not result.success
        assert isinstance(result.error, OptionsError)
        assert result.error.kind is ErrorKind.VALIDATION
        assert "rollback_strategy" in result.error.message
        assert result.error.details["errors"]
        assert execution_log == []

    def test_unknown_option(self, make_task: Any) -> None:
        result = TaskOrchestrator([make_task("a")], {"parallel": True}).run()
        assert isinstance(result.error, OptionsError)

    def test_invalid_feature_name(self, make_task: Any) -> None:
        result = TaskOrchestrator([make_task("a")], {"enabled_features": {"bad name!"}}).run()
        assert isinstance(result.error, OptionsError)

    def test_duplicate_task_ids(self, make_task: Any) -> None:
        result = TaskOrchestrator([make_task("a"), make_task("a")]).run()
        assert isinstance(result.error, DuplicateTaskError)
        assert result.executed_tasks == ()

    def test_missing_dependency(self, make_task: Any, execution_log: list[str]) -> None:
        """Тест отсутствующей зависимости."""
        result = TaskOrchestrator([make_task("bump", ["init"])]).run()

        assert not result.success
        assert isinstance(result.error, DependencyError)
        assert "Task bump depends on non-existent task: init" in result.error.message
        assert result.failed_task is None
        assert execution_log == []

    def test_missing_dependent(self) -> None:
        result = TaskOrchestrator([DependentsTask("build", ["deploy"], [])]).run()
        assert isinstance(result.error, DependencyError)
        assert "declares non-existent dependent: deploy" in result.error.message

    def test_cycle_detected(self) -> None:
        """Тест обнаружения цикла (через моки)."""
        tasks = [_mock_task("A", ["C"]), _mock_task("B", ["A"]), _mock_task("C", ["B"])]
        result = TaskOrchestrator(tasks).run()

        assert not result.success
        assert isinstance(result.error, DependencyError)
        assert "Circular dependency detected" in result.error.message
        for task in tasks:
            task.execute.assert_not_called()

    def test_custom_validator(self, make_task: Any) -> None:
        validator = Mock(spec=DependencyValidator)
        validator.validate.side_effect = DependencyError("rejected")
        result = TaskOrchestrator([make_task("a")], dependency_validator=validator).run()

        assert result.error.message == "rejected"
        validator.validate.assert_called_once()

    def test_unexpected_error_is_wrapped(self, make_task: Any) -> None:
        """Тест: неожиданное исключение оборачивается в UnexpectedError."""
        validator = Mock(spec=DependencyValidator)
        validator.validate.side_effect = RuntimeError("validator crashed")
        result = TaskOrchestrator([make_task("a")], dependency_validator=validator).run()

        assert not result.success
        assert isinstance(result.error, UnexpectedError)
        assert result.error.kind is ErrorKind.UNEXPECTED
        assert isinstance(result.error.__cause__, RuntimeError)

    def test_task_failure_with_rollback(
        self, make_task: Any, undo_log: list[str], context: WorkflowContext
    ) -> None:
        tasks = [make_task("init"), make_task("bump", ["init"], fail_with=OSError("read-only"))]
        result = TaskOrchestrator(tasks).run(context)

        assert result.failed_task == "bump"
        assert isinstance(result.error, TaskExecutionError)
        assert result.rollback_executed
        assert undo_log == ["init"]

    def test_rollback_disabled_by_option(
        self, make_task: Any, undo_log: list[str], context: WorkflowContext
    ) -> None:
        tasks = [make_task("init"), make_task("bump", ["init"], fail_with=OSError("read-only"))]
        result = TaskOrchestrator(tasks, enable_rollback=False).run(context)

        assert not result.rollback_executed
        assert undo_log == []

    def test_cancellation_signal_option(self, make_task: Any) -> None:
        signal = threading.Event()
        signal.set()
        result = TaskOrchestrator([make_task("a")], cancellation_signal=signal).run()

        assert isinstance(result.error, WorkflowTimeoutError)
        assert result.executed_tasks == ()


class TestCompensation:
    """Тесты компенсирующих задач через оркестратор."""

    def test_compensation_strategy(
        self, make_task: Any, undo_log: list[str], context: WorkflowContext
    ) -> None:
        """Тест: компенсация выполняется вместо undo."""
        compensated: list[str] = []
        tasks = [
            make_task("init"),
            FunctionTask("publish", lambda ctx: ctx.fork("published", True), dependencies=["init"]),
            make_task("notify", ["publish"], fail_with=RuntimeError("smtp down")),
        ]
        orchestrator = TaskOrchestrator(tasks, rollback_strategy="compensation")
        orchestrator.register_compensation(
            "publish",
            FunctionTask(
                "unpublish",
                lambda ctx: compensated.append(str(ctx.get("published"))) or ctx,
            ),
        )
        result = orchestrator.run(context)

        assert result.failed_task == "notify"
        assert result.rollback_result.rolled_back_tasks == ("publish", "init")
        assert compensated == ["True"]
        assert undo_log == ["init"]

    def test_compensation_not_used_by_reverse_strategy(
        self, make_task: Any, undo_log: list[str], context: WorkflowContext
    ) -> None:
        compensated: list[str] = []
        tasks = [make_task("init"), make_task("notify", ["init"], fail_with=RuntimeError("x"))]
        orchestrator = TaskOrchestrator(tasks)
        orchestrator.register_compensation(
            "init", FunctionTask("c", lambda ctx: compensated.append("c") or ctx)
        )
        orchestrator.run(context)

        assert compensated == []
        assert undo_log == ["init"]


class TestRunFunction:
    """Тесты функции run."""

    def test_run_with_list(self, make_task: Any, context: WorkflowContext) -> None:
        result = run([make_task("init"), make_task("bump", ["init"])], context)
        assert result.executed_tasks == ("init", "bump")

    def test_run_with_registry_and_overrides(
        self, make_task: Any, undo_log: list[str], context: WorkflowContext
    ) -> None:
        """Тест запуска реестра с отдельными опциями."""
        registry = TaskRegistry()
        registry.register(make_task("init"))
        registry.register(make_task("bump", ["init"], fail_with=RuntimeError("boom")))
        result = run(registry, context, {"dry_run": True}, enable_rollback=False)

        assert not result.success
        assert not result.rollback_executed
        assert undo_log == []

    def test_to_dict(self, make_task: Any, context: WorkflowContext) -> None:
        """Тест сериализации результата."""
        result = run([make_task("init"), make_task("bump", ["init"], fail_with=RuntimeError("boom"))], context)
        data = result.to_dict()

        assert data["success"] is False
        assert data["executed_tasks"] == ["init"]
        assert data["failed_task"] == "bump"
        assert data["error"]["kind"] == "failed"
        assert "boom" in data["error"]["message"]
        assert data["rollback_executed"] is True
        assert data["rollback_success"] is True
        assert data["execution_id"] == result.execution_id
        assert not hasattr(result, "metadata")


class TestLargeGraphs:
    """Тесты длинных цепочек задач."""

    def test_deep_chain_in_reverse_order(self, make_task: Any, execution_log: list[str]) -> None:
        """Тест: цепочка из 1500 задач выполняется целиком при обратном порядке на входе."""
        tasks = [make_task("t0", undoable=False)] + [
            make_task(f"t{i}", [f"t{i - 1}"], undoable=False) for i in range(1, 1500)
        ]
        result = run(list(reversed(tasks)))

        assert result.success, result.error
        assert len(result.executed_tasks) == 1500
        assert execution_log[0] == "t0"
        assert execution_log[-1] == "t1499"
