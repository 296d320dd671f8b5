"""Интеграционные тесты release-sequencer."""

from __future__ import annotations

from typing import Any

from release_sequencer import (
    FunctionTask,
    RollbackStrategy,
    TaskBuilder,
    TaskGroupBuilder,
    TaskRegistry,
    TaskStatus,
    WorkflowContext,
    run,
)
from release_sequencer.skip_conditions import from_config, from_data


class TestReleaseWorkflow:
    """Тесты полного цикла релиза."""

    def test_failure_rolls_back_in_reverse(
        self,
        make_task: Any,
        execution_log: list[str],
        undo_log: list[str],
        context: WorkflowContext,
    ) -> None:
        """Тест: init -> bump -> changelog (ошибка) -> tag."""
        registry = TaskRegistry()
        registry.register(make_task("init"))
        registry.register(make_task("bump", ["init"]))
        registry.register(
            make_task("changelog", ["bump"], fail_with=RuntimeError("git log failed"))
        )
        registry.register(make_task("tag", ["changelog"]))

        result = run(registry, context)

        assert not result.success
        assert result.executed_tasks == ("init", "bump")
        assert result.failed_task == "changelog"
        assert result.rollback_executed
        assert result.rollback_result.rolled_back_tasks == ("bump", "init")
        assert undo_log == ["bump", "init"]
        assert execution_log == ["init", "bump"]
        assert result.status_of("tag") is TaskStatus.PENDING

    def test_successful_release(
        self, make_task: Any, execution_log: list[str], undo_log: list[str]
    ) -> None:
        registry = TaskRegistry(
            [make_task("init"), make_task("bump", ["init"]), make_task("tag", ["bump"])]
        )
        result = run(registry, WorkflowContext.create({"branch": "main"}))

        assert result.success
        assert execution_log == ["init", "bump", "tag"]
        assert undo_log == []
        assert result.execution_time_ms >= 0


class TestGroupedWorkflow:
    """Тесты запуска с группами задач."""

    def _registry(self, log: list[str], undo: list[str]) -> TaskRegistry:
        def step(name: str, key: str | None = None, value: Any = True) -> Any:
            def execute(ctx: WorkflowContext) -> WorkflowContext:
                log.append(name)
                return ctx.fork(key or name, value)

            return execute

        registry = TaskRegistry()
        registry.register(FunctionTask("init", step("init"), description="Initialize"))
        registry.register_group(
            TaskGroupBuilder("prepare")
            .description("Prepare release files")
            .task(
                TaskBuilder("bump")
                .description("Bump version")
                .depends_on("init")
                .execute(step("bump", "version", "1.3.0"))
                .with_undo(lambda ctx: undo.append("prepare:bump"))
                .build()
            )
            .task(
                TaskBuilder("changelog")
                .description("Write changelog")
                .depends_on("bump")
                .skip_when_and_jump_to(from_data("no_changes"), "git:commit")
                .execute(step("changelog"))
                .build()
            )
            .task(
                TaskBuilder("notes")
                .description("Render release notes")
                .depends_on("changelog")
                .execute(step("notes"))
                .build()
            )
            .build()
        )
        registry.register_group(
            TaskGroupBuilder("git")
            .description("Git operations")
            .depends_on_group("prepare")
            .task(
                TaskBuilder("commit")
                .description("Commit")
                .execute(step("commit"))
                .with_undo(lambda ctx: undo.append("git:commit"))
                .build()
            )
            .task(
                TaskBuilder("push")
                .description("Push")
                .depends_on("commit")
                .execute(step("push"))
                .build()
            )
            .build()
        )
        registry.register_group(
            TaskGroupBuilder("publish")
            .description("Publish release")
            .depends_on_group("git")
            .skip_when(from_config("skip_publish"), "Publishing disabled")
            .task(
                TaskBuilder("release")
                .description("Create release")
                .requires_features("github")
                .execute(step("release"))
                .build()
            )
            .build()
        )
        return registry

    def test_full_run(self) -> None:
        """Тест полного запуска с группами."""
        log: list[str] = []
        registry = self._registry(log, [])
        result = run(
            registry,
            WorkflowContext.create({"branch": "main"}),
            enabled_features={"github"},
        )

        assert result.success
        assert log == ["init", "bump", "changelog", "notes", "commit", "push", "release"]
        assert result.executed_tasks[-1] == "publish:release"

    def test_group_skip_and_feature_filter(self) -> None:
        """Тест пропуска группы по условию и фильтрации по фичам."""
        log: list[str] = []
        registry = self._registry(log, [])

        skipped = run(registry, WorkflowContext.create({"skip_publish": True}), enabled_features={"github"})
        assert skipped.skipped_tasks == ("publish:release",)

        filtered = run(registry, WorkflowContext.create())
        assert "publish:release" not in filtered.executed_tasks
        assert "publish:release" not in filtered.skipped_tasks

    def test_jump_over_tasks(self) -> None:
        """Тест перехода к задаче другой группы."""
        log: list[str] = []
        registry = self._registry(log, [])
        context = WorkflowContext.create(data={"no_changes": True})
        result = run(registry, context)

        assert result.success
        assert result.skipped_tasks == ("prepare:changelog",)
        assert "prepare:notes" not in result.executed_tasks
        assert log == ["init", "bump", "commit", "push"]

    def test_custom_rollback_across_groups(self) -> None:
        """Тест отката задач разных групп при ошибке."""
        log: list[str] = []
        undo: list[str] = []
        registry = self._registry(log, undo)

        def verify(ctx: WorkflowContext) -> WorkflowContext:
            raise RuntimeError("registry unreachable")

        registry.register(FunctionTask("verify", verify, dependencies=["git:push"]))
        result = run(registry, WorkflowContext.create(), rollback_strategy=RollbackStrategy.CUSTOM)

        assert result.failed_task == "verify"
        assert undo == ["git:commit", "prepare:bump"]
        assert result.rollback_result.success
