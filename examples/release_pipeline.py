"""
Пример конвейера релиза на release-sequencer.

Демонстрирует:
- Группы задач (prepare, git, publish) с зависимостями между группами
- Условия пропуска и переход к задаче другой группы
- Фильтрацию задач по фичам
- Компенсирующую задачу для публикации
- Отмену по таймауту
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from release_sequencer import (
    FunctionTask,
    RollbackStrategy,
    TaskBuilder,
    TaskGroupBuilder,
    TaskOrchestrator,
    TaskRegistry,
    WorkflowContext,
    setup_logging,
)
from release_sequencer.skip_conditions import config_equals, from_config, from_data


@dataclass
class FakeRepository:
    """Репозиторий в памяти вместо git и реестра пакетов."""

    version: str = "1.2.3"
    commits: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    releases: list[str] = field(default_factory=list)
    fail_on_notify: bool = False


def build_registry(repo: FakeRepository) -> TaskRegistry:
    """Собирает реестр задач релиза."""
    registry = TaskRegistry()

    def init(ctx: WorkflowContext) -> WorkflowContext:
        return ctx.fork_many(
            {"current_version": repo.version, "no_changes": not ctx.config.get("changes", True)}
        )

    registry.register(FunctionTask("init", init, description="Read repository state"))

    def bump(ctx: WorkflowContext) -> WorkflowContext:
        major, minor, patch = ctx.require("current_version").split(".")
        if ctx.config.get("release_type") == "minor":
            version = f"{major}.{int(minor) + 1}.0"
        else:
            version = f"{major}.{minor}.{int(patch) + 1}"
        repo.version = version
        return ctx.fork("version", version)

    def restore_version(ctx: WorkflowContext) -> None:
        repo.version = ctx.require("current_version")

    registry.register_group(
        TaskGroupBuilder("prepare")
        .description("Prepare release files")
        .task(
            TaskBuilder("bump")
            .description("Bump package version")
            .depends_on("init")
            .execute(bump)
            .with_undo(restore_version)
            .build()
        )
        .task(
            TaskBuilder("changelog")
            .description("Update CHANGELOG.md")
            .depends_on("bump")
            .skip_when_and_jump_to(from_data("no_changes"), "git:commit")
            .execute(lambda ctx: ctx.fork("changelog", f"## {ctx.require('version')}"))
            .build()
        )
        .build()
    )

    def commit(ctx: WorkflowContext) -> WorkflowContext:
        repo.commits.append(f"chore(release): {ctx.require('version')}")
        return ctx

    def tag(ctx: WorkflowContext) -> WorkflowContext:
        repo.tags.append(f"v{ctx.require('version')}")
        return ctx

    registry.register_group(
        TaskGroupBuilder("git")
        .description("Commit and tag")
        .depends_on_group("prepare")
        .task(
            TaskBuilder("commit")
            .description("Commit release files")
            .execute(commit)
            .with_undo(lambda ctx: repo.commits.pop())
            .build()
        )
        .task(
            TaskBuilder("tag")
            .description("Create git tag")
            .depends_on("commit")
            .execute(tag)
            .with_undo(lambda ctx: repo.tags.pop())
            .build()
        )
        .build()
    )

    def publish(ctx: WorkflowContext) -> WorkflowContext:
        repo.releases.append(ctx.require("version"))
        return ctx

    def notify(ctx: WorkflowContext) -> WorkflowContext:
        if repo.fail_on_notify:
            raise ConnectionError("chat webhook returned 502")
        return ctx

    registry.register_group(
        TaskGroupBuilder("publish")
        .description("Publish release")
        .depends_on_group("git")
        .skip_when(from_config("skip_publish"), "Publishing disabled")
        .task(
            TaskBuilder("github")
            .description("Create GitHub release")
            .requires_features("github-release")
            .execute(publish)
            .build()
        )
        .task(
            TaskBuilder("notify")
            .description("Announce release")
            .depends_on("github")
            .skip_when(config_equals("release_type", "prerelease"), "Prerelease is not announced")
            .execute(notify)
            .build()
        )
        .build()
    )
    return registry


def main() -> None:
    """Основная функция для запуска примера."""
    print("=== Конвейер релиза ===\n")
    setup_logging(logging.INFO)

    # Успешный релиз
    repo = FakeRepository()
    orchestrator = TaskOrchestrator.from_registry(
        build_registry(repo), {"enabled_features": {"github-release"}, "timeout_ms": 60_000}
    )
    result = orchestrator.run(WorkflowContext.create({"release_type": "minor"}))
    print(f"\nУспешно: {result.success}, версия: {repo.version}, теги: {repo.tags}")

    # Ошибка уведомления: публикация компенсируется, остальное откатывается
    repo = FakeRepository(fail_on_notify=True)
    orchestrator = TaskOrchestrator.from_registry(
        build_registry(repo),
        {
            "enabled_features": {"github-release"},
            "rollback_strategy": RollbackStrategy.COMPENSATION,
        },
    )
    orchestrator.register_compensation(
        "publish:github",
        FunctionTask("delete-github-release", lambda ctx: repo.releases.pop() and ctx),
    )
    result = orchestrator.run(WorkflowContext.create({"release_type": "patch"}))

    print(f"\nУспешно: {result.success}")
    print(f"Провалена задача: {result.failed_task}")
    if result.rollback_result is not None:
        print(f"Откачены задачи: {', '.join(result.rollback_result.rolled_back_tasks)}")
    print(f"Версия: {repo.version}, коммиты: {repo.commits}, релизы: {repo.releases}")


if __name__ == "__main__":
    main()
