"""
Базовый пример использования release-sequencer.

Демонстрирует простейший сценарий: две задачи с зависимостью и откат
при ошибке.
"""

from __future__ import annotations

from release_sequencer import (
    FunctionTask,
    Task,
    TaskRegistry,
    WorkflowContext,
    run,
    setup_logging,
)


class BumpVersionTask(Task):
    """Задача, которая вычисляет следующую версию."""

    @property
    def id(self) -> str:
        return "bump"

    @property
    def description(self) -> str:
        return "Bump package version"

    @property
    def dependencies(self) -> list[str]:
        return ["init"]

    def execute(self, context: WorkflowContext) -> WorkflowContext:
        """Вычисляет версию и кладет ее в контекст."""
        major, minor, patch = context.require("current_version").split(".")
        version = f"{major}.{minor}.{int(patch) + 1}"
        print(f"Bumping version to {version}")
        return context.fork("version", version)

    def undo(self, context: WorkflowContext) -> None:
        print(f"Restoring version {context.get('current_version')}")


def main() -> None:
    """Основная функция для запуска примера."""
    print("=== Базовый пример использования release-sequencer ===\n")
    setup_logging()

    # Создаем реестр задач
    registry = TaskRegistry()
    registry.register(
        FunctionTask(
            "init",
            lambda ctx: ctx.fork("current_version", "1.2.3"),
            description="Read current version",
        )
    )
    registry.register(BumpVersionTask())

    # Выполняем задачи
    result = run(registry, WorkflowContext.create({"branch": "main"}))

    print(f"\nУспешно: {result.success}")
    print(f"Выполнено задач: {', '.join(result.executed_tasks)}")

    # Добавляем задачу, которая всегда падает
    def tag(ctx: WorkflowContext) -> WorkflowContext:
        raise RuntimeError(f"tag v{ctx.get('version')} already exists")

    registry.register(FunctionTask("tag", tag, dependencies=["bump"]))
    result = run(registry, WorkflowContext.create({"branch": "main"}))

    print(f"\nУспешно: {result.success}")
    print(f"Провалена задача: {result.failed_task}")
    print(f"Ошибка: {result.error}")
    if result.rollback_result is not None:
        print(f"Откачены задачи: {', '.join(result.rollback_result.rolled_back_tasks)}")


if __name__ == "__main__":
    main()
