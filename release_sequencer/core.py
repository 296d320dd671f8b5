"""Ядро release_sequencer: TaskRegistry и TaskOrchestrator."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Iterator, Mapping, Sequence

from release_sequencer.context import WorkflowContext
from release_sequencer.exceptions import (
    CycleError,
    DependencyError,
    DuplicateTaskError,
    GroupConflictError,
    TaskOrchestratorError,
    UnexpectedError,
)
from release_sequencer.execution import CancellationToken, SequentialExecutionStrategy
from release_sequencer.features import FeatureManager
from release_sequencer.graph import (
    TopologicalOrder,
    iter_topological,
    log_graph_statistics,
    topological_sort,
)
from release_sequencer.groups import GroupExpansion, GroupRegistry, TaskGroup, expand_task_group
from release_sequencer.interfaces import Task
from release_sequencer.logging import get_logger
from release_sequencer.options import OrchestratorOptions, parse_options
from release_sequencer.results import WorkflowExecutionResult
from release_sequencer.rollback import RollbackConfig, RollbackManager
from release_sequencer.validators import DependencyValidator


class TaskRegistry:
    """Реестр задач для управления и доступа к задачам.

    Реестр хранит задачи и проверяет их при регистрации: идентификатор
    должен быть уникален, а все зависимости уже зарегистрированы.
    Итерация по реестру выдает задачи в порядке зависимостей.

    Пример использования:
        >>> from release_sequencer import FunctionTask, TaskRegistry
        >>>
        >>> registry = TaskRegistry()
        >>> registry.register(FunctionTask("init", lambda ctx: ctx))
        >>> registry.register(FunctionTask("bump", lambda ctx: ctx, dependencies=["init"]))
        >>> "bump" in registry
        True
        >>> [task.id for task in registry]
        ['init', 'bump']

    Attributes:
        _tasks: Словарь задач (идентификатор -> Task) в порядке регистрации
        _groups: Реестр групп
    """

    def __init__(self, tasks: Iterable[Task] | None = None) -> None:
        """Инициализирует реестр задач.

        Args:
            tasks: Задачи для начальной регистрации (в порядке зависимостей)

        Raises:
            DuplicateTaskError: Если идентификаторы задач повторяются
            DependencyError: Если зависимость не зарегистрирована раньше задачи
        """
        self._tasks: dict[str, Task] = {}
        self._groups = GroupRegistry()
        if tasks:
            for task in tasks:
                self.register(task)

    def register(self, task: Task) -> None:
        """Регистрирует задачу в реестре.

        Args:
            task: Задача для регистрации

        Raises:
            DuplicateTaskError: Если задача с таким идентификатором уже
                зарегистрирована
            DependencyError: Если зависимость задачи не зарегистрирована
        """
        task_id = task.id
        self._check_unique_id(task_id)
        for dep in task.dependencies:
            if dep not in self._tasks:
                raise DependencyError(
                    f"Task '{task_id}' depends on '{dep}' which is not registered"
                )
        self._tasks[task_id] = task
        get_logger(task_id).debug("Task registered")

    def register_group(self, group: TaskGroup) -> GroupExpansion:
        """Регистрирует группу задач.

        Группа разворачивается в задачи ``group:task``, каждая из которых
        регистрируется через ``register``.

        Args:
            group: Группа для регистрации

        Returns:
            GroupExpansion с развернутыми задачами и отображением идентификаторов

        Raises:
            GroupConflictError: Если группа уже зарегистрирована
            GroupNotFoundError: Если группа зависит от незарегистрированной группы
            DuplicateTaskError, DependencyError: Ошибки регистрации задач
        """
        if group.id in self._groups:
            raise GroupConflictError(f"Task group '{group.id}' is already registered")

        expansion = expand_task_group(group, self._groups)
        expanded_ids = {task.id for task in expansion.tasks}
        for task in expansion.tasks:
            self._check_unique_id(task.id)
            for dep in task.dependencies:
                if dep not in self._tasks and dep not in expanded_ids:
                    raise DependencyError(
                        f"Task '{task.id}' depends on '{dep}' which is not registered"
                    )

        # Задачи группы регистрируются в порядке внутренних зависимостей,
        # поэтому ссылки вперед внутри группы допустимы
        order = topological_sort(expansion.tasks)
        if order.has_cycle:
            raise self._cycle_error(order)
        by_id = {task.id: task for task in expansion.tasks}
        for task_id in order.order:
            self.register(by_id[task_id])
        self._groups.record(group.id, [task.id for task in expansion.tasks])

        get_logger().debug(
            f"Registered group '{group.id}' with {len(expansion.tasks)} task(s)"
        )
        return expansion

    def register_groups(self, groups: Iterable[TaskGroup]) -> list[GroupExpansion]:
        """Регистрирует группы по очереди, останавливаясь на первой ошибке."""
        return [self.register_group(group) for group in groups]

    def build_execution_order(self) -> list[Task]:
        """Возвращает задачи в порядке зависимостей.

        Returns:
            Список задач, где каждая стоит после всех своих зависимостей

        Raises:
            CycleError: Если в графе есть цикл
        """
        result = topological_sort(self._tasks.values())
        if result.has_cycle:
            raise self._cycle_error(result)
        return [self._tasks[task_id] for task_id in result.order]

    def __iter__(self) -> Iterator[Task]:
        """Ленивый обход задач в порядке зависимостей.

        Raises:
            CycleError: Если в графе есть цикл (при достижении цикла)
        """
        for item in iter_topological(list(self._tasks.values())):
            if isinstance(item, TopologicalOrder):
                raise self._cycle_error(item)
            yield self._tasks[item]

    def __len__(self) -> int:
        return len(self._tasks)

    def get(self, task_id: str) -> Task:
        """Получает задачу по идентификатору.

        Raises:
            KeyError: Если задача с указанным идентификатором не найдена
        """
        if task_id not in self._tasks:
            raise KeyError(f"Task '{task_id}' not found in registry")
        return self._tasks[task_id]

    def get_all(self) -> list[Task]:
        """Получает все задачи в порядке регистрации."""
        return list(self._tasks.values())

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __getitem__(self, task_id: str) -> Task:
        return self._tasks[task_id]

    @property
    def tasks(self) -> dict[str, Task]:
        """Копия словаря всех зарегистрированных задач."""
        return self._tasks.copy()

    @property
    def group_ids(self) -> list[str]:
        return self._groups.group_ids()

    def has_group(self, group_id: str) -> bool:
        return group_id in self._groups

    def get_group_task_ids(self, group_id: str) -> list[str]:
        """Идентификаторы задач группы в порядке объявления.

        Raises:
            KeyError: Если группа не зарегистрирована
        """
        if group_id not in self._groups:
            raise KeyError(f"Task group '{group_id}' not found in registry")
        return self._groups.task_ids(group_id)

    def _check_unique_id(self, task_id: str) -> None:
        if task_id in self._tasks:
            raise DuplicateTaskError(f"Task '{task_id}' is already registered")

    @staticmethod
    def _cycle_error(result: TopologicalOrder) -> CycleError:
        return CycleError(
            f"Circular dependency detected: {result.describe_cycle()}",
            task_id=result.cycle_task_id or "",
            cycle=list(result.cycle_path),
        )


class TaskOrchestrator:
    """Фасад запуска: валидация, фильтрация по фичам, выполнение.

    ``run`` никогда не выбрасывает исключения наружу: любая ошибка
    (валидация опций или конфигурации задач, ошибка выполнения)
    возвращается в WorkflowExecutionResult с ``success=False``.

    Пример использования:
        >>> orchestrator = TaskOrchestrator(
        ...     [init, bump, changelog, tag],
        ...     {"enabled_features": {"changelog"}, "rollback_strategy": "reverse"},
        ... )
        >>> result = orchestrator.run(WorkflowContext.create(config))
        >>> if not result.success:
        ...     print(result.failed_task, result.error)

    Attributes:
        tasks: Задачи запуска
        options: Опции (словарь или OrchestratorOptions), проверяются в run
        dependency_validator: Валидатор статической конфигурации
    """

    def __init__(
        self,
        tasks: Iterable[Task],
        options: OrchestratorOptions | Mapping[str, Any] | None = None,
        *,
        dependency_validator: DependencyValidator | None = None,
        **overrides: Any,
    ) -> None:
        self.tasks = list(tasks)
        self.options = options
        self.overrides = overrides
        self.dependency_validator = dependency_validator or DependencyValidator()
        self._compensations: list[tuple[str, Task]] = []

    @classmethod
    def from_registry(
        cls,
        registry: TaskRegistry,
        options: OrchestratorOptions | Mapping[str, Any] | None = None,
    ) -> TaskOrchestrator:
        """Создает оркестратор по всем задачам реестра."""
        return cls(registry.get_all(), options)

    def register_compensation(self, task_id: str, compensation: Task) -> None:
        """Привязывает компенсирующую задачу (стратегия отката compensation)."""
        self._compensations.append((task_id, compensation))

    def run(self, context: WorkflowContext | None = None) -> WorkflowExecutionResult:
        """Выполняет задачи.

        Args:
            context: Исходный контекст (по умолчанию пустой)

        Returns:
            WorkflowExecutionResult
        """
        if context is None:
            context = WorkflowContext.create()
        start_time = datetime.now()
        execution_id: str | None = None
        try:
            options = parse_options(self.options, **self.overrides)
            execution_id = options.execution_id
            tasks = self._prepare(options)
            strategy = self._build_strategy(options)
            return strategy.execute(tasks, context)
        except TaskOrchestratorError as e:
            return self._error_result(e, start_time, execution_id)
        except Exception as e:
            get_logger().error(f"Unexpected orchestrator error: {e}", exc_info=True)
            error = UnexpectedError(f"Unexpected error: {e}")
            error.__cause__ = e
            return self._error_result(error, start_time, execution_id)

    def _prepare(self, options: OrchestratorOptions) -> list[Task]:
        """Проверяет конфигурацию, упорядочивает и фильтрует задачи.

        Raises:
            DuplicateTaskError: Если идентификаторы задач повторяются
            DependencyError: Если нарушены зависимости или есть цикл
        """
        seen: set[str] = set()
        for task in self.tasks:
            if task.id in seen:
                raise DuplicateTaskError(f"Duplicate task id: '{task.id}'")
            seen.add(task.id)

        self.dependency_validator.validate(self.tasks)
        # Объявленные dependents становятся зависимостями соответствующих задач
        extra: dict[str, list[str]] = {}
        for task in self.tasks:
            for dependent in task.dependents:
                extra.setdefault(dependent, []).append(task.id)
        order = topological_sort(self.tasks, extra)
        if order.has_cycle:
            raise TaskRegistry._cycle_error(order)

        by_id = {task.id: task for task in self.tasks}
        ordered = [by_id[task_id] for task_id in order.order]
        log_graph_statistics(ordered)
        return FeatureManager.from_options(options).filter_tasks(ordered)

    def _build_strategy(self, options: OrchestratorOptions) -> SequentialExecutionStrategy:
        manager = RollbackManager(
            RollbackConfig(
                strategy=options.rollback_strategy,
                max_retries=options.max_rollback_retries,
                continue_on_error=options.continue_on_rollback_error,
            )
        )
        for task_id, compensation in self._compensations:
            manager.register_compensation(task_id, compensation)

        return SequentialExecutionStrategy(
            manager,
            rollback_strategy=options.rollback_strategy,
            enable_rollback=options.enable_rollback,
            cancellation=CancellationToken(options.cancellation_signal, options.timeout_ms),
            dry_run=options.dry_run,
            skipped_satisfies_dependencies=options.skipped_satisfies_dependencies,
            execution_id=options.execution_id,
        )

    @staticmethod
    def _error_result(
        error: TaskOrchestratorError, start_time: datetime, execution_id: str | None
    ) -> WorkflowExecutionResult:
        get_logger().error(f"Workflow rejected: {error.message}")
        end_time = datetime.now()
        return WorkflowExecutionResult(
            success=False,
            executed_tasks=(),
            skipped_tasks=(),
            error=error,
            start_time=start_time,
            end_time=end_time,
            execution_time_ms=(end_time - start_time).total_seconds() * 1000,
            execution_id=execution_id,
        )


def run(
    tasks: Sequence[Task] | TaskRegistry,
    initial_context: WorkflowContext | None = None,
    options: OrchestratorOptions | Mapping[str, Any] | None = None,
    **overrides: Any,
) -> WorkflowExecutionResult:
    """Выполняет задачи с указанными опциями.

    Args:
        tasks: Задачи или реестр задач
        initial_context: Исходный контекст
        options: Опции запуска (dry_run, enable_rollback,
            cancellation_signal, timeout_ms и опции оркестратора)
        **overrides: Отдельные опции поверх options

    Returns:
        WorkflowExecutionResult

    Пример:
        >>> result = run(registry, WorkflowContext.create(config), dry_run=True)
    """
    task_list = tasks.get_all() if isinstance(tasks, TaskRegistry) else list(tasks)
    return TaskOrchestrator(task_list, options, **overrides).run(initial_context)
