"""
Release Sequencer - task orchestration and rollback engine for release automation.

Turns a set of declared tasks, their dependency edges and their skip/undo
behaviour into a single deterministic, sequential run with defined failure
and recovery semantics.

Основные компоненты:
    - TaskOrchestrator, run: Фасад запуска (никогда не выбрасывает исключения)
    - Task, FunctionTask: Задачи
    - TaskGroup: Группы задач с пространством имен
    - create_*_task, collect_tasks: Фабрики типовых задач
    - TaskRegistry: Реестр задач с проверкой зависимостей
    - WorkflowContext: Неизменяемый контекст запуска
    - SequentialExecutionStrategy: Последовательное выполнение
    - RollbackManager: Откат выполненных задач

Пример использования:
    >>> from release_sequencer import FunctionTask, TaskRegistry, WorkflowContext, run
    >>>
    >>> registry = TaskRegistry()
    >>> registry.register(FunctionTask("init", lambda ctx: ctx.fork("ready", True)))
    >>> registry.register(
    ...     FunctionTask("bump", lambda ctx: ctx.fork("version", "1.3.0"), dependencies=["init"])
    ... )
    >>> result = run(registry, WorkflowContext.create({"branch": "main"}))
    >>> result.executed_tasks
    ('init', 'bump')
"""

__version__ = "0.1.0"
from release_sequencer.builders import TaskBuilder, TaskGroupBuilder
from release_sequencer.context import WorkflowContext
from release_sequencer.core import TaskOrchestrator, TaskRegistry, run
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
from release_sequencer.execution import (
    CancellationToken,
    ExecutionStrategy,
    SequentialExecutionStrategy,
)
from release_sequencer.features import FeatureManager
from release_sequencer.graph import (
    GraphStatistics,
    GraphValidationResult,
    TopologicalOrder,
    graph_statistics,
    topological_sort,
    validate_task_graph,
)
from release_sequencer.helpers import (
    ValidationCheck,
    collect_tasks,
    collect_tasks_conditionally,
    create_side_effect_task,
    create_transform_task,
    create_validation_task,
    pipeline,
    run_checks,
)
from release_sequencer.groups import (
    ExpandedTask,
    GroupExpansion,
    GroupRegistry,
    TaskGroup,
    expand_task_group,
    namespaced_task_id,
    parse_namespaced_task_id,
)
from release_sequencer.interfaces import FunctionTask, SkipDecision, Task
from release_sequencer.logging import get_logger, setup_logging
from release_sequencer.options import OrchestratorOptions
from release_sequencer.results import RollbackResult, TaskStatus, WorkflowExecutionResult
from release_sequencer.rollback import (
    RollbackConfig,
    RollbackEntry,
    RollbackManager,
    RollbackStrategy,
)
from release_sequencer.validators import DependencyValidator

__all__ = [
    "TaskOrchestrator",
    "TaskRegistry",
    "run",
    "Task",
    "FunctionTask",
    "SkipDecision",
    "TaskBuilder",
    "TaskGroupBuilder",
    "create_side_effect_task",
    "create_validation_task",
    "create_transform_task",
    "ValidationCheck",
    "collect_tasks",
    "collect_tasks_conditionally",
    "pipeline",
    "run_checks",
    "TaskGroup",
    "ExpandedTask",
    "GroupExpansion",
    "GroupRegistry",
    "expand_task_group",
    "namespaced_task_id",
    "parse_namespaced_task_id",
    "WorkflowContext",
    "ExecutionStrategy",
    "SequentialExecutionStrategy",
    "CancellationToken",
    "RollbackManager",
    "RollbackConfig",
    "RollbackEntry",
    "RollbackStrategy",
    "RollbackResult",
    "WorkflowExecutionResult",
    "TaskStatus",
    "OrchestratorOptions",
    "FeatureManager",
    "DependencyValidator",
    "TopologicalOrder",
    "GraphValidationResult",
    "GraphStatistics",
    "topological_sort",
    "validate_task_graph",
    "graph_statistics",
    "ErrorKind",
    "classify_error",
    "TaskOrchestratorError",
    "ConfigurationError",
    "DuplicateTaskError",
    "DependencyError",
    "CycleError",
    "OptionsError",
    "GroupNotFoundError",
    "GroupConflictError",
    "CompensationNotFoundError",
    "ContextKeyError",
    "TaskExecutionError",
    "RollbackError",
    "WorkflowTimeoutError",
    "UnexpectedError",
    "get_logger",
    "setup_logging",
]

# Комбинаторы условий пропуска импортируются из release_sequencer.skip_conditions
