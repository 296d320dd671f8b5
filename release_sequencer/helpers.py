"""Вспомогательные функции для описания типовых задач релиза.

Три фабрики покрывают самые частые виды задач:

- create_side_effect_task: действие без изменения контекста (лог, API, запись файла)
- create_validation_task: набор именованных проверок, первая неудачная роняет задачу
- create_transform_task: вычисление значения и запись его в контекст по ключу

collect_tasks и collect_tasks_conditionally собирают список задач из фабрик,
pipeline и run_checks упрощают тела функций execute.

Пример использования:
    >>> tasks = collect_tasks_conditionally(
    ...     lambda: create_side_effect_task("log-start", "Log start", effect=log_start),
    ...     (config["bump"], lambda: create_transform_task(
    ...         "compute-version", "Compute next version", "next_version", compute_version
    ...     )),
    ... )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Sequence, Tuple, Union

from release_sequencer.builders import TaskBuilder
from release_sequencer.context import WorkflowContext
from release_sequencer.exceptions import TaskExecutionError
from release_sequencer.interfaces import FunctionTask, Task, UndoFunction
from release_sequencer.logging import get_logger
from release_sequencer.skip_conditions import Predicate

ContextOperation = Callable[[WorkflowContext], WorkflowContext]
ContextCheck = Callable[[WorkflowContext], Any]
TaskFactory = Callable[[], Task]
ConditionalEntry = Union[TaskFactory, Tuple[bool, TaskFactory]]


@dataclass(frozen=True)
class ValidationCheck:
    """Именованная проверка для create_validation_task.

    Attributes:
        name: Имя проверки (попадает в сообщение об ошибке)
        validate: Функция проверки; неудача - исключение или возврат False
    """

    name: str
    validate: ContextCheck


def _builder(
    task_id: str,
    description: str,
    dependencies: Sequence[str],
    skip_when: Predicate | None,
    undo: UndoFunction | None = None,
) -> TaskBuilder:
    builder = TaskBuilder(task_id).description(description)
    if dependencies:
        builder.depends_on(*dependencies)
    if skip_when is not None:
        builder.skip_when(skip_when)
    if undo is not None:
        builder.with_undo(undo)
    return builder


def create_side_effect_task(
    task_id: str,
    description: str,
    effect: ContextCheck,
    *,
    dependencies: Sequence[str] = (),
    skip_when: Predicate | None = None,
    undo: UndoFunction | None = None,
) -> FunctionTask:
    """Создает задачу, которая выполняет действие и не меняет контекст.

    Args:
        task_id: Идентификатор задачи
        description: Описание задачи
        effect: Действие; возвращаемое значение игнорируется
        dependencies: Зависимости задачи
        skip_when: Предикат пропуска
        undo: Функция отката

    Returns:
        FunctionTask, возвращающая исходный контекст

    Raises:
        ConfigurationError: Если описание пустое
    """

    def execute(ctx: WorkflowContext) -> WorkflowContext:
        effect(ctx)
        return ctx

    return _builder(task_id, description, dependencies, skip_when, undo).execute(execute).build()


def create_validation_task(
    task_id: str,
    description: str,
    validations: Sequence[ValidationCheck],
    *,
    dependencies: Sequence[str] = (),
    skip_when: Predicate | None = None,
) -> FunctionTask:
    """Создает задачу, выполняющую проверки по порядку.

    Проверки выполняются в порядке списка; первая неудачная останавливает
    задачу, остальные не вызываются. Контекст не меняется. Проверки ничего
    не меняют, поэтому откат не предусмотрен.

    Raises:
        ConfigurationError: Если описание пустое
    """
    checks = tuple(validations)

    def execute(ctx: WorkflowContext) -> WorkflowContext:
        logger = get_logger(task_id)
        for check in checks:
            try:
                passed = check.validate(ctx)
            except Exception as e:
                raise TaskExecutionError(
                    f"Validation '{check.name}' failed: {e}", task_id=task_id
                ) from e
            if passed is False:
                raise TaskExecutionError(f"Validation '{check.name}' failed", task_id=task_id)
            logger.debug(f"Validation '{check.name}' passed")
        return ctx

    return _builder(task_id, description, dependencies, skip_when).execute(execute).build()


def create_transform_task(
    task_id: str,
    description: str,
    output_key: str,
    transform: Callable[[WorkflowContext], Any],
    *,
    dependencies: Sequence[str] = (),
    skip_when: Predicate | None = None,
    undo: UndoFunction | None = None,
) -> FunctionTask:
    """Создает задачу, записывающую результат transform в контекст.

    Args:
        task_id: Идентификатор задачи
        description: Описание задачи
        output_key: Ключ, под которым результат попадает в контекст
        transform: Функция вычисления значения
        dependencies: Зависимости задачи
        skip_when: Предикат пропуска
        undo: Функция отката

    Returns:
        FunctionTask, форкающая контекст по ключу output_key
    """

    def execute(ctx: WorkflowContext) -> WorkflowContext:
        return ctx.fork(output_key, transform(ctx))

    return _builder(task_id, description, dependencies, skip_when, undo).execute(execute).build()


def collect_tasks(*factories: TaskFactory) -> list[Task]:
    """Собирает задачи из фабрик в порядке аргументов.

    Первая ошибка фабрики (обычно ConfigurationError) пробрасывается,
    следующие фабрики не вызываются.
    """
    return [factory() for factory in factories]


def collect_tasks_conditionally(*entries: ConditionalEntry) -> list[Task]:
    """Как collect_tasks, но запись может быть парой (условие, фабрика).

    Фабрики с ложным условием не вызываются.

    Пример использования:
        >>> tasks = collect_tasks_conditionally(
        ...     preflight_factory,
        ...     (config["changelog"], changelog_factory),
        ... )
    """
    factories: list[TaskFactory] = []
    for entry in entries:
        if callable(entry):
            factories.append(entry)
        else:
            condition, factory = entry
            if condition:
                factories.append(factory)
    return collect_tasks(*factories)


def pipeline(ctx: WorkflowContext, *operations: ContextOperation) -> WorkflowContext:
    """Последовательно применяет операции, передавая контекст дальше."""
    for operation in operations:
        ctx = operation(ctx)
    return ctx


def run_checks(ctx: WorkflowContext, *checks: ContextCheck) -> WorkflowContext:
    """Выполняет проверки по порядку и возвращает исходный контекст.

    Результаты проверок игнорируются; ошибка любой проверки пробрасывается.
    """
    for check in checks:
        check(ctx)
    return ctx
