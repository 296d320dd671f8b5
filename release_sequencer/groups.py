"""Группы задач: пространства имен, развертывание и реестр групп."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Sequence

from release_sequencer.context import WorkflowContext
from release_sequencer.exceptions import ConfigurationError, GroupNotFoundError
from release_sequencer.interfaces import SkipDecision, SkipFunction, Task

NAMESPACE_SEPARATOR = ":"


def namespaced_task_id(group_id: str, task_id: str) -> str:
    """Возвращает идентификатор задачи в пространстве имен группы.

    Пример:
        >>> namespaced_task_id("publish", "push")
        'publish:push'
    """
    return f"{group_id}{NAMESPACE_SEPARATOR}{task_id}"


def parse_namespaced_task_id(task_id: str) -> tuple[str | None, str]:
    """Разбирает идентификатор на (группа, задача).

    Для идентификатора без пространства имен группа равна None.
    """
    group_id, sep, local_id = task_id.partition(NAMESPACE_SEPARATOR)
    if not sep:
        return None, task_id
    return group_id, local_id


def is_namespaced_task_id(task_id: str) -> bool:
    return NAMESPACE_SEPARATOR in task_id


def group_id_of(task_id: str) -> str | None:
    return parse_namespaced_task_id(task_id)[0]


@dataclass
class TaskGroup:
    """Именованный упорядоченный набор задач.

    Условие пропуска группы задается либо ``skip_condition`` (функция,
    возвращающая SkipDecision), либо ``skip_when`` (предикат) вместе с
    ``skip_reason``.

    Attributes:
        id: Идентификатор группы
        description: Описание
        tasks: Задачи в порядке объявления
        depends_on_groups: Группы, последняя задача которых становится
            зависимостью первой задачи этой группы
        skip_condition: Условие пропуска группы
        skip_when: Предикат пропуска группы
        skip_reason: Причина пропуска для skip_when
    """

    id: str
    description: str
    tasks: list[Task] = field(default_factory=list)
    depends_on_groups: list[str] = field(default_factory=list)
    skip_condition: SkipFunction | None = None
    skip_when: Callable[[WorkflowContext], bool] | None = None
    skip_reason: str | None = None

    def resolve_skip_condition(self) -> SkipFunction | None:
        """Возвращает итоговое условие пропуска группы или None."""
        if self.skip_condition is not None:
            return self.skip_condition
        if self.skip_when is None:
            return None

        predicate = self.skip_when
        reason = self.skip_reason or f"Group '{self.id}' skip condition met"

        def condition(context: WorkflowContext) -> SkipDecision:
            if predicate(context):
                return SkipDecision.skip(reason)
            return SkipDecision.run()

        return condition


class ExpandedTask(Task):
    """Задача группы после развертывания.

    Хранит исходную задачу и происхождение, все возможности
    (execute, undo, хуки отката) делегирует исходной задаче.
    Условие пропуска группы проверяется первым: если оно велит
    пропустить задачу, собственное условие задачи не вызывается.
    """

    def __init__(
        self,
        inner: Task,
        group_id: str,
        dependencies: Sequence[str],
        dependents: Sequence[str] = (),
        group_skip_condition: SkipFunction | None = None,
    ) -> None:
        self.inner = inner
        self.group_id = group_id
        self.original_task_id = inner.id
        self.group_skip_condition = group_skip_condition
        self._id = namespaced_task_id(group_id, inner.id)
        self._dependencies = list(dependencies)
        self._dependents = list(dependents)

    @property
    def id(self) -> str:
        return self._id

    @property
    def description(self) -> str:
        return self.inner.description

    @property
    def dependencies(self) -> list[str]:
        return list(self._dependencies)

    @property
    def dependents(self) -> list[str]:
        return list(self._dependents)

    @property
    def required_features(self) -> list[str]:
        return self.inner.required_features

    def should_skip(self, context: WorkflowContext) -> SkipDecision | None:
        if self.group_skip_condition is not None:
            decision = self.group_skip_condition(context)
            if decision is not None and decision.should_skip:
                return decision
        return self.inner.should_skip(context)

    def execute(self, context: WorkflowContext) -> WorkflowContext:
        return self.inner.execute(context)

    def undo(self, context: WorkflowContext) -> None:
        self.inner.undo(context)

    def can_undo(self) -> bool:
        return self.inner.can_undo()

    def before_rollback(self, context: WorkflowContext) -> bool | None:
        return self.inner.before_rollback(context)

    def after_rollback(self, context: WorkflowContext) -> None:
        self.inner.after_rollback(context)

    def on_rollback_error(
        self, error: Exception, context: WorkflowContext
    ) -> bool | None:
        return self.inner.on_rollback_error(error, context)


@dataclass(frozen=True)
class GroupExpansion:
    """Результат развертывания группы.

    Attributes:
        group_id: Идентификатор группы
        tasks: Развернутые задачи в порядке объявления
        id_mapping: Исходный идентификатор -> идентификатор в пространстве имен
    """

    group_id: str
    tasks: tuple[ExpandedTask, ...]
    id_mapping: dict[str, str]


class GroupRegistry:
    """Реестр зарегистрированных групп.

    Хранит для каждой группы идентификатор последней задачи и список всех
    задач; используется для разрешения ``depends_on_groups``.
    """

    def __init__(self) -> None:
        self.last_task_by_group: dict[str, str] = {}
        self.tasks_by_group: dict[str, list[str]] = {}

    def record(self, group_id: str, task_ids: Sequence[str]) -> None:
        """Запоминает задачи группы. Пустые группы не записываются."""
        if not task_ids:
            return
        self.last_task_by_group[group_id] = task_ids[-1]
        self.tasks_by_group[group_id] = list(task_ids)

    def last_task_id(self, group_id: str) -> str | None:
        return self.last_task_by_group.get(group_id)

    def task_ids(self, group_id: str) -> list[str]:
        return list(self.tasks_by_group.get(group_id, []))

    def group_ids(self) -> list[str]:
        return list(self.tasks_by_group)

    def __contains__(self, group_id: object) -> bool:
        return group_id in self.tasks_by_group


def _rewrite(dep: str, group_id: str, members: set[str], mapping: dict[str, str]) -> str:
    if dep in mapping:
        return mapping[dep]
    if is_namespaced_task_id(dep):
        return dep
    if dep in members:
        # Ссылка вперед на задачу этой же группы
        return namespaced_task_id(group_id, dep)
    return dep


def expand_task_group(group: TaskGroup, registry: GroupRegistry) -> GroupExpansion:
    """Разворачивает группу в набор задач с идентификаторами ``group:task``.

    Зависимости внутри группы переписываются на идентификаторы в
    пространстве имен группы; зависимости с разделителем и ссылки на
    задачи вне группы остаются без изменений. Первая задача получает
    дополнительные зависимости от последних задач групп из
    ``depends_on_groups``.

    Args:
        group: Группа для развертывания
        registry: Реестр ранее зарегистрированных групп

    Returns:
        GroupExpansion

    Raises:
        ConfigurationError: Если в группе повторяются идентификаторы задач
        GroupNotFoundError: Если группа зависит от незарегистрированной группы
    """
    members = {task.id for task in group.tasks}
    if len(members) != len(group.tasks):
        raise ConfigurationError(f"Group '{group.id}' contains duplicate task ids")

    group_edges: list[str] = []
    for other in group.depends_on_groups:
        last_task = registry.last_task_id(other)
        if last_task is None:
            raise GroupNotFoundError(
                f"Group '{group.id}' depends on group '{other}' which is not registered"
            )
        group_edges.append(last_task)

    skip_condition = group.resolve_skip_condition()
    mapping: dict[str, str] = {}
    expanded: list[ExpandedTask] = []

    for index, task in enumerate(group.tasks):
        dependencies = [_rewrite(d, group.id, members, mapping) for d in task.dependencies]
        if index == 0:
            dependencies.extend(d for d in group_edges if d not in dependencies)
        dependents = [_rewrite(d, group.id, members, mapping) for d in task.dependents]

        expanded_task = ExpandedTask(
            task,
            group.id,
            dependencies=dependencies,
            dependents=dependents,
            group_skip_condition=skip_condition,
        )
        mapping[task.id] = expanded_task.id
        expanded.append(expanded_task)

    return GroupExpansion(group_id=group.id, tasks=tuple(expanded), id_mapping=mapping)
