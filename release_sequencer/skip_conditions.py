"""Комбинаторы условий пропуска задач."""

from __future__ import annotations

from typing import Any, Callable, Sequence
from weakref import WeakKeyDictionary

from release_sequencer.context import WorkflowContext
from release_sequencer.interfaces import SkipDecision, SkipFunction

Predicate = Callable[[WorkflowContext], bool]

DEFAULT_JUMP_REASON = "Skip condition met"


def memoize(predicate: Predicate) -> Predicate:
    """Кэширует результат предиката для каждого экземпляра контекста."""
    cache: WeakKeyDictionary[WorkflowContext, bool] = WeakKeyDictionary()

    def cached(context: WorkflowContext) -> bool:
        if context not in cache:
            cache[context] = predicate(context)
        return cache[context]

    return cached


def all_of(*predicates: Predicate) -> Predicate:
    return lambda context: all(p(context) for p in predicates)


def any_of(*predicates: Predicate) -> Predicate:
    return lambda context: any(p(context) for p in predicates)


def not_(predicate: Predicate) -> Predicate:
    return lambda context: not predicate(context)


def from_config(key: str) -> Predicate:
    """Предикат: значение ``config[key]`` истинно."""
    return lambda context: bool(context.config.get(key))


def from_data(key: str) -> Predicate:
    """Предикат: значение ``data[key]`` истинно."""
    return lambda context: bool(context.data.get(key))


def config_equals(key: str, value: Any) -> Predicate:
    return lambda context: context.config.get(key) == value


def always(context: WorkflowContext) -> bool:
    return True


def never(context: WorkflowContext) -> bool:
    return False


def to_skip_condition(predicate: Predicate, reason: str | None = None) -> SkipFunction:
    """Превращает предикат в условие пропуска.

    Args:
        predicate: Предикат; True означает "пропустить"
        reason: Причина пропуска для логов

    Returns:
        Функция, возвращающая SkipDecision
    """

    def condition(context: WorkflowContext) -> SkipDecision:
        if predicate(context):
            return SkipDecision.skip(reason)
        return SkipDecision.run()

    return condition


def to_skip_condition_with_jump(
    predicate: Predicate,
    skip_to_tasks: Sequence[str],
    reason: str = DEFAULT_JUMP_REASON,
) -> SkipFunction:
    """Условие пропуска с переходом к указанным задачам.

    Пример:
        >>> skip_changelog = to_skip_condition_with_jump(
        ...     from_config("skip_changelog"), ["git:commit"]
        ... )
    """
    targets = tuple(skip_to_tasks)

    def condition(context: WorkflowContext) -> SkipDecision:
        if predicate(context):
            return SkipDecision.skip(reason, skip_to_tasks=targets)
        return SkipDecision.run()

    return condition


def group_skip_when(predicate: Predicate, reason: str) -> SkipFunction:
    """Условие пропуска для группы (аналог to_skip_condition с обязательной причиной)."""
    return to_skip_condition(predicate, reason)


def group_skip_when_any(predicates: Sequence[Predicate], reason: str) -> SkipFunction:
    return to_skip_condition(any_of(*predicates), reason)


def group_skip_when_all(predicates: Sequence[Predicate], reason: str) -> SkipFunction:
    return to_skip_condition(all_of(*predicates), reason)
