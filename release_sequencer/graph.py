"""Граф задач: топологическая сортировка, проверка и статистика."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Mapping, Sequence

from release_sequencer.interfaces import Task
from release_sequencer.logging import get_logger


@dataclass(frozen=True)
class TopologicalOrder:
    """Результат топологической сортировки.

    Либо ``order`` содержит все идентификаторы в допустимом порядке,
    либо ``cycle_task_id`` указывает задачу, на которой замкнулся цикл.

    Attributes:
        order: Идентификаторы задач в порядке выполнения
        cycle_task_id: Задача, замыкающая цикл (None, если цикла нет)
        cycle_path: Путь цикла, первый и последний элементы совпадают
    """

    order: tuple[str, ...] = ()
    cycle_task_id: str | None = None
    cycle_path: tuple[str, ...] = ()

    @property
    def has_cycle(self) -> bool:
        return self.cycle_task_id is not None

    def describe_cycle(self) -> str:
        """Возвращает путь цикла в виде ``A → B → A``."""
        return " → ".join(self.cycle_path)


def _dependency_map(
    tasks: Iterable[Task], extra: Mapping[str, Sequence[str]] | None = None
) -> dict[str, list[str]]:
    graph = {task.id: list(task.dependencies) for task in tasks}
    for task_id, deps in (extra or {}).items():
        if task_id in graph:
            graph[task_id].extend(d for d in deps if d not in graph[task_id])
    return graph


def _walk(graph: dict[str, list[str]]) -> Iterator[str | TopologicalOrder]:
    """Обход в глубину с явным стеком.

    Выдает идентификаторы по мере того, как все их зависимости уже выданы.
    При обнаружении цикла выдает TopologicalOrder с описанием цикла и
    завершается.
    """
    visited: set[str] = set()
    on_stack: set[str] = set()

    for root in graph:
        if root in visited:
            continue
        path = [root]
        on_stack.add(root)
        stack = [(root, iter(graph[root]))]

        while stack:
            node, deps = stack[-1]
            for dep in deps:
                # Неизвестные зависимости отсекаются при регистрации
                if dep not in graph or dep in visited:
                    continue
                if dep in on_stack:
                    start = path.index(dep)
                    yield TopologicalOrder(
                        cycle_task_id=dep,
                        cycle_path=tuple(path[start:] + [dep]),
                    )
                    return
                path.append(dep)
                on_stack.add(dep)
                stack.append((dep, iter(graph[dep])))
                break
            else:
                stack.pop()
                path.pop()
                on_stack.discard(node)
                visited.add(node)
                yield node


def iter_topological(tasks: Iterable[Task]) -> Iterator[str | TopologicalOrder]:
    """Ленивый вариант topological_sort.

    Выдает идентификаторы задач по одному; если встречается цикл,
    последним элементом выдается TopologicalOrder с описанием цикла.
    """
    return _walk(_dependency_map(tasks))


def topological_sort(
    tasks: Iterable[Task], extra_dependencies: Mapping[str, Sequence[str]] | None = None
) -> TopologicalOrder:
    """Упорядочивает задачи по зависимостям.

    Зависимости обходятся в порядке объявления, обход начинается с каждой
    задачи в порядке входного списка, поэтому результат детерминирован.
    Ромбовидные зависимости допустимы и не дублируют задачу.

    Args:
        tasks: Задачи с уникальными идентификаторами
        extra_dependencies: Дополнительные ребра (задача -> ее зависимости),
            например из объявленных dependents

    Returns:
        TopologicalOrder с порядком или с описанием цикла

    Пример:
        >>> result = topological_sort(tasks)
        >>> if result.has_cycle:
        ...     print(result.describe_cycle())
        ... else:
        ...     print(list(result.order))
    """
    order: list[str] = []
    for item in _walk(_dependency_map(tasks, extra_dependencies)):
        if isinstance(item, TopologicalOrder):
            return item
        order.append(item)
    return TopologicalOrder(order=tuple(order))


def _depths(graph: dict[str, list[str]], order: Iterable[str]) -> dict[str, int]:
    depths: dict[str, int] = {}
    for task_id in order:
        deps = [d for d in graph.get(task_id, []) if d in depths]
        depths[task_id] = 1 + max(depths[d] for d in deps) if deps else 0
    return depths


def compute_depths(tasks: Iterable[Task], order: Iterable[str]) -> dict[str, int]:
    """Глубина задачи: 0 для корней, иначе 1 + максимальная глубина зависимостей."""
    return _depths(_dependency_map(tasks), order)


@dataclass
class GraphValidationResult:
    """Отчет о проверке графа задач.

    Attributes:
        is_valid: Нет ли ошибок
        errors: Ошибки (дубликаты, неизвестные зависимости, цикл)
        warnings: Предупреждения (например, пустое описание)
        execution_order: Порядок выполнения, если граф корректен
        depth_map: Глубина каждой задачи
    """

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    execution_order: list[str] = field(default_factory=list)
    depth_map: dict[str, int] = field(default_factory=dict)


def validate_task_graph(tasks: Iterable[Task]) -> GraphValidationResult:
    """Проверяет граф задач целиком и собирает все найденные проблемы.

    Args:
        tasks: Задачи для проверки

    Returns:
        GraphValidationResult
    """
    tasks = list(tasks)
    errors: list[str] = []
    warnings: list[str] = []

    counts = Counter(task.id for task in tasks)
    for task_id, count in counts.items():
        if count > 1:
            errors.append(f"Duplicate task ID: '{task_id}'")

    known = set(counts)
    for task in tasks:
        for dep in task.dependencies:
            if dep not in known:
                errors.append(f"Task '{task.id}' depends on unknown task '{dep}'")
        if not task.description.strip():
            warnings.append(f"Task '{task.id}' has no description")

    if errors:
        return GraphValidationResult(is_valid=False, errors=errors, warnings=warnings)

    result = topological_sort(tasks)
    if result.has_cycle:
        errors.append(f"Circular dependency detected: {result.describe_cycle()}")
        return GraphValidationResult(is_valid=False, errors=errors, warnings=warnings)

    order = list(result.order)
    return GraphValidationResult(
        is_valid=True,
        warnings=warnings,
        execution_order=order,
        depth_map=compute_depths(tasks, order),
    )


@dataclass(frozen=True)
class GraphStatistics:
    """Статистика графа задач."""

    total_tasks: int
    root_tasks: tuple[str, ...]
    leaf_tasks: tuple[str, ...]
    max_depth: int
    total_edges: int
    avg_dependencies: float
    most_dependent_tasks: tuple[tuple[str, int], ...]
    most_depended_upon_tasks: tuple[tuple[str, int], ...]


def graph_statistics(tasks: Iterable[Task], top: int = 5) -> GraphStatistics:
    """Считает статистику графа задач.

    Args:
        tasks: Задачи
        top: Сколько задач выводить в рейтингах

    Returns:
        GraphStatistics
    """
    graph = _dependency_map(tasks)
    depended_upon: Counter[str] = Counter()
    for deps in graph.values():
        depended_upon.update(d for d in deps if d in graph)

    total_edges = sum(len(deps) for deps in graph.values())
    depths = _depths(graph, topological_sort_ids(graph))

    most_dependent = sorted(
        ((task_id, len(deps)) for task_id, deps in graph.items() if deps),
        key=lambda item: (-item[1], item[0]),
    )[:top]
    most_depended = sorted(
        depended_upon.items(), key=lambda item: (-item[1], item[0])
    )[:top]

    return GraphStatistics(
        total_tasks=len(graph),
        root_tasks=tuple(t for t, deps in graph.items() if not deps),
        leaf_tasks=tuple(t for t in graph if depended_upon[t] == 0),
        max_depth=max(depths.values(), default=0),
        total_edges=total_edges,
        avg_dependencies=total_edges / len(graph) if graph else 0.0,
        most_dependent_tasks=tuple(most_dependent),
        most_depended_upon_tasks=tuple(most_depended),
    )


def topological_sort_ids(graph: dict[str, list[str]]) -> list[str]:
    """Порядок по словарю зависимостей; при цикле возвращает частичный порядок."""
    return [item for item in _walk(graph) if isinstance(item, str)]


def log_graph_statistics(tasks: Iterable[Task]) -> GraphStatistics:
    """Пишет статистику графа в debug-лог и возвращает ее."""
    stats = graph_statistics(tasks)
    logger = get_logger()
    logger.debug(
        f"Task graph: {stats.total_tasks} tasks, {stats.total_edges} edges, "
        f"max depth {stats.max_depth}, roots: {', '.join(stats.root_tasks) or '-'}"
    )
    return stats
