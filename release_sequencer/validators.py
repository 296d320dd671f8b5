"""Валидаторы для release-sequencer."""

from __future__ import annotations

from typing import Sequence

from release_sequencer.exceptions import DependencyError
from release_sequencer.interfaces import Task


class DependencyValidator:
    """Статическая проверка набора задач перед запуском.

    Проверяет:
    - Все зависимости задач присутствуют в наборе
    - Все объявленные зависимые задачи присутствуют в наборе
    - Отсутствие циклических зависимостей (отдельный обход, независимый
      от топологической сортировки)

    Все найденные проблемы собираются и выбрасываются одним исключением.

    Пример использования:
        >>> validator = DependencyValidator()
        >>> validator.validate([init_task, bump_task])  # OK
        >>> validator.validate([bump_task])  # Raises DependencyError
    """

    def validate(self, tasks: Sequence[Task]) -> None:
        """Валидирует набор задач.

        Args:
            tasks: Задачи, которые будут переданы на выполнение

        Raises:
            DependencyError: Если найдены нарушения; список сообщений
                доступен в ``details["errors"]``
        """
        errors = self.collect_errors(tasks)
        if errors:
            raise DependencyError(
                f"Task configuration is invalid: {'; '.join(errors)}",
                details={"errors": errors},
            )

    def collect_errors(self, tasks: Sequence[Task]) -> list[str]:
        """Возвращает список нарушений без выбрасывания исключения."""
        errors = self._check_references(tasks)
        errors.extend(self._check_cyclic_dependencies(tasks))
        return errors

    def _check_references(self, tasks: Sequence[Task]) -> list[str]:
        """Проверяет, что все зависимости и зависимые задачи существуют.

        Args:
            tasks: Набор задач

        Returns:
            Сообщения об ошибках
        """
        known = {task.id for task in tasks}
        errors: list[str] = []
        for task in tasks:
            for dep in task.dependencies:
                if dep not in known:
                    errors.append(f"Task {task.id} depends on non-existent task: {dep}")
            for dependent in task.dependents:
                if dependent not in known:
                    errors.append(
                        f"Task {task.id} declares non-existent dependent: {dependent}"
                    )
        return errors

    def _check_cyclic_dependencies(self, tasks: Sequence[Task]) -> list[str]:
        """Проверяет отсутствие циклических зависимостей (DFS, O(n)).

        Ребра ``dependents`` учитываются наравне с ``dependencies``.
        Обход идет по явному стеку, поэтому глубина цепочки не ограничена
        глубиной рекурсии.

        Args:
            tasks: Набор задач

        Returns:
            Сообщения об обнаруженных циклах
        """
        # Строим граф зависимостей
        graph: dict[str, list[str]] = {task.id: [] for task in tasks}
        for task in tasks:
            graph[task.id].extend(dep for dep in task.dependencies if dep in graph)
            for dependent in task.dependents:
                if dependent in graph:
                    graph[dependent].append(task.id)

        visited: set[str] = set()
        errors: list[str] = []

        for root in graph:
            if root in visited:
                continue
            cycle = self._find_cycle(root, graph, visited)
            if cycle:
                errors.append(
                    f"Circular dependency detected for task: {cycle[-1]} "
                    f"({' -> '.join(cycle)})"
                )
        return errors

    @staticmethod
    def _find_cycle(
        root: str, graph: dict[str, list[str]], visited: set[str]
    ) -> list[str] | None:
        """Ищет цикл, начиная с узла.

        Args:
            root: Начальный узел
            graph: Задача -> ее зависимости
            visited: Уже посещенные узлы (пополняется)

        Returns:
            Путь цикла (первый и последний элементы совпадают) или None
        """
        path = [root]
        on_path = {root}
        visited.add(root)
        stack = [iter(graph[root])]

        while stack:
            for neighbor in stack[-1]:
                if neighbor in on_path:
                    return path[path.index(neighbor):] + [neighbor]
                if neighbor in visited:
                    continue
                visited.add(neighbor)
                path.append(neighbor)
                on_path.add(neighbor)
                stack.append(iter(graph[neighbor]))
                break
            else:
                stack.pop()
                on_path.discard(path.pop())
        return None
