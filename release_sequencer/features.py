"""Управление фичами и фильтрация задач по ним."""

from __future__ import annotations

from typing import Iterable, Mapping

from release_sequencer.exceptions import ConfigurationError
from release_sequencer.interfaces import Task
from release_sequencer.logging import get_logger
from release_sequencer.options import OrchestratorOptions, validate_feature_name


class FeatureManager:
    """Набор включенных фич одного запуска.

    Фича включена, если она есть в ``enabled_features`` или имеет значение
    True в ``feature_flags``; значение False в ``feature_flags``
    выключает фичу, даже если она указана в ``enabled_features``.

    Пример использования:
        >>> features = FeatureManager({"github-release"}, {"npm-publish": False})
        >>> features.is_enabled("github-release")
        True
        >>> features.filter_tasks(tasks)
    """

    def __init__(
        self,
        enabled_features: Iterable[str] = (),
        feature_flags: Mapping[str, bool] | None = None,
    ) -> None:
        self._enabled: set[str] = set()
        for name in enabled_features:
            self.enable(name)
        for name, value in (feature_flags or {}).items():
            if value:
                self.enable(name)
            else:
                self.disable(name)

    @classmethod
    def from_options(cls, options: OrchestratorOptions) -> FeatureManager:
        return cls(options.enabled_features, options.feature_flags)

    def enable(self, name: str) -> None:
        """Включает фичу.

        Raises:
            ConfigurationError: Если имя фичи некорректно
        """
        try:
            validate_feature_name(name)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        self._enabled.add(name)

    def disable(self, name: str) -> None:
        self._enabled.discard(name)

    def is_enabled(self, name: str) -> bool:
        return name in self._enabled

    @property
    def enabled_features(self) -> frozenset[str]:
        return frozenset(self._enabled)

    def is_task_enabled(self, task: Task) -> bool:
        """Задача включена, если все ее фичи включены (или фич нет)."""
        return all(self.is_enabled(name) for name in task.required_features)

    def filter_tasks(self, tasks: Iterable[Task]) -> list[Task]:
        """Оставляет только задачи, все требуемые фичи которых включены."""
        selected: list[Task] = []
        for task in tasks:
            if self.is_task_enabled(task):
                selected.append(task)
                continue
            missing = [n for n in task.required_features if not self.is_enabled(n)]
            get_logger(task.id).info(
                f"Filtered out, required features not enabled: {', '.join(missing)}"
            )
        return selected
