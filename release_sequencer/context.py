"""Неизменяемый контекст, передаваемый по цепочке задач."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from release_sequencer.exceptions import ContextKeyError

# Значения этих типов сравниваются по значению, остальные по идентичности
_VALUE_TYPES = (str, bytes, int, float, bool, type(None))

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def _freeze(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    if not mapping:
        return _EMPTY
    return MappingProxyType(dict(mapping))


def _unchanged(current: Any, value: Any) -> bool:
    if current is value:
        return True
    return (
        type(current) is type(value)
        and isinstance(value, _VALUE_TYPES)
        and current == value
    )


@dataclass(frozen=True, eq=False)
class WorkflowContext:
    """Контекст выполнения workflow.

    Состоит из трех частей:
    - config: конфигурация запуска, замораживается при создании
    - data: накопленные результаты задач (снимок только для чтения)
    - services: внедренные внешние сервисы (git, хостинг и т.п.)

    Контекст никогда не изменяется на месте. ``fork`` возвращает новый
    экземпляр с общими config и services и поверхностной копией data.

    Пример использования:
        >>> ctx = WorkflowContext.create(config={"dry_run": False})
        >>> ctx2 = ctx.fork("next_version", "1.2.0")
        >>> ctx2.get("next_version")
        '1.2.0'
        >>> ctx2.fork("next_version", "1.2.0") is ctx2
        True

    Attributes:
        config: Конфигурация (read-only mapping)
        data: Накопленные данные (read-only mapping)
        services: Внедренные сервисы
        start_time: Время создания исходного контекста
    """

    config: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    data: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    services: Any = None
    start_time: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        # config и data всегда копируются при создании
        object.__setattr__(self, "config", _freeze(self.config))
        object.__setattr__(self, "data", _freeze(self.data))

    @classmethod
    def create(
        cls,
        config: Mapping[str, Any] | None = None,
        services: Any = None,
        data: Mapping[str, Any] | None = None,
    ) -> WorkflowContext:
        """Создает исходный контекст запуска.

        Args:
            config: Конфигурация (копируется и замораживается)
            services: Внешние сервисы (передаются по ссылке)
            data: Начальные данные

        Returns:
            Новый WorkflowContext
        """
        return cls(config=config or _EMPTY, data=data or _EMPTY, services=services)

    def fork(self, key: str, value: Any) -> WorkflowContext:
        """Возвращает контекст с обновленным значением в data.

        Если значение не изменилось, возвращается тот же экземпляр.

        Args:
            key: Ключ в data
            value: Новое значение

        Returns:
            Новый контекст или self
        """
        if key in self.data and _unchanged(self.data[key], value):
            return self
        updated = dict(self.data)
        updated[key] = value
        return self._with_data(updated)

    def fork_many(self, updates: Mapping[str, Any]) -> WorkflowContext:
        """Обновляет несколько значений за одно копирование.

        Args:
            updates: Ключи и новые значения

        Returns:
            Новый контекст или self, если ни одно значение не изменилось
        """
        changed = {
            key: value
            for key, value in updates.items()
            if key not in self.data or not _unchanged(self.data[key], value)
        }
        if not changed:
            return self
        updated = dict(self.data)
        updated.update(changed)
        return self._with_data(updated)

    def get(self, key: str, default: Any = None) -> Any:
        """Возвращает значение из data или default."""
        return self.data.get(key, default)

    def require(self, key: str) -> Any:
        """Возвращает значение из data.

        Raises:
            ContextKeyError: Если ключ отсутствует
        """
        if key not in self.data:
            raise ContextKeyError(f"Key '{key}' not found in workflow context")
        return self.data[key]

    def has(self, key: str) -> bool:
        return key in self.data

    def __contains__(self, key: object) -> bool:
        return key in self.data

    def snapshot(self) -> dict[str, Any]:
        """Возвращает изменяемую копию data (для логирования и отладки)."""
        return dict(self.data)

    def _with_data(self, data: dict[str, Any]) -> WorkflowContext:
        # data - новый dict, принадлежащий контексту; config уже заморожен
        context = object.__new__(WorkflowContext)
        object.__setattr__(context, "config", self.config)
        object.__setattr__(context, "data", MappingProxyType(data))
        object.__setattr__(context, "services", self.services)
        object.__setattr__(context, "start_time", self.start_time)
        return context
