"""Логирование для release-sequencer."""

from __future__ import annotations

import logging
from logging import LoggerAdapter

# Логгер для release-sequencer
_logger = logging.getLogger("release_sequencer")


def get_logger(task_id: str | None = None) -> LoggerAdapter:
    """Создает логгер с префиксом для release-sequencer.

    Args:
        task_id: Идентификатор задачи (опционально)

    Returns:
        LoggerAdapter с префиксом [release-sequencer] и идентификатором задачи

    Пример использования:
        >>> logger = get_logger("bump")
        >>> logger.info("Skipped - condition not met")
        # Выведет: [release-sequencer] bump: Skipped - condition not met
    """
    return logging.LoggerAdapter(_logger, {"task": task_id or "core"})


def setup_logging(level: int = logging.INFO) -> None:
    """Настраивает логирование для release-sequencer.

    Повторный вызов не добавляет второй обработчик, а только меняет уровень.

    Args:
        level: Уровень логирования (по умолчанию INFO)

    Пример использования:
        >>> from release_sequencer.logging import setup_logging
        >>> import logging
        >>> setup_logging(logging.DEBUG)
    """
    if not any(getattr(h, "_release_sequencer", False) for h in _logger.handlers):
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "[release-sequencer] %(task)s: %(message)s", style="%"
        )
        handler.setFormatter(formatter)
        handler._release_sequencer = True  # type: ignore[attr-defined]
        _logger.addHandler(handler)
    _logger.setLevel(level)
    _logger.propagate = False
