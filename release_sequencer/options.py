"""Схема опций оркестратора."""

from __future__ import annotations

import re
import threading
import uuid
from typing import Any, Dict, Mapping, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from release_sequencer.exceptions import OptionsError
from release_sequencer.rollback import RollbackStrategy

FEATURE_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9:_-]+$")
FEATURE_NAME_MAX_LENGTH = 100


def validate_feature_name(name: str) -> str:
    """Проверяет имя фичи.

    Raises:
        ValueError: Если имя пустое, длиннее 100 символов или содержит
            недопустимые символы
    """
    if not name or len(name) > FEATURE_NAME_MAX_LENGTH:
        raise ValueError(
            f"Feature name must be 1-{FEATURE_NAME_MAX_LENGTH} characters: {name!r}"
        )
    if not FEATURE_NAME_PATTERN.match(name):
        raise ValueError(f"Invalid feature name: {name!r}")
    return name


class OrchestratorOptions(BaseModel):
    """Опции запуска с валидацией."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    execution_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: Optional[str] = None
    description: Optional[str] = None
    dry_run: bool = False
    enable_rollback: bool = True
    rollback_strategy: RollbackStrategy = RollbackStrategy.REVERSE
    max_rollback_retries: int = Field(0, ge=0, le=10)
    continue_on_rollback_error: bool = True
    enabled_features: Set[str] = Field(default_factory=set)
    feature_flags: Dict[str, bool] = Field(default_factory=dict)
    timeout_ms: Optional[int] = Field(None, gt=0)
    cancellation_signal: Optional[threading.Event] = None
    skipped_satisfies_dependencies: bool = True

    @field_validator("execution_id")
    @classmethod
    def validate_execution_id(cls, v):
        """Идентификатор запуска должен быть UUID."""
        try:
            uuid.UUID(v)
        except ValueError:
            raise ValueError(f"execution_id must be a UUID: {v!r}") from None
        return v

    @field_validator("enabled_features")
    @classmethod
    def validate_enabled_features(cls, v):
        for name in v:
            validate_feature_name(name)
        return v

    @field_validator("feature_flags")
    @classmethod
    def validate_feature_flags(cls, v):
        for name in v:
            validate_feature_name(name)
        return v


def parse_options(
    options: OrchestratorOptions | Mapping[str, Any] | None = None, **overrides: Any
) -> OrchestratorOptions:
    """Приводит опции к OrchestratorOptions.

    Args:
        options: Готовая модель, словарь или None
        **overrides: Отдельные поля поверх options

    Returns:
        Проверенные OrchestratorOptions

    Raises:
        OptionsError: Если опции не прошли валидацию
    """
    if isinstance(options, OrchestratorOptions):
        if not overrides:
            return options
        data = {name: getattr(options, name) for name in OrchestratorOptions.model_fields}
    else:
        data = dict(options or {})
    data.update(overrides)
    try:
        return OrchestratorOptions.model_validate(data)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise OptionsError(
            f"Invalid orchestrator options: {'; '.join(errors)}",
            details={"errors": errors},
        ) from e
