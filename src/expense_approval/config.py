"""Runtime settings loaded from YAML files and environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

ENV_PREFIX = "EXPENSE_APPROVAL_"


class Settings(BaseModel):
    """Settings for the approval service and its collaborators."""

    exchange_api_url: str = Field(
        default="https://api.exchangerate-api.com/v4/latest/{base}",
        description="Rate endpoint; ``{base}`` is replaced by the source currency",
    )
    request_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Timeout for currency lookups"
    )
    default_currency: str = Field(
        default="USD", description="Currency used when an approver has no preference"
    )
    log_level: str = Field(default="INFO", description="Package log level")
    rules_path: Path | None = Field(
        default=None, description="Approval rules YAML file; searched for when unset"
    )

    model_config = ConfigDict(extra="forbid")

    @field_validator("default_currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @classmethod
    def from_yaml(cls, content: str) -> Settings:
        """Load settings from YAML content."""

        data = yaml.safe_load(content) or {}
        if not isinstance(data, dict):
            raise ValueError("Settings configuration must be a mapping")
        return cls.model_validate(data)

    @classmethod
    def from_file(cls, path: str | Path | None = None) -> Settings:
        """Load settings from a YAML file, falling back to defaults when absent."""

        target_path = Path(path) if path is not None else _default_settings_path()
        if target_path is None:
            return cls()
        return cls.from_yaml(target_path.read_text(encoding="utf-8"))


def _default_settings_path() -> Path | None:
    for parent in Path(__file__).resolve().parents:
        candidate = parent / "config" / "settings.yaml"
        if candidate.exists():
            return candidate
    return None


def _environment_overrides(environ: Mapping[str, str]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for field_name in Settings.model_fields:
        value = environ.get(f"{ENV_PREFIX}{field_name.upper()}")
        if value:
            overrides[field_name] = value
    return overrides


def load_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from YAML and apply ``EXPENSE_APPROVAL_*`` overrides."""

    base = Settings.from_file(path)
    overrides = _environment_overrides(os.environ if environ is None else environ)
    if not overrides:
        return base
    merged = base.model_dump()
    merged.update(overrides)
    return Settings.model_validate(merged)
