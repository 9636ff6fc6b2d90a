"""Logging settings (``LOG_`` prefix)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingSettings(BaseSettings):
    """How the API process, the delivery worker and the CLI emit logs.

    Example: LOG_LEVEL=debug LOG_JSON=false LOG_FILE_PATH=logs/worker.jsonl
    """

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        env_ignore_empty=True,
    )

    service_name: str = Field(default="storefront-events", description="Static `service` field on JSON records")
    level: LogLevel = Field(default="INFO", description="Root logger level")
    json_logs: bool = Field(
        default=True,
        validation_alias=AliasChoices("log_json", "json_logs"),
        description="JSONL on the console instead of plain text (files are always JSONL)",
    )
    console_enabled: bool = True
    file_path: Path | None = Field(default=None, description="Rotating JSONL file; disabled when unset")
    file_max_bytes: int = Field(default=10 * 1024 * 1024, ge=1024)
    file_backup_count: int = Field(default=5, ge=0, le=100)
    include_context: bool = Field(default=True, description="Add log context and tenant_id to every record")
    capture_warnings: bool = True

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @computed_field
    @property
    def level_int(self) -> int:
        return logging.getLevelName(self.level)

    def to_logging_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``configure_logging``."""
        return {
            "service_name": self.service_name,
            "log_level": self.level,
            "json_logs": self.json_logs,
            "console_enabled": self.console_enabled,
            "file_path": str(self.file_path) if self.file_path else None,
            "file_max_bytes": self.file_max_bytes,
            "file_backup_count": self.file_backup_count,
            "include_context": self.include_context,
            "capture_warnings": self.capture_warnings,
        }


__all__ = ["LogLevel", "LoggingSettings"]
