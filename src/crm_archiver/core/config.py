"""Application configuration models and loader utilities."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

from dotenv import dotenv_values
from pydantic import BaseModel, Field, field_validator


class ImapSettings(BaseModel):
    """Settings controlling IMAP connectivity."""

    host: str = Field(default="imap.gmail.com", description="IMAP hostname")
    port: int = Field(default=993, description="IMAP port, typically 993 for SSL")
    username: str | None = Field(default=None, description="Account username")
    app_password: str | None = Field(default=None, description="Account password")
    use_ssl: bool = Field(default=True, description="Whether to enforce SSL")
    store_id: str | None = Field(
        default=None,
        description="Stable identifier for this account; defaults to user@host",
    )

    def resolved_store_id(self) -> str:
        """Return the configured store id or one derived from the login."""
        if self.store_id:
            return self.store_id
        return f"{self.username or 'anonymous'}@{self.host}"


class CrmSettings(BaseModel):
    """Settings for the SuiteCRM REST endpoint."""

    base_url: str = Field(
        default="http://localhost/suitecrm", description="SuiteCRM site URL"
    )
    username: str | None = Field(default=None, description="CRM user name")
    password: str | None = Field(default=None, description="CRM password")
    application_name: str = Field(
        default="crm-archiver", description="Application name sent on login"
    )
    timeout_seconds: int = Field(default=30, ge=1, description="HTTP timeout")


class ArchivingSettings(BaseModel):
    """Rules deciding which folders and accounts are archived."""

    auto_archive_folders: frozenset[str] | None = Field(
        default=None, description="Folder ids enrolled for scheduled sweeps"
    )
    accounts_to_archive_inbound: frozenset[str] | None = Field(
        default=None, description="Store ids whose received mail is archived"
    )
    accounts_to_archive_outbound: frozenset[str] | None = Field(
        default=None, description="Store ids whose sent mail is archived"
    )
    days_old_email_to_auto_archive: int = Field(
        default=1, ge=0, description="Age cutoff in days for scheduled sweeps"
    )

    @field_validator(
        "auto_archive_folders",
        "accounts_to_archive_inbound",
        "accounts_to_archive_outbound",
        mode="before",
    )
    @classmethod
    def split_comma_separated(cls, value: Any) -> Any:
        """Accept comma separated strings for the id sets."""
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


class SchedulerSettings(BaseModel):
    """Settings for the repeating sweep loop."""

    interval_seconds: int = Field(
        default=300, ge=1, description="Delay between sweep iterations"
    )


class StorageSettings(BaseModel):
    """Settings for local persistence."""

    db_path: Path = Field(
        default=Path("./crm_archiver.db"), description="SQLite ledger path"
    )


class LoggingSettings(BaseModel):
    """Logging preferences."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Toggle JSON structured logging"
    )


class AppSettings(BaseModel):
    """Aggregated application configuration."""

    imap: ImapSettings = Field(default_factory=ImapSettings)
    crm: CrmSettings = Field(default_factory=CrmSettings)
    archiving: ArchivingSettings = Field(default_factory=ArchivingSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


ENV_PREFIX = "CRM_ARCHIVER_"


def _normalize_key(raw_key: str) -> list[str]:
    """Convert an environment variable key into a nested attribute path."""
    trimmed = raw_key.removeprefix(ENV_PREFIX)
    return [segment.lower() for segment in trimmed.split("__") if segment]


def _merge_into_tree(tree: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a value to a nested dictionary given a path."""
    cursor = tree
    for segment in path[:-1]:
        next_node = cursor.setdefault(segment, {})
        cursor = cast(dict[str, Any], next_node)
    cursor[path[-1]] = value


def _collect_env_values(
    env_file: Path | str | None, include_environment: bool
) -> dict[str, Any]:
    """Load configuration values from environment variables and optional file."""
    collected: dict[str, Any] = {}

    file_values = {}
    if env_file:
        env_path = Path(env_file)
        if env_path.is_file():
            file_values = {
                key: value
                for key, value in dotenv_values(env_path).items()
                if key and key.startswith(ENV_PREFIX)
            }

    env_values = {}
    if include_environment:
        env_values = {
            key: value
            for key, value in os.environ.items()
            if key.startswith(ENV_PREFIX)
        }

    combined: dict[str, Any] = {**file_values, **env_values}

    for key, value in combined.items():
        path = _normalize_key(key)
        if not path:
            continue
        normalized_value: Any = value
        if isinstance(value, str) and value == "":
            normalized_value = None
        elif isinstance(value, str):
            lowercase_value = value.lower()
            if lowercase_value == "true":
                normalized_value = True
            elif lowercase_value == "false":
                normalized_value = False
        _merge_into_tree(collected, path, normalized_value)

    return collected


@lru_cache(maxsize=1)
def load_app_settings(
    env_file: Path | str | None = None,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Load application settings, applying env files and overrides."""
    collected = _collect_env_values(env_file, include_environment)
    if overrides:
        collected.update(overrides)
    return AppSettings.model_validate(collected)


__all__ = [
    "AppSettings",
    "ArchivingSettings",
    "CrmSettings",
    "ImapSettings",
    "LoggingSettings",
    "SchedulerSettings",
    "StorageSettings",
    "load_app_settings",
]
