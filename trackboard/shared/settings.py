"""Shared runtime settings for local-first disk-backed storage."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_LOCK_TIMEOUT_MS = 10_000
DEFAULT_PROJECT_KEY = "KAN"
DEFAULT_TICKET_COUNTER = 100
DEFAULT_COLUMNS: tuple[tuple[str, str], ...] = (
    ("todo", "To Do"),
    ("progress", "In Progress"),
    ("done", "Done"),
)


@dataclass(frozen=True)
class SeedSettings:
    """Initial rows written into an empty store."""

    project_key: str = DEFAULT_PROJECT_KEY
    ticket_counter: int = DEFAULT_TICKET_COUNTER
    columns: tuple[tuple[str, str], ...] = DEFAULT_COLUMNS

    @classmethod
    def from_yaml(cls, path: Path) -> "SeedSettings":
        """Read seed overrides from a YAML document.

        Recognized keys: ``project_key``, ``ticket_counter`` and ``columns``
        (a list of ``{id, title}`` mappings). Missing keys keep the defaults.
        """

        if not path.exists():
            raise FileNotFoundError(f"Seed file not found: {path}")
        raw = yaml.safe_load(path.read_text()) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"invalid_seed_file:{path}")
        columns = DEFAULT_COLUMNS
        raw_columns = raw.get("columns")
        if isinstance(raw_columns, list):
            parsed: list[tuple[str, str]] = []
            for entry in raw_columns:
                if not isinstance(entry, dict):
                    continue
                column_id = str(entry.get("id", "")).strip()
                title = str(entry.get("title", "")).strip() or column_id
                if column_id:
                    parsed.append((column_id, title))
            if parsed:
                columns = tuple(parsed)
        return cls(
            project_key=str(raw.get("project_key", DEFAULT_PROJECT_KEY)).strip()
            or DEFAULT_PROJECT_KEY,
            ticket_counter=int(raw.get("ticket_counter", DEFAULT_TICKET_COUNTER)),
            columns=columns,
        )


@dataclass(frozen=True)
class StorageSettings:
    """Filesystem, SQLite and locking knobs used by local-first deployments."""

    data_dir: Path
    sqlite_path: Path
    backend: str = "sqlite"
    lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS
    log_level: str = "INFO"
    seed: SeedSettings = field(default_factory=SeedSettings)

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> "StorageSettings":
        source = env or os.environ
        data_dir = Path(source.get("TRACKBOARD_DATA_DIR", "./data"))
        sqlite_path = Path(
            source.get("TRACKBOARD_SQLITE_PATH", str(data_dir / "trackboard.sqlite"))
        )
        backend = source.get("TRACKBOARD_BACKEND", "sqlite").strip().lower() or "sqlite"
        if backend not in {"sqlite", "memory"}:
            raise ValueError(f"unknown_backend:{backend}")
        lock_timeout_ms = int(
            source.get("TRACKBOARD_LOCK_TIMEOUT_MS", str(DEFAULT_LOCK_TIMEOUT_MS))
        )
        seed_file = source.get("TRACKBOARD_SEED_FILE", "").strip()
        seed = SeedSettings.from_yaml(Path(seed_file)) if seed_file else SeedSettings()
        return cls(
            data_dir=data_dir,
            sqlite_path=sqlite_path,
            backend=backend,
            lock_timeout_ms=lock_timeout_ms,
            log_level=source.get("TRACKBOARD_LOG_LEVEL", "INFO").strip().upper() or "INFO",
            seed=seed,
        )

    def ensure_directories(self) -> None:
        if self.backend != "sqlite":
            return
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.sqlite_path.parent.mkdir(parents=True, exist_ok=True)


def get_storage_settings(env: dict[str, str] | None = None) -> StorageSettings:
    """Build and hydrate storage settings from environment variables."""

    settings = StorageSettings.from_env(env)
    settings.ensure_directories()
    return settings


def configure_logging(level: str = "INFO", **kwargs: Any) -> None:
    """Install a basic root handler for the CLI and server entrypoints."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        **kwargs,
    )
