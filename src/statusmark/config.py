"""Configuration loader for statusmark.toml."""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .core.model import DEFAULT_ITEM_TYPES, ItemType

DEFAULT_STATUSES = ["complete", "abandoned", "backlog", "on radar", "in progress"]
CONFIG_NAME = "statusmark.toml"


@dataclass
class VaultConfig:
    """Vault-specific configuration."""
    root: Path


@dataclass
class StatusConfig:
    """Status choices and the date stamp written next to them."""
    names: list[str] = field(default_factory=lambda: list(DEFAULT_STATUSES))
    date_format: str = "%Y-%m-%d"


@dataclass
class IgdbConfig:
    """IGDB (Twitch) application credentials."""
    client_id: str = ""
    client_secret: str = ""

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass
class LogConfig:
    level: str = "INFO"


@dataclass
class StatusmarkConfig:
    """Complete statusmark configuration."""
    vault: VaultConfig
    status: StatusConfig
    igdb: IgdbConfig
    item_types: list[ItemType]
    log: LogConfig

    def item_type(self, key: str) -> ItemType | None:
        """Find an item type by folder or label (case-insensitive)."""
        key = key.strip().lower()
        for item_type in self.item_types:
            if key in (item_type.folder.lower(), item_type.label.lower()):
                return item_type
        return None


def _clean_statuses(names: Any) -> list[str]:
    if not isinstance(names, list):
        return list(DEFAULT_STATUSES)
    return [s.strip() for s in names if isinstance(s, str) and s.strip()]


def load_config(config_path: Path | None = None, vault_path: Path | None = None) -> StatusmarkConfig:
    """
    Load configuration from statusmark.toml.

    Search order:
    1. config_path (if provided)
    2. cwd/statusmark.toml
    3. vault_path/statusmark.toml

    STATUSMARK_IGDB_CLIENT_ID / STATUSMARK_IGDB_CLIENT_SECRET override the
    [igdb] table.
    """
    toml_data: dict[str, Any] = {}

    search_paths = []
    if config_path:
        search_paths.append(config_path)
    search_paths.append(Path.cwd() / CONFIG_NAME)
    if vault_path:
        search_paths.append(vault_path / CONFIG_NAME)

    for path in search_paths:
        if path.exists():
            with open(path, "rb") as f:
                toml_data = tomllib.load(f)
            break

    vault_data = toml_data.get("vault", {})
    vault_config = VaultConfig(
        root=Path(vault_data.get("root", vault_path or Path("."))),
    )

    status_data = toml_data.get("status", {})
    status_config = StatusConfig(
        names=_clean_statuses(status_data.get("names", DEFAULT_STATUSES)),
        date_format=status_data.get("date_format", "%Y-%m-%d"),
    )

    igdb_data = toml_data.get("igdb", {})
    igdb_config = IgdbConfig(
        client_id=str(
            os.environ.get("STATUSMARK_IGDB_CLIENT_ID", igdb_data.get("client_id", ""))
        ).strip(),
        client_secret=str(
            os.environ.get("STATUSMARK_IGDB_CLIENT_SECRET", igdb_data.get("client_secret", ""))
        ).strip(),
    )

    types_data = toml_data.get("item_types")
    if types_data:
        item_types = [
            ItemType(label=t["label"], folder=t["folder"])
            for t in types_data
            if t.get("label") and t.get("folder")
        ]
    else:
        item_types = list(DEFAULT_ITEM_TYPES)

    log_data = toml_data.get("log", {})
    log_config = LogConfig(level=log_data.get("level", "INFO"))

    return StatusmarkConfig(
        vault=vault_config,
        status=status_config,
        igdb=igdb_config,
        item_types=item_types,
        log=log_config,
    )


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure and return the package logger."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )
    return logging.getLogger("statusmark")
