"""Runtime wiring helper for CLI and API entry points."""

from dataclasses import dataclass
from pathlib import Path

from .adapters.credentials import CredentialCache
from .adapters.fs_storage import FsStorage
from .adapters.igdb import IgdbClient
from .adapters.yaml_codec import YamlFrontmatter
from .config import StatusmarkConfig, load_config
from .core.vault import Vault
from .tracker import StatusTracker


@dataclass
class Runtime:
    """Container for all wired components."""
    vault: Vault
    tracker: StatusTracker
    config: StatusmarkConfig


def build_runtime(
    vault_path: Path | None = None,
    config_path: Path | None = None,
) -> Runtime:
    """Build and wire all components for a vault."""
    config = load_config(config_path=config_path, vault_path=vault_path)

    if vault_path is None:
        vault_path = config.vault.root

    vault = Vault(FsStorage(vault_path), YamlFrontmatter())
    tracker = StatusTracker(
        vault=vault,
        config=config,
        catalog=IgdbClient(config.igdb.client_id),
        credentials=CredentialCache(),
    )
    return Runtime(vault=vault, tracker=tracker, config=config)
