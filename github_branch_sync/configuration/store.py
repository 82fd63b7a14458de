"""Loads and saves the sync configuration document as YAML.

The document is read and written in ruamel.yaml round-trip mode. Saving
only rewrites the values that changed, so comments, key order and keys
owned by the host survive every sync.
"""

import os
import tempfile
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import structlog
from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap
from ruamel.yaml.error import YAMLError

from github_branch_sync.configuration.models import SyncConfigDocument
from github_branch_sync.synchronize.exceptions import ConfigError

logger = structlog.get_logger(__name__)


def create_yaml_dumper() -> YAML:
    """Creates a round-trip YAML object for reading and dumping the config document in block style."""
    yaml_dumper = YAML()
    yaml_dumper.preserve_quotes = True
    yaml_dumper.default_flow_style = False
    yaml_dumper.indent(mapping=2, sequence=4, offset=2)  # type: ignore[attr-defined]
    yaml_dumper.width = 4096  # Prevent line wrapping for long lines
    return yaml_dumper


def merge_into(node: MutableMapping[str, Any], updates: Mapping[str, Any]) -> None:
    """Apply updates to a round-trip YAML mapping in place, leaving unchanged values untouched."""
    for key, value in updates.items():
        current = node.get(key)
        if isinstance(value, Mapping) and isinstance(current, MutableMapping):
            merge_into(current, value)
        elif current != value:
            node[key] = value


class SyncConfigStore:
    """Reads and writes the sync configuration document at a fixed path."""

    def __init__(self, path: Path) -> None:
        """Initialize the store with the path of the YAML document."""
        self.path = path

    def exists(self) -> bool:
        """Whether the config document exists on disk."""
        return self.path.is_file()

    def read_raw(self) -> CommentedMap:
        """Read the document as a round-trip mapping, keeping its comments.

        Raises:
            ConfigError: If the file is not valid YAML or is not a mapping.
        """
        try:
            with open(self.path, encoding="utf-8") as f:
                data: Any = create_yaml_dumper().load(f)
        except (OSError, YAMLError) as e:
            raise ConfigError(f"Failed to read config file {self.path}: {e}") from e
        if data is None:
            return CommentedMap()
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {self.path} must contain a mapping at the top level")
        return data

    def load(self) -> SyncConfigDocument:
        """Load and validate the config document.

        Raises:
            ConfigError: If the file is missing, is not valid YAML, or does not
                match the expected document structure.
        """
        if not self.exists():
            raise ConfigError(f"Config file not found: {self.path}")
        data = self.read_raw()
        try:
            return SyncConfigDocument.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid config file {self.path}: {e}") from e

    def save(self, document: SyncConfigDocument) -> None:
        """Write the fields set on the document, replacing the previous file atomically.

        Fields that were never set (for example a defaulted branch) are not
        added to the file.

        Raises:
            ConfigError: If the document could not be written.
        """
        raw = self.read_raw() if self.exists() else CommentedMap()
        merge_into(raw, document.to_yaml_data())
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        except OSError as e:
            raise ConfigError(f"Failed to write config file {self.path}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                create_yaml_dumper().dump(raw, f)
            os.replace(tmp_name, self.path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise ConfigError(f"Failed to write config file {self.path}: {e}") from e
        logger.debug("Saved sync configuration", path=str(self.path))
