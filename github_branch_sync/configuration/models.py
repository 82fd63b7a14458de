"""Models for the sync target, its credential and persisted sync state."""

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


@dataclass(frozen=True)
class SyncTarget:
    """Identifies the branch to mirror and the directory it is mirrored into."""

    owner: str
    repo: str
    destination: Path
    branch: str = "main"

    @property
    def full_name(self) -> str:
        """Return the repository in 'owner/repo' format."""
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class SyncState:
    """Last successfully synced commit and when it was synced."""

    last_sha: str | None = None
    last_sync_time: datetime | None = None


class LastSyncModel(BaseModel):
    """Pydantic model for the `lastSync` section of the config document."""

    model_config = ConfigDict(extra="allow")

    sha: str | None = None
    time: datetime | None = None

    @field_validator("time", mode="before")
    @classmethod
    def empty_time_is_unset(cls, value: Any) -> Any:
        """Treat zero, empty and missing timestamps as never synced."""
        if value in (None, "", 0, "0"):
            return None
        return value

    @field_validator("time")
    @classmethod
    def assume_utc(cls, value: datetime | None) -> datetime | None:
        """Attach UTC to naive timestamps so they compare with aware ones."""
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class SyncConfigDocument(BaseModel):
    """Pydantic model for the persisted sync configuration document.

    Keys use the camelCase names found on disk. Unknown keys are kept so
    that saving the document does not drop settings owned by the host.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    owner: str | None = None
    repo: str | None = None
    branch: str = "main"
    github_token: str | None = Field(default=None, alias="githubToken")
    target_dir: str | None = Field(default=None, alias="targetDir")
    last_sync: LastSyncModel = Field(default_factory=LastSyncModel, alias="lastSync")

    @field_validator("branch", mode="before")
    @classmethod
    def default_branch(cls, value: Any) -> Any:
        """Fall back to 'main' when the branch is empty."""
        return value or "main"

    @field_validator("last_sync", mode="before")
    @classmethod
    def empty_last_sync(cls, value: Any) -> Any:
        """Accept a null or empty `lastSync` section."""
        return value or {}

    def sync_state(self) -> SyncState:
        """Return the persisted sync state."""
        return SyncState(last_sha=self.last_sync.sha, last_sync_time=self.last_sync.time)

    def with_sync_state(self, state: SyncState) -> "SyncConfigDocument":
        """Return a copy of the document recording the given sync state."""
        last_sync = self.last_sync.model_copy(update={"sha": state.last_sha, "time": state.last_sync_time})
        return self.model_copy(update={"last_sync": last_sync})

    def to_yaml_data(self) -> dict[str, Any]:
        """Dump the fields set on the document using the on-disk key names.

        Unknown keys are left out; they stay as they are in the file.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True, exclude_unset=True, include=set(type(self).model_fields))
