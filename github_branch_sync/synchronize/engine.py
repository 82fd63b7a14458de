"""Decides whether the configured branch needs syncing and mirrors it when it does."""

import asyncio
import time
import weakref
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

import structlog

from github_branch_sync.archive.installer import ArchiveInstaller
from github_branch_sync.configuration.env import Settings
from github_branch_sync.configuration.models import SyncConfigDocument, SyncState, SyncTarget
from github_branch_sync.configuration.store import SyncConfigStore
from github_branch_sync.github.fetcher import SnapshotFetcher
from github_branch_sync.synchronize.exceptions import ConfigError, SyncError
from github_branch_sync.synchronize.results import Result, SyncCycleResult, SyncOutcome

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

# Unauthenticated API calls have a much lower rate limit, so poll less often.
AUTHENTICATED_SYNC_INTERVAL = timedelta(seconds=300)
UNAUTHENTICATED_SYNC_INTERVAL = timedelta(seconds=3600)

Clock = Callable[[], datetime]

# asyncio locks are bound to the loop they are first contended in.
_cycle_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[Path, asyncio.Lock]]" = weakref.WeakKeyDictionary()


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def get_cycle_lock(config_path: Path) -> asyncio.Lock:
    """Return the lock serializing cycles of the target described by a config document.

    Must be called from a running event loop; each loop gets its own locks.
    """
    loop_locks = _cycle_locks.setdefault(asyncio.get_running_loop(), {})
    key = config_path.resolve()
    if key not in loop_locks:
        loop_locks[key] = asyncio.Lock()
    return loop_locks[key]


def get_sync_interval(github_token: str | None) -> timedelta:
    """Return the minimum time between sync attempts for the given credential."""
    return AUTHENTICATED_SYNC_INTERVAL if github_token else UNAUTHENTICATED_SYNC_INTERVAL


def is_sync_due(state: SyncState, sync_interval: timedelta, now: datetime) -> bool:
    """Whether enough time has passed since the last sync for another one to run."""
    if state.last_sync_time is None:
        return True
    return now >= state.last_sync_time + sync_interval


def resolve_sync_target(document: SyncConfigDocument, content_root: Path) -> Result[SyncTarget]:
    """Build the sync target from the config document, checking the destination directory exists."""
    if not document.owner or not document.repo:
        return Result.failure(ConfigError("Both 'owner' and 'repo' must be set in the sync configuration"))
    if not document.target_dir:
        return Result.failure(ConfigError("A destination directory must be set with 'targetDir' in the sync configuration"))

    # The installer renames the destination and creates siblings next to it.
    target_dir = Path(document.target_dir)
    if target_dir.is_absolute() or ".." in target_dir.parts or not target_dir.parts:
        return Result.failure(ConfigError(f"'targetDir' must be a subdirectory of the content root, got {document.target_dir!r}"))

    destination = (content_root / target_dir).absolute()
    if not destination.is_dir():
        return Result.failure(ConfigError(f"The destination path {destination} does not exist or is not a directory"))
    return Result.success(SyncTarget(owner=document.owner, repo=document.repo, branch=document.branch, destination=destination))


class SyncEngine:
    """Runs one synchronization cycle per scheduler tick.

    The engine owns the persisted sync state: it is read from the config
    store at the start of every cycle and written back only after a
    successful install.
    """

    def __init__(
        self,
        store: SyncConfigStore,
        content_root: Path,
        fetcher: SnapshotFetcher,
        installer: ArchiveInstaller,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the engine with its collaborators."""
        self.store = store
        self.content_root = content_root
        self.fetcher = fetcher
        self.installer = installer
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, config_path: Path | None = None) -> "SyncEngine":
        """Build an engine using the paths and endpoints from the application settings."""
        return cls(
            store=SyncConfigStore(config_path or settings.CONFIG_PATH),
            content_root=settings.CONTENT_ROOT,
            fetcher=SnapshotFetcher(
                github_api_url=settings.GITHUB_API_URL,
                github_web_url=settings.GITHUB_WEB_URL,
                timeout=settings.HTTP_TIMEOUT,
            ),
            installer=ArchiveInstaller(settings.CACHE_ROOT),
        )

    async def run_cycle(self) -> SyncCycleResult:
        """Run one synchronization cycle.

        Never raises: configuration problems and failures are returned as the
        cycle outcome and logged.
        """
        try:
            async with get_cycle_lock(self.store.path):
                return await self._run_cycle()
        except Exception as e:
            logger.exception("Unexpected error during sync cycle", config_path=str(self.store.path))
            return SyncCycleResult(outcome=SyncOutcome.FAILED, error=SyncError(f"Unexpected error during sync cycle: {e}"))

    async def _run_cycle(self) -> SyncCycleResult:
        started_at = self.clock()

        try:
            document = self.store.load()
        except ConfigError as e:
            return self._config_error(e)
        target_result = resolve_sync_target(document, self.content_root)
        if not target_result.ok:
            return self._config_error(target_result.error)
        target = target_result.unwrap()
        state = document.sync_state()
        log = logger.bind(owner=target.owner, repo=target.repo, branch=target.branch)

        sync_interval = get_sync_interval(document.github_token)
        if not is_sync_due(state, sync_interval, started_at):
            log.debug(
                "Sync not due yet",
                last_sync_time=state.last_sync_time.isoformat() if state.last_sync_time else None,
                sync_interval=sync_interval.total_seconds(),
            )
            return SyncCycleResult(outcome=SyncOutcome.NOT_DUE, sha=state.last_sha, synced_at=state.last_sync_time)

        sha_result = await self.fetcher.get_latest_commit_id(target, document.github_token)
        if not sha_result.ok:
            return self._failed(log, sha_result.error)
        latest_sha = sha_result.unwrap()

        if latest_sha == state.last_sha:
            log.info("Destination already up to date", sha=latest_sha)
            return SyncCycleResult(outcome=SyncOutcome.UP_TO_DATE, sha=latest_sha, synced_at=state.last_sync_time)

        start_time = time.time()
        archive_result = await self.fetcher.download_archive(target)
        if not archive_result.ok:
            return self._failed(log, archive_result.error)
        install_result = await asyncio.to_thread(self.installer.install, archive_result.unwrap(), target.destination)
        if not install_result.ok:
            return self._failed(log, install_result.error)

        synced_at = max(self.clock(), started_at)
        try:
            self.store.save(document.with_sync_state(SyncState(last_sha=latest_sha, last_sync_time=synced_at)))
        except ConfigError as e:
            return self._failed(log, e)
        log.info(
            "Synced branch snapshot",
            sha=latest_sha,
            previous_sha=state.last_sha,
            destination=str(target.destination),
            duration=round(time.time() - start_time, 2),
        )
        return SyncCycleResult(outcome=SyncOutcome.SYNCED, sha=latest_sha, synced_at=synced_at)

    def _config_error(self, error: SyncError | None) -> SyncCycleResult:
        logger.error("Sync configuration error", config_path=str(self.store.path), error=str(error))
        return SyncCycleResult(outcome=SyncOutcome.CONFIG_ERROR, error=error)

    def _failed(self, log: structlog.stdlib.BoundLogger, error: SyncError | None) -> SyncCycleResult:
        log.error("Sync failed", error=str(error), error_type=type(error).__name__)
        return SyncCycleResult(outcome=SyncOutcome.FAILED, error=error)
