"""
Artifact Store - short-lived PDF files on local disk.

The directory listing is the only index: an artifact's name encodes its
creation time and its public URL is derived from the name alone. Files
expire two ways, both tolerant of the other having won the race:

- a one-shot deferred deletion scheduled when the file is written
- a periodic sweep removing anything older than the TTL
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Set, Union


logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "pdfs"


@dataclass(frozen=True)
class Artifact:
    """A generated file currently present in the store."""

    name: str
    path: Path
    modified_at: float


class ArtifactStore:
    """Owns a single directory of generated PDFs."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory).resolve()
        self.directory.mkdir(parents=True, exist_ok=True)
        self._timers: Set[asyncio.Task] = set()

    @staticmethod
    def new_name() -> str:
        """Timestamp-derived name; not unique within the same millisecond."""
        return f"output-{int(time.time() * 1000)}.pdf"

    def path_for(self, name: str) -> Path:
        """Resolve a bare file name inside the store directory."""
        if not name or Path(name).name != name or name in (".", ".."):
            raise ValueError(f"Invalid artifact name: {name!r}")
        return self.directory / name

    async def write(self, name: str, data: bytes) -> Path:
        """
        Persist content under the store directory.

        Returns:
            Absolute path of the written file
        """
        path = self.path_for(name)
        self.directory.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, data)
        logger.info(f"Stored {name} ({len(data)} bytes)")
        return path

    def delete(self, path: Union[str, Path]) -> bool:
        """
        Delete a file, treating "already absent" as success.

        Returns:
            True if the file is gone, False if deletion failed (logged)
        """
        path = Path(path)
        try:
            path.unlink()
            logger.info(f"Deleted {path}")
        except FileNotFoundError:
            logger.debug(f"{path} already removed")
        except OSError as e:
            logger.error(f"Failed to delete {path}: {e}")
            return False
        return True

    def schedule_deletion(self, path: Union[str, Path], delay: float) -> asyncio.Task:
        """Delete `path` once, `delay` seconds from now."""
        task = asyncio.create_task(self._delete_later(Path(path), delay))
        self._timers.add(task)
        task.add_done_callback(self._timers.discard)
        return task

    async def _delete_later(self, path: Path, delay: float) -> None:
        await asyncio.sleep(delay)
        await asyncio.to_thread(self.delete, path)

    @property
    def pending_deletions(self) -> int:
        return len(self._timers)

    def list_artifacts(self) -> List[Artifact]:
        """Files currently in the store, oldest first."""
        artifacts = []
        try:
            entries = list(self.directory.iterdir())
        except OSError as e:
            logger.error(f"Cannot list {self.directory}: {e}")
            return artifacts

        for entry in entries:
            try:
                if not entry.is_file():
                    continue
                artifacts.append(Artifact(entry.name, entry, entry.stat().st_mtime))
            except FileNotFoundError:
                continue
        return sorted(artifacts, key=lambda a: a.modified_at)

    def sweep(self, max_age: float, now: Optional[float] = None) -> List[str]:
        """
        Delete every file whose age is strictly greater than `max_age`.

        A file exactly `max_age` seconds old is kept. Per-file failures are
        logged and the sweep continues with the remaining entries.

        Returns:
            Names of the files removed
        """
        now = time.time() if now is None else now
        deleted = []
        try:
            entries = list(self.directory.iterdir())
        except OSError as e:
            logger.error(f"Cleanup error: cannot list {self.directory}: {e}")
            return deleted

        for entry in entries:
            try:
                if not entry.is_file():
                    continue
                age = now - entry.stat().st_mtime
            except FileNotFoundError:
                # Deferred deletion got there first
                continue
            except OSError as e:
                logger.error(f"Cleanup error: cannot stat {entry}: {e}")
                continue

            if age > max_age and self.delete(entry):
                deleted.append(entry.name)

        if deleted:
            logger.info(f"Sweep removed {len(deleted)} expired file(s)")
        return deleted

    async def run_sweeper(self, interval: float, max_age: float) -> None:
        """Sweep every `interval` seconds until cancelled."""
        logger.info(f"Sweeper started (interval={interval}s, ttl={max_age}s)")
        while True:
            await asyncio.sleep(interval)
            try:
                await asyncio.to_thread(self.sweep, max_age)
            except Exception:
                logger.exception("Cleanup error during sweep")

    async def close(self) -> None:
        """Cancel deferred deletions still waiting to fire."""
        timers = list(self._timers)
        for task in timers:
            task.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)
            logger.info(f"Cancelled {len(timers)} pending deletion timer(s)")

    @staticmethod
    def url_for(name: str, base_url: str) -> str:
        """Public retrieval URL for an artifact name."""
        return f"{base_url.rstrip('/')}/{PUBLIC_PREFIX}/{name}"
