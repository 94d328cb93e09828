"""
Working-file cleanup.

Uploaded originals and generated variants are reclaimed after every file in a
batch. Where deleting a file that may still be open is unsafe, files are
moved into a process-wide temp directory instead and swept by age later.
Cleanup never raises: every failure is logged and skipped.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
import time
from typing import Iterable, Optional, Protocol, Union

from . import config

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class TempDirectory:
    """Handle on the directory that receives relocated working files."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def ensure(self) -> Path:
        self.path.mkdir(parents=True, exist_ok=True)
        return self.path

    def unique_path(self, name: str) -> Path:
        # nanosecond prefix keeps concurrent batches from colliding
        return self.path / f"{time.time_ns()}-{name}"

    def sweep(self, max_age_seconds: float, now: Optional[float] = None) -> int:
        """Delete files older than ``max_age_seconds``; returns the count removed."""
        if not self.path.is_dir():
            return 0
        now = time.time() if now is None else now
        removed = 0
        try:
            entries = list(self.path.iterdir())
        except OSError as exc:
            logger.error("Error during temp directory cleanup of %s: %s", self.path, exc)
            return 0
        for entry in entries:
            try:
                if not entry.is_file() or now - entry.stat().st_mtime <= max_age_seconds:
                    continue
                entry.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Failed to delete old temp file %s: %s", entry, exc)
        if removed:
            logger.info("Removed %d stale file(s) from %s", removed, self.path)
        return removed


class Reclaimer(Protocol):
    def reclaim(self, path: Path) -> None: ...


class UnlinkReclaimer:
    """Delete working files in place."""

    def reclaim(self, path: Path) -> None:
        path.unlink()


class RelocateReclaimer:
    """Move working files into the temp directory for a later sweep."""

    def __init__(self, temp_dir: TempDirectory) -> None:
        self.temp_dir = temp_dir

    def reclaim(self, path: Path) -> None:
        self.temp_dir.ensure()
        os.replace(path, self.temp_dir.unique_path(path.name))


class Reaper:
    def __init__(
        self,
        reclaimer: Reclaimer,
        temp_dir: TempDirectory,
        max_age_seconds: float = 24 * 60 * 60,
    ) -> None:
        self.reclaimer = reclaimer
        self.temp_dir = temp_dir
        self.max_age_seconds = max_age_seconds

    def release(self, paths: Iterable[Optional[PathLike]]) -> None:
        for raw in paths:
            if not raw:
                continue
            path = Path(raw)
            try:
                self.reclaimer.reclaim(path)
            except FileNotFoundError:
                logger.debug("File %s already reclaimed or never created", path)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to reclaim working file %s: %s", path, exc)

    def sweep(self) -> int:
        try:
            return self.temp_dir.sweep(self.max_age_seconds)
        except Exception as exc:  # noqa: BLE001
            logger.error("Error during temp directory cleanup: %s", exc)
            return 0


def build_reaper(settings: Optional[config.Settings] = None) -> Reaper:
    """Pick the reclaim strategy once, from the configured capability flag."""
    settings = settings or config.get_settings()
    temp_dir = TempDirectory(settings.temp_dir)
    if config.should_relocate_working_files(settings):
        reclaimer: Reclaimer = RelocateReclaimer(temp_dir)
    else:
        reclaimer = UnlinkReclaimer()
    logger.info("Working files reclaimed via %s", type(reclaimer).__name__)
    return Reaper(reclaimer, temp_dir, max_age_seconds=settings.temp_max_age_seconds)
