import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from .. import config
from ..models import FileSnapshot
from .stability import is_file_stable


def default_fallback_dirs() -> List[Path]:
    """Platform download/temp locations checked after the game directory."""
    return [Path.home() / "Downloads", Path(tempfile.gettempdir())]


class ScreenshotLocator:
    """
    Finds the screenshot produced by one capture.

    The primary source is <base>/screenshots, polled with exponential backoff
    until a new, stable file shows up. When the attempt budget runs out the
    base directory and the fallback directories are searched once each.
    """

    def __init__(self,
                 max_attempts: int = config.LOCATE_MAX_ATTEMPTS,
                 initial_sleep: float = config.LOCATE_INITIAL_SLEEP_SEC,
                 backoff: float = config.LOCATE_BACKOFF_MULTIPLIER,
                 max_sleep: float = config.LOCATE_MAX_SLEEP_SEC,
                 fallback_dirs: Optional[List[Path]] = None,
                 probe: Callable[[Path], bool] = is_file_stable,
                 sleep: Callable[[float], None] = time.sleep):
        self.max_attempts = max_attempts
        self.initial_sleep = initial_sleep
        self.backoff = backoff
        self.max_sleep = max_sleep
        self.fallback_dirs = default_fallback_dirs() if fallback_dirs is None else list(fallback_dirs)
        self.probe = probe
        self.sleep = sleep

    def snapshot_reference(self, base_dir: Path) -> Optional[FileSnapshot]:
        """
        Captures the newest existing screenshot. Taken per capture event,
        immediately before the host starts saving.
        """
        newest = self._newest(self._iter_screenshots(base_dir / config.SCREENSHOTS_DIR), None)
        if newest is None:
            return None
        try:
            return FileSnapshot.of(newest)
        except OSError as e:
            logging.debug(f"Could not snapshot {newest}: {e}")
            return None

    def locate(self, base_dir: Path, reference: Optional[FileSnapshot] = None) -> Optional[Path]:
        primary = base_dir / config.SCREENSHOTS_DIR
        if not primary.is_dir():
            logging.warning(f"Screenshots directory not found: {primary}")

        wait = self.initial_sleep
        for attempt in range(1, self.max_attempts + 1):
            candidate = self._newest(self._iter_screenshots(primary), reference)
            if candidate is not None and self.probe(candidate):
                logging.debug(f"Found screenshot {candidate.name} on attempt {attempt}")
                return candidate
            if attempt < self.max_attempts:
                self.sleep(wait)
                wait = min(wait * self.backoff, self.max_sleep)

        logging.debug(f"No stable screenshot in {primary} after {self.max_attempts} attempts")
        return self._search_fallbacks(base_dir, reference)

    def _search_fallbacks(self, base_dir: Path, reference: Optional[FileSnapshot]) -> Optional[Path]:
        if reference is not None:
            cutoff = reference.mtime
        else:
            cutoff = time.time() - config.FALLBACK_WINDOW_SEC

        for directory in [base_dir, *self.fallback_dirs]:
            if not directory.is_dir():
                continue

            recent = []
            for path in self._iter_screenshots(directory):
                try:
                    mtime = path.stat().st_mtime
                except OSError:
                    continue
                if mtime > cutoff:
                    recent.append((mtime, path))

            if not recent:
                continue
            _, newest = max(recent)
            if self.probe(newest):
                logging.debug(f"Found screenshot in fallback location: {newest}")
                return newest
        return None

    def _newest(self, paths: Iterator[Path], reference: Optional[FileSnapshot]) -> Optional[Path]:
        """Greatest (name, mtime) pair, restricted to files newer than the reference."""
        best = None
        best_key = None
        for path in paths:
            try:
                key = (path.name, path.stat().st_mtime)
            except OSError:
                continue
            if reference is not None and not self._is_newer(key, reference):
                continue
            if best_key is None or key > best_key:
                best, best_key = path, key
        return best

    @staticmethod
    def _is_newer(key, reference: FileSnapshot) -> bool:
        name, mtime = key
        return name > reference.name or (name == reference.name and mtime > reference.mtime)

    def list_screenshots(self, directory: Path) -> List[Path]:
        """Screenshots in directory, sorted by name."""
        return sorted(self._iter_screenshots(directory), key=lambda p: p.name)

    def _iter_screenshots(self, directory: Path) -> Iterator[Path]:
        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError:
            return

        for e in entries:
            if e.name.startswith('.'):
                continue
            if not e.is_file(follow_symlinks=False):
                continue
            if Path(e.name).suffix.lower() in config.SCREENSHOT_EXTS:
                yield Path(e.path)
