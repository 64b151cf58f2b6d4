import logging
import os
import re
import shutil
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional

from .. import config
from ..exceptions import RenameError


def render_template(template: str, metadata: Mapping[str, str], now: Optional[datetime] = None) -> str:
    """Literal placeholder substitution; absent fields get a fixed fallback."""
    now = now or datetime.now()
    date = now.strftime("%Y-%m-%d")
    time = now.strftime("%H-%M-%S")

    result = template
    result = result.replace("{date}", date)
    result = result.replace("{time}", time)
    result = result.replace("{datetime}", f"{date}_{time}")
    for token, (key, fallback) in config.TEMPLATE_FIELDS.items():
        result = result.replace(token, metadata.get(key, fallback))
    return result


def render_preview(template: Optional[str], now: Optional[datetime] = None) -> str:
    """Renders a template against sample values, for the settings screen."""
    if template is None or not template.strip():
        template = config.DEFAULT_NAME_TEMPLATE
    return sanitize_filename(render_template(template, config.PREVIEW_VALUES, now)) + ".png"


def sanitize_filename(name: Optional[str]) -> str:
    if name is None:
        return ""
    return re.sub(config.ILLEGAL_FILENAME_CHARS, "_", name).strip()


class ScreenshotRenamer:
    def __init__(self, enabled: bool, template: Optional[str]):
        self.enabled = enabled
        self.template = template

    def maybe_rename(self, path: Path, metadata: Mapping[str, str], now: Optional[datetime] = None) -> Path:
        """
        Renames the screenshot after the template. Best effort: any failure
        leaves the file where it is and returns the original path.
        """
        if not self.enabled or not self.template or not self.template.strip():
            return path

        stem = sanitize_filename(render_template(self.template, metadata, now))
        if not stem:
            return path

        try:
            target = self._resolve_collision(path, stem)
            if target == path:
                return path
            self._move(path, target)
        except (OSError, RenameError) as e:
            logging.warning(f"Failed to rename screenshot {path.name}: {e}")
            return path

        logging.debug(f"Renamed screenshot {path.name} -> {target.name}")
        return target

    def _resolve_collision(self, path: Path, stem: str) -> Path:
        """Appends _1, _2, ... until the name is free (or already names this file)."""
        ext = path.suffix
        candidate = path.parent / f"{stem}{ext}"
        counter = 1
        while candidate.exists() and not self._same_file(candidate, path):
            candidate = path.parent / f"{stem}_{counter}{ext}"
            counter += 1
        return candidate

    def _same_file(self, a: Path, b: Path) -> bool:
        try:
            return os.path.samefile(a, b)
        except OSError:
            return False

    def _move(self, src: Path, dest: Path):
        if dest.exists():
            if not self._same_file(dest, src):
                raise RenameError(f"{dest.name} appeared during rename")
            # Case-only change of the same file
            os.rename(src, dest)
            return

        # link() refuses an existing name, so a file created meanwhile is never clobbered
        try:
            os.link(src, dest)
        except FileExistsError as e:
            raise RenameError(f"{dest.name} appeared during rename") from e
        except OSError as link_err:
            logging.debug(f"Hard link failed for {src.name} ({link_err}), falling back to move")
            shutil.move(str(src), str(dest))
            return
        try:
            os.unlink(src)
        except OSError:
            dest.unlink()
            raise
