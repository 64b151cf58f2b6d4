"""
Pieces shared by the sinks: descriptive text built from the record and
whole-file sidecar writes.
"""
import os
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Mapping, Optional

from .. import config

_UMASK_LOCK = threading.Lock()


def summary_line(metadata: Mapping[str, str]) -> Optional[str]:
    """
    'Minecraft Screenshot - Player: x | World: y | Coords: (..) | Biome: z'.
    None when none of the source fields are present.
    """
    parts = []
    if 'Username' in metadata:
        parts.append(f" - Player: {metadata['Username']}")
    if 'World' in metadata:
        parts.append(f" | World: {metadata['World']}")
    if all(k in metadata for k in ('X', 'Y', 'Z')):
        parts.append(f" | Coords: ({metadata['X']}, {metadata['Y']}, {metadata['Z']})")
    if 'Biome' in metadata:
        parts.append(f" | Biome: {metadata['Biome']}")
    if not parts:
        return None
    return config.SUBJECT + ''.join(parts)


def title_for(player: str) -> str:
    return f"Minecraft - {player}"


def software_tag() -> str:
    return f"{config.TOOL_NAME} v{config.TOOL_VERSION}"


def sidecar_path(image: Path, ext: str) -> Path:
    return image.with_suffix(ext)


def current_umask() -> int:
    # os.umask can only be read by setting it
    with _UMASK_LOCK:
        mask = os.umask(0)
        os.umask(mask)
    return mask


def match_target_mode(tmp_path: Path, target: Path):
    """
    Gives a temp file the permissions its target has (or would get on a plain
    create), since mkstemp always creates files as 0600.
    """
    try:
        shutil.copymode(target, tmp_path)
    except FileNotFoundError:
        os.chmod(tmp_path, 0o666 & ~current_umask())


def write_whole_file(path: Path, text: str):
    """Replaces path with text in one step so readers never see a partial file."""
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8', newline='\n') as f:
            f.write(text)
        match_target_mode(tmp_path, path)
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()
