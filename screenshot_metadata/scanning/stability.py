import time
from pathlib import Path
from typing import Callable

from .. import config


def is_file_stable(path: Path,
                   delay: float = config.STABILITY_DELAY_SEC,
                   sleep: Callable[[float], None] = time.sleep) -> bool:
    """
    True only if the file exists, is non-empty, and neither size nor mtime
    change across two samples taken `delay` seconds apart.
    """
    try:
        first = path.stat()
        if first.st_size <= 0:
            return False
        sleep(delay)
        second = path.stat()
    except OSError:
        return False
    return first.st_size == second.st_size and first.st_mtime == second.st_mtime
