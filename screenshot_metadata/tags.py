import threading
from typing import List, Optional


def parse_tags(raw: Optional[str]) -> List[str]:
    """Splits on commas, trims, drops blanks and duplicates (order preserved)."""
    tags: List[str] = []
    if not raw:
        return tags
    for part in raw.split(','):
        tag = part.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


class PendingTags:
    """
    Holds the tag string typed before a capture. Each value is handed out once.
    """

    def __init__(self):
        self._value: Optional[str] = None
        self._lock = threading.Lock()

    def set(self, tags: Optional[str]):
        with self._lock:
            if tags is None or not tags.strip():
                self._value = None
            else:
                self._value = tags.strip()

    def peek(self) -> Optional[str]:
        with self._lock:
            return self._value

    def consume(self) -> Optional[str]:
        """Read-and-clear."""
        with self._lock:
            value, self._value = self._value, None
            return value

    def restore(self, tags: Optional[str]):
        """Puts consumed tags back unless newer ones were set meanwhile."""
        with self._lock:
            if self._value is None and tags:
                self._value = tags
