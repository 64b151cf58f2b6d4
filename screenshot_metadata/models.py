from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, Optional, Tuple

# Ordered, read-only key -> value view handed to every sink
MetadataRecord = Mapping[str, str]


def freeze_record(pairs: Iterable[Tuple[Any, Any]]) -> MetadataRecord:
    """
    Builds an immutable MetadataRecord, keeping the first occurrence of each key.
    Pairs with a None key or value are dropped; everything else is coerced to str.
    """
    data = {}
    for key, value in pairs:
        if key is None or value is None:
            continue
        data.setdefault(str(key), str(value))
    return MappingProxyType(data)


@dataclass(frozen=True)
class FileSnapshot:
    """
    Identity of a file at a point in time (used as the 'newest before save' reference).
    """
    path: Path
    mtime: float
    size: int

    @property
    def name(self) -> str:
        return self.path.name

    @classmethod
    def of(cls, path: Path) -> "FileSnapshot":
        st = path.stat()
        return cls(path=path, mtime=st.st_mtime, size=st.st_size)


@dataclass(frozen=True)
class CaptureEvent:
    base_dir: Path
    reference: Optional[FileSnapshot] = None


@dataclass
class SidecarContext:
    """
    Extra modpack information written only by the JSON sidecar.
    addon_count is -1 when the add-on inventory could not be read.
    """
    resource_packs: List[str] = field(default_factory=list)
    shader_pack: Optional[str] = None
    addons: List[str] = field(default_factory=list)
    addon_count: int = -1
    addon_list_truncated: bool = False


@dataclass(frozen=True)
class SinkContext:
    target: Path
    metadata: MetadataRecord
    extended: Optional[SidecarContext] = None


@dataclass
class SinkResult:
    sink: str
    ok: bool
    path: Optional[Path] = None
    reason: Optional[str] = None


@dataclass
class PipelineResult:
    status: str                 # not_found / empty / done / failed
    screenshot: Optional[Path] = None
    sinks: List[SinkResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == "done" and all(r.ok for r in self.sinks)
