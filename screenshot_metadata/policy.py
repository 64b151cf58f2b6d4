"""
User policy: which metadata categories are collected and which sinks run.

The policy is a snapshot read once per capture; the configuration surface
owns the file on disk and replaces it between captures.
"""
import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import List, Set

from . import config
from .exceptions import PolicyError

# --- Snapshot Categories ---
IDENTITY = 'identity'
POSITION = 'position'
WORLD = 'world'
BIOME = 'biome'
WEATHER = 'weather'
TIME = 'time'
SERVER = 'server'
SEED = 'seed'
STATUS = 'status'
EQUIPMENT = 'equipment'
EFFECTS = 'effects'
PERFORMANCE = 'performance'
MODPACK = 'modpack'

# Categories collected regardless of toggles
ALWAYS_COLLECTED = {IDENTITY, WORLD, TIME, SERVER}


@dataclass
class Policy:
    write_png_metadata: bool = True
    write_xmp_sidecar: bool = True
    write_json_sidecar: bool = True
    include_world_seed: bool = True
    include_performance_metrics: bool = True
    include_player_status: bool = True
    include_equipment: bool = True
    include_potion_effects: bool = True
    include_coordinates: bool = True
    include_biome_info: bool = True
    include_weather_info: bool = True
    include_modpack_context: bool = True
    privacy_mode: bool = False
    rename_screenshots: bool = False
    screenshot_name_template: str = config.DEFAULT_NAME_TEMPLATE
    tag_presets: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.tag_presets = sanitize_presets(self.tag_presets)

    @property
    def wants_sidecar_context(self) -> bool:
        return self.write_json_sidecar and self.include_modpack_context

    def enabled_categories(self) -> Set[str]:
        """Snapshot categories to request from the host for one capture."""
        cats = set(ALWAYS_COLLECTED)
        toggles = [
            (self.include_coordinates, POSITION),
            (self.include_biome_info, BIOME),
            (self.include_weather_info, WEATHER),
            (self.include_world_seed, SEED),
            (self.include_player_status, STATUS),
            (self.include_equipment, EQUIPMENT),
            (self.include_potion_effects, EFFECTS),
            (self.include_performance_metrics, PERFORMANCE),
            (self.wants_sidecar_context, MODPACK),
        ]
        for enabled, cat in toggles:
            if enabled:
                cats.add(cat)
        return cats

    @classmethod
    def reset(cls) -> "Policy":
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> "Policy":
        """Unknown keys are ignored; values of the wrong type fall back to the default."""
        defaults = cls()
        kwargs = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            value = _coerce(data[f.name], getattr(defaults, f.name))
            if value is None:
                logging.warning(f"Ignoring invalid policy value {f.name}={data[f.name]!r}")
                continue
            kwargs[f.name] = value
        return cls(**kwargs)

    @classmethod
    def load(cls, path: Path) -> "Policy":
        """
        Reads the policy file. A missing file is created with defaults;
        an unreadable one falls back to defaults without touching the file.
        """
        if not path.exists():
            policy = cls()
            try:
                policy.save(path)
            except PolicyError as e:
                logging.warning(f"Failed to write default policy to {path}: {e}")
            return policy

        try:
            with path.open('r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("policy file must hold a JSON object")
            return cls.from_dict(data)
        except (OSError, ValueError, TypeError) as e:
            logging.warning(f"Failed to read policy {path}, using defaults: {e}")
            return cls()

    def save(self, path: Path):
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open('w', encoding='utf-8') as f:
                json.dump(asdict(self), f, indent=2)
        except OSError as e:
            raise PolicyError(f"Failed to save policy to {path}: {e}") from e


def _coerce(value, default):
    """Value converted to the type of default, or None when it cannot be."""
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
            return value.strip().lower() == 'true'
        return None
    if isinstance(default, str):
        return value if isinstance(value, str) else None
    if isinstance(default, list):
        return value if isinstance(value, list) else None
    return value


def sanitize_presets(presets) -> List[str]:
    """Trims presets, drops blanks and case-insensitive duplicates (first spelling wins)."""
    cleaned: List[str] = []
    seen = set()
    for preset in presets or []:
        if preset is None:
            continue
        trimmed = str(preset).strip()
        if not trimmed or trimmed.lower() in seen:
            continue
        seen.add(trimmed.lower())
        cleaned.append(trimmed)
    return cleaned
