"""
Turns a raw host snapshot into the ordered MetadataRecord every sink consumes.
"""
import hashlib
import math
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Tuple

from .. import config
from .. import policy as cats
from ..models import MetadataRecord, freeze_record
from ..policy import Policy
from ..tags import parse_tags

Pairs = List[Tuple[str, Any]]


def format_time_of_day(ticks: int) -> str:
    """In-game ticks (0-23999, 0 = 06:00) to a 24h clock string."""
    ticks = int(ticks) % 24000
    hours = (ticks // 1000 + 6) % 24
    minutes = (ticks % 1000) * 60 // 1000
    return f"{hours:02d}:{minutes:02d}"


def facing_direction(yaw: float) -> str:
    # floor(x + 0.5) keeps half-way yaws rounding up like the game does
    index = math.floor(float(yaw) / 45.0 + 0.5) % 8
    return config.FACING_DIRECTIONS[index]


def format_biome_name(name: Optional[str]) -> str:
    """snake_case id path -> Title Case."""
    if not name:
        return "Unknown"
    words = [w for w in name.replace('_', ' ').split(' ') if w]
    return ' '.join(w[0].upper() + w[1:].lower() for w in words)


def format_dimension_name(dimension_id: Optional[str]) -> str:
    if not dimension_id:
        return "Unknown"
    if dimension_id in config.DIMENSION_NAMES:
        return config.DIMENSION_NAMES[dimension_id]
    path = dimension_id.split(':', 1)[1] if ':' in dimension_id else dimension_id
    return format_biome_name(path)


def round_to_nearest(value: int, step: int) -> int:
    if step <= 0:
        return value
    return math.floor(value / step + 0.5) * step


def hash_seed(seed: Any) -> str:
    """One-way SHA-256 of the seed's decimal string."""
    return hashlib.sha256(str(int(seed)).encode('utf-8')).hexdigest()


def utc_timestamp(now: datetime) -> str:
    """ISO-8601 instant with millisecond precision and a Z suffix."""
    return now.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def _bool(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip().lower()
    return "true" if value else "false"


def _fixed(value: Any, digits: int) -> Optional[str]:
    if value is None:
        return None
    return f"{float(value):.{digits}f}"


class MetadataAssembler:
    """
    Builds the record category by category. Categories are skipped when the
    policy disables them; absent snapshot fields are simply left out.
    """

    def assemble(self,
                 snapshot: Mapping[str, Any],
                 policy: Policy,
                 pending_tags: Optional[str] = None,
                 now: Optional[datetime] = None) -> MetadataRecord:
        if not snapshot:
            return freeze_record([])

        now = now or datetime.now().astimezone()
        enabled = policy.enabled_categories()
        pairs: Pairs = []

        self._identity(snapshot, pairs)
        if cats.POSITION in enabled:
            self._position(snapshot, policy, pairs)
        self._world(snapshot, enabled, pairs)
        self._server(snapshot, policy, enabled, pairs)

        pairs.append(('Timestamp', utc_timestamp(now)))
        pairs.append(('LocalTime', now.isoformat()))
        pairs.append(('GameVersion', snapshot.get('game_version')))
        pairs.append(('ToolVersion', config.TOOL_VERSION))
        pairs.append(('ToolId', config.TOOL_ID))

        if cats.STATUS in enabled:
            self._status(snapshot, pairs)
        if cats.PERFORMANCE in enabled:
            pairs.append(('CaptureTimeMs', int(now.timestamp() * 1000)))
            pairs.append(('RenderDistance', snapshot.get('render_distance')))
            pairs.append(('SimulationDistance', snapshot.get('simulation_distance')))
        if cats.EQUIPMENT in enabled:
            self._equipment(snapshot, pairs)
        if cats.EFFECTS in enabled:
            self._effects(snapshot.get('status_effects'), pairs)

        tags = parse_tags(pending_tags)
        if tags:
            pairs.append(('Tags', ', '.join(tags)))
            pairs.append(('TagCount', len(tags)))

        return freeze_record(pairs)

    # --- Categories ---

    def _identity(self, snap, pairs: Pairs):
        pairs.append(('Username', snap.get('username')))
        pairs.append(('PlayerUuid', snap.get('player_uuid')))

    def _position(self, snap, policy: Policy, pairs: Pairs):
        if any(snap.get(k) is None for k in ('x', 'y', 'z')):
            return
        # Block coordinates: truncate toward zero first
        x, y, z = (int(float(snap[k])) for k in ('x', 'y', 'z'))
        if policy.privacy_mode:
            step = config.PRIVACY_ROUNDING_STEP
            x, y, z = (round_to_nearest(v, step) for v in (x, y, z))
            pairs.append(('CoordinatesObfuscated', 'true'))
        pairs.extend([('X', x), ('Y', y), ('Z', z)])

        yaw = snap.get('yaw')
        pairs.append(('Yaw', _fixed(yaw, 1)))
        pairs.append(('Pitch', _fixed(snap.get('pitch'), 1)))
        if yaw is not None:
            pairs.append(('Facing', facing_direction(yaw)))

    def _world(self, snap, enabled, pairs: Pairs):
        dimension_id = snap.get('dimension_id')
        if dimension_id:
            pairs.append(('World', dimension_id))
            pairs.append(('DimensionId', dimension_id))
            pairs.append(('Dimension', format_dimension_name(dimension_id)))

        if cats.BIOME in enabled:
            biome_id = snap.get('biome_id')
            if biome_id:
                path = biome_id.split(':', 1)[1] if ':' in biome_id else biome_id
                pairs.append(('Biome', format_biome_name(path)))
                pairs.append(('BiomeId', biome_id))

        ticks = snap.get('time_of_day')
        if ticks is not None:
            ticks = int(ticks) % 24000
            pairs.append(('TimeOfDayTicks', ticks))
            pairs.append(('TimeOfDay', format_time_of_day(ticks)))

        if cats.WEATHER in enabled:
            raining = snap.get('raining')
            thundering = snap.get('thundering')
            if raining is not None or thundering is not None:
                is_rain = _bool(raining) == "true"
                is_thunder = _bool(thundering) == "true"
                pairs.append(('Weather', "Thunder" if is_thunder else ("Rain" if is_rain else "Clear")))
                pairs.append(('IsRaining', _bool(raining)))
                pairs.append(('IsThundering', _bool(thundering)))
            pairs.append(('RainGradient', _fixed(snap.get('rain_gradient'), 2)))
            pairs.append(('ThunderGradient', _fixed(snap.get('thunder_gradient'), 2)))

    def _server(self, snap, policy: Policy, enabled, pairs: Pairs):
        # Without the flag, server fields alone mean multiplayer
        if _bool(snap.get('singleplayer')) == "true":
            pairs.append(('WorldName', snap.get('world_name')))
            seed = snap.get('seed')
            if cats.SEED in enabled and seed is not None:
                if policy.privacy_mode:
                    pairs.append(('WorldSeed', hash_seed(seed)))
                    pairs.append(('WorldSeedHashed', 'true'))
                else:
                    pairs.append(('WorldSeed', int(seed)))
            pairs.append(('ServerType', 'Singleplayer'))
        elif snap.get('server_name') is not None or snap.get('server_address') is not None:
            pairs.append(('ServerType', 'Multiplayer'))
            pairs.append(('ServerName', snap.get('server_name')))
            address = snap.get('server_address')
            if not policy.privacy_mode and address and 'realms' not in address.lower():
                pairs.append(('ServerAddress', address))

    def _status(self, snap, pairs: Pairs):
        pairs.append(('Difficulty', snap.get('difficulty')))
        pairs.append(('Health', _fixed(snap.get('health'), 1)))
        pairs.append(('MaxHealth', _fixed(snap.get('max_health'), 1)))
        pairs.append(('HungerLevel', snap.get('food_level')))
        pairs.append(('Saturation', _fixed(snap.get('saturation'), 1)))

    def _equipment(self, snap, pairs: Pairs):
        for hand, key in (('main_hand', 'MainHand'), ('off_hand', 'OffHand')):
            item = snap.get(f'{hand}_item')
            if item:
                pairs.append((f'{key}Item', item))
                pairs.append((f'{key}Count', snap.get(f'{hand}_count', 1)))
        for field, key in config.ARMOR_SLOTS:
            if snap.get(field):
                pairs.append((key, snap[field]))

    def _effects(self, effects, pairs: Pairs):
        if effects is None:
            return
        if not effects:
            pairs.append(('PotionEffects', 'None'))
            return

        parts = []
        for effect in effects:
            label = str(effect.get('name', 'Unknown'))
            amplifier = int(effect.get('amplifier', 0))
            if amplifier > 0:
                label += f" {amplifier + 1}"
            label += f" ({int(effect.get('duration', 0))}t)"
            parts.append(label)
        pairs.append(('PotionEffects', ', '.join(parts)))
        pairs.append(('PotionEffectCount', len(parts)))
