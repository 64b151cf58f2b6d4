import hashlib
from datetime import datetime, timezone

import pytest

from screenshot_metadata.metadata.assemble import (
    MetadataAssembler, facing_direction, format_dimension_name, format_time_of_day, round_to_nearest,
)
from screenshot_metadata.metadata.context import collect_sidecar_context, detect_shader_pack
from screenshot_metadata.models import freeze_record
from screenshot_metadata.policy import Policy

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def assemble(snapshot, policy=None, tags=None):
    return MetadataAssembler().assemble(snapshot, policy or Policy(), pending_tags=tags, now=NOW)


@pytest.mark.parametrize("ticks,expected", [
    (0, "06:00"),
    (6000, "12:00"),
    (18000, "00:00"),
    (23999, "05:59"),
    (30000, "12:00"),
])
def test_format_time_of_day(ticks, expected):
    assert format_time_of_day(ticks) == expected


@pytest.mark.parametrize("yaw,expected", [
    (0, "South"),
    (22.5, "Southwest"),
    (90, "West"),
    (180, "North"),
    (-90, "East"),
    (359, "South"),
])
def test_facing_direction(yaw, expected):
    assert facing_direction(yaw) == expected


def test_dimension_names():
    assert format_dimension_name("minecraft:overworld") == "Overworld"
    assert format_dimension_name("minecraft:the_nether") == "Nether"
    assert format_dimension_name("minecraft:the_end") == "The End"
    assert format_dimension_name("mymod:deep_dark_realm") == "Deep Dark Realm"
    assert format_dimension_name(None) == "Unknown"


def test_round_to_nearest():
    assert [round_to_nearest(v, 100) for v in (153, 64, -17, 150, -150)] == [200, 100, 0, 200, -100]


def test_assemble_full_record(snapshot):
    record = assemble(snapshot)

    assert list(record)[:2] == ["Username", "PlayerUuid"]
    assert record["X"] == "153"
    assert record["Z"] == "-17"
    assert record["Yaw"] == "90.0"
    assert record["Facing"] == "West"
    assert record["Dimension"] == "Overworld"
    assert record["Biome"] == "Cherry Grove"
    assert record["BiomeId"] == "minecraft:cherry_grove"
    assert record["TimeOfDayTicks"] == "6000"
    assert record["TimeOfDay"] == "12:00"
    assert record["Weather"] == "Rain"
    assert record["IsRaining"] == "true"
    assert record["WorldSeed"] == "12345"
    assert record["ServerType"] == "Singleplayer"
    assert record["Timestamp"] == "2024-05-01T12:00:00.000Z"
    assert record["Health"] == "20.0"
    assert record["MainHandItem"] == "Diamond Pickaxe"
    assert record["ArmorHead"] == "Iron Helmet"
    assert record["PotionEffects"] == "Speed 2 (200t)"
    assert "CoordinatesObfuscated" not in record
    assert "Tags" not in record


def test_privacy_mode_rounds_hashes_and_omits(snapshot):
    record = assemble(snapshot, Policy(privacy_mode=True))

    assert (record["X"], record["Y"], record["Z"]) == ("200", "100", "0")
    assert record["CoordinatesObfuscated"] == "true"
    assert record["WorldSeed"] == hashlib.sha256(b"12345").hexdigest()
    assert record["WorldSeedHashed"] == "true"


def test_multiplayer_address_handling():
    snap = {'username': 'Alex', 'singleplayer': False,
            'server_name': 'Hypixel', 'server_address': 'mc.hypixel.net'}

    assert assemble(snap)["ServerAddress"] == "mc.hypixel.net"
    assert "ServerAddress" not in assemble(snap, Policy(privacy_mode=True))

    snap['server_address'] = 'pc.realms.minecraft.net'
    record = assemble(snap)
    assert "ServerAddress" not in record
    assert record["ServerType"] == "Multiplayer"
    assert record["ServerName"] == "Hypixel"


def test_disabled_categories_are_left_out(snapshot):
    policy = Policy(include_coordinates=False, include_biome_info=False, include_weather_info=False,
                    include_world_seed=False, include_equipment=False, include_potion_effects=False,
                    include_player_status=False, include_performance_metrics=False)
    record = assemble(snapshot, policy)

    for key in ("X", "Facing", "Biome", "Weather", "WorldSeed", "MainHandItem",
                "PotionEffects", "Health", "RenderDistance"):
        assert key not in record
    assert record["Username"] == "Steve"
    assert record["Dimension"] == "Overworld"


def test_absent_fields_are_omitted():
    record = assemble({'username': 'Steve'})
    assert "X" not in record
    assert "Biome" not in record
    assert "GameVersion" not in record
    assert all(v is not None for v in record.values())


def test_empty_snapshot_gives_empty_record():
    assert len(assemble({})) == 0


def test_tags_deduplicated(snapshot):
    record = assemble(snapshot, tags="a, a, b,, ")
    assert record["Tags"] == "a, b"
    assert record["TagCount"] == "2"


def test_effects_none_when_list_empty():
    record = assemble({'username': 'Steve', 'status_effects': []})
    assert record["PotionEffects"] == "None"
    assert "PotionEffectCount" not in record


def test_record_is_read_only(snapshot):
    record = assemble(snapshot)
    with pytest.raises(TypeError):
        record["Username"] = "Herobrine"


def test_freeze_record_drops_none_and_keeps_first():
    record = freeze_record([("a", 1), (None, "x"), ("b", None), ("a", 2)])
    assert dict(record) == {"a": "1"}


def test_sidecar_context_caps_addons(snapshot):
    snapshot['addons'] = [('c', '1'), ('a', '1'), ('b', '2')]
    ctx = collect_sidecar_context(snapshot, max_addons=2)

    assert ctx.addons == ["a@1", "b@2"]
    assert ctx.addon_count == 3
    assert ctx.addon_list_truncated
    assert ctx.resource_packs == ["vanilla", "fabric"]
    assert ctx.shader_pack == "None"


def test_sidecar_context_without_addons():
    ctx = collect_sidecar_context({})
    assert ctx.addon_count == -1
    assert ctx.addons == []


class _Pack:
    def __init__(self, name):
        self.name = name


class _Settings:
    def shader_pack(self):
        return _Pack("BSL_v8.2")


class _ShaderMod:
    def config(self):
        return _Settings()


class _NamedShaderMod:
    def shader_pack_name(self):
        return "  Complementary  "


def test_shader_pack_probe():
    assert detect_shader_pack(None) == "None"
    assert detect_shader_pack(object()) != "None"
    assert detect_shader_pack(_NamedShaderMod()) == "Complementary"
    assert detect_shader_pack(_ShaderMod()) == "BSL_v8.2"


def test_shader_pack_probe_failure_degrades():
    class Broken:
        def shader_pack_name(self):
            raise RuntimeError("not ready")

    assert detect_shader_pack(Broken()) == "Unknown"


def test_server_fields_without_singleplayer_flag():
    record = assemble({'username': 'Alex', 'server_name': 'Lobby', 'server_address': 'play.example.org'})
    assert record["ServerType"] == "Multiplayer"
    assert record["ServerName"] == "Lobby"
    assert record["ServerAddress"] == "play.example.org"


def test_bad_addon_entry_keeps_rest_of_context(snapshot):
    snapshot['addons'] = [('sodium', '0.5.8'), 'broken-entry']
    ctx = collect_sidecar_context(snapshot)

    assert ctx.resource_packs == ["vanilla", "fabric"]
    assert ctx.shader_pack == "None"
    assert ctx.addon_count == -1
    assert ctx.addons == []
    assert not ctx.addon_list_truncated
