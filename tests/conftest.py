import pytest
from PIL import Image
from PIL.PngImagePlugin import PngInfo

from screenshot_metadata.policy import Policy


@pytest.fixture
def make_png(tmp_path):
    """Factory writing a small real PNG (default: <tmp>/game/screenshots/<name>)."""
    def _make(name="2024-05-01_12.00.00.png", directory=None, color=(10, 20, 30), text=None):
        directory = directory or tmp_path / "game" / "screenshots"
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name

        info = None
        if text:
            info = PngInfo()
            for key, value in text.items():
                info.add_text(key, value)
        Image.new("RGB", (4, 4), color).save(path, pnginfo=info)
        return path
    return _make


@pytest.fixture
def game_dir(tmp_path):
    d = tmp_path / "game"
    (d / "screenshots").mkdir(parents=True, exist_ok=True)
    return d


@pytest.fixture
def snapshot():
    """A representative host snapshot (singleplayer, overworld)."""
    return {
        'username': 'Steve',
        'player_uuid': '8667ba71-b85a-4004-af54-457a9734eed7',
        'x': 153.7, 'y': 64.0, 'z': -17.2,
        'yaw': 90.0, 'pitch': 12.34,
        'dimension_id': 'minecraft:overworld',
        'biome_id': 'minecraft:cherry_grove',
        'time_of_day': 30000,
        'raining': True, 'thundering': False,
        'rain_gradient': 1.0, 'thunder_gradient': 0.0,
        'singleplayer': True,
        'world_name': 'New World',
        'seed': 12345,
        'game_version': '1.21.1',
        'difficulty': 'normal',
        'health': 20, 'max_health': 20, 'food_level': 18, 'saturation': 5,
        'render_distance': 12, 'simulation_distance': 10,
        'main_hand_item': 'Diamond Pickaxe', 'main_hand_count': 1,
        'armor_head': 'Iron Helmet',
        'status_effects': [{'name': 'Speed', 'amplifier': 1, 'duration': 200}],
        'resource_packs': ['vanilla', 'fabric'],
        'addons': [('sodium', '0.5.8'), ('fabric-api', '0.92.0')],
    }


@pytest.fixture
def policy():
    return Policy()
