"""
Configuration constants for the screenshot metadata pipeline.
"""

# --- Identity ---
TOOL_ID = "screenshotmetadata"
TOOL_NAME = "Screenshot Metadata"
TOOL_VERSION = "1.4.0"
SUBJECT = "Minecraft Screenshot"

# --- File Locations ---
SCREENSHOTS_DIR = "screenshots"
SCREENSHOT_EXTS = {'.png'}
XMP_EXT = '.xmp'
JSON_EXT = '.json'
POLICY_FILE_NAME = "screenshotmetadata.json"
LOG_FILE_NAME = "screenshot_metadata.log"

# --- Stability & Locating ---
STABILITY_DELAY_SEC = 0.1
LOCATE_MAX_ATTEMPTS = 15
LOCATE_INITIAL_SLEEP_SEC = 0.1
LOCATE_BACKOFF_MULTIPLIER = 1.5
LOCATE_MAX_SLEEP_SEC = 1.0
# Fallback directories only accept files newer than this when no reference exists
FALLBACK_WINDOW_SEC = 5.0

# --- PNG Writer ---
PNG_WRITE_ATTEMPTS = 3
PNG_RETRY_DELAY_SEC = 0.2

# --- Sidecars ---
FILE_FORMAT_VERSION = 1
METADATA_SCHEMA_VERSION = 2
MAX_ADDON_ENTRIES = 200

# Legacy key -> current key. Applied before the JSON sidecar is serialized.
LEGACY_KEY_ALIASES = {
    'world': 'World',
    'dimension': 'Dimension',
    'biome': 'Biome',
    'player': 'Username',
    'server': 'ServerName',
    'timestampUtc': 'Timestamp',
    'seedHash': 'WorldSeed',
    'tags': 'Tags',
}

# --- Derived Fields ---
DIMENSION_NAMES = {
    'minecraft:overworld': 'Overworld',
    'minecraft:the_nether': 'Nether',
    'minecraft:the_end': 'The End',
}

# Index = round(yaw / 45) mod 8; yaw 0 faces south
FACING_DIRECTIONS = [
    'South', 'Southwest', 'West', 'Northwest',
    'North', 'Northeast', 'East', 'Southeast',
]

ARMOR_SLOTS = [
    ('armor_head', 'ArmorHead'),
    ('armor_chest', 'ArmorChest'),
    ('armor_legs', 'ArmorLegs'),
    ('armor_feet', 'ArmorFeet'),
]

PRIVACY_ROUNDING_STEP = 100

# --- Renaming ---
DEFAULT_NAME_TEMPLATE = "{date}_{dimension}_X{x}_Z{z}"
ILLEGAL_FILENAME_CHARS = r'[\\/:*?"<>|]'

# Placeholder -> (record key, fallback when absent)
TEMPLATE_FIELDS = {
    '{dimension}': ('Dimension', 'Unknown'),
    '{biome}': ('Biome', 'Unknown'),
    '{x}': ('X', 'NA'),
    '{y}': ('Y', 'NA'),
    '{z}': ('Z', 'NA'),
    '{world}': ('WorldName', 'World'),
    '{player}': ('Username', 'Player'),
}

# Sample values shown by the template preview
PREVIEW_VALUES = {
    'Dimension': 'Overworld',
    'Biome': 'Cherry_Grove',
    'X': '65',
    'Y': '92',
    'Z': '-88',
    'WorldName': 'New World',
    'Username': 'Steve',
}
