import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .. import config
from ..exceptions import SidecarWriteError
from ..models import SidecarContext
from ..tags import parse_tags
from .describe import sidecar_path, write_whole_file


def migrate_metadata(metadata: Mapping[str, str]) -> Dict[str, str]:
    """
    Copies legacy keys to their current names. An existing current key always wins.
    """
    migrated = dict(metadata or {})
    for legacy, current in config.LEGACY_KEY_ALIASES.items():
        if current not in migrated and migrated.get(legacy) is not None:
            migrated[current] = migrated[legacy]
    return migrated


def modpack_block(ctx: SidecarContext) -> Dict[str, Any]:
    block: Dict[str, Any] = {}
    if ctx.shader_pack is not None:
        block['shaderPack'] = ctx.shader_pack
    if ctx.addon_count >= 0:
        block['modCount'] = ctx.addon_count
    if ctx.resource_packs:
        block['resourcePacks'] = list(ctx.resource_packs)
    if ctx.addons:
        block['mods'] = list(ctx.addons)
    block['modListTruncated'] = ctx.addon_list_truncated
    return block


class JsonSidecarWriter:
    """Writes <name>.json: the full record plus derived tags and optional modpack info."""

    def write(self, image: Path, metadata: Mapping[str, str], context: Optional[SidecarContext] = None) -> Path:
        if not image.exists():
            raise SidecarWriteError(f"Cannot create JSON sidecar for missing file: {image}")

        json_path = sidecar_path(image, config.JSON_EXT)
        try:
            write_whole_file(json_path, self.render(image.name, metadata, context))
        except OSError as e:
            raise SidecarWriteError(f"Failed to write {json_path.name}: {e}") from e

        logging.debug(f"Created JSON sidecar {json_path.name}")
        return json_path

    def render(self, file_name: str, metadata: Mapping[str, str], context: Optional[SidecarContext] = None) -> str:
        migrated = migrate_metadata(metadata)
        doc: Dict[str, Any] = {
            'formatVersion': str(config.FILE_FORMAT_VERSION),
            'metadataSchemaVersion': config.METADATA_SCHEMA_VERSION,
            'screenshotFile': file_name,
            'metadata': migrated,
        }

        tags = parse_tags(migrated.get('Tags'))
        if tags:
            doc['tags'] = tags
        if context is not None:
            doc['modpack'] = modpack_block(context)

        return json.dumps(doc, indent=2, ensure_ascii=False) + "\n"
