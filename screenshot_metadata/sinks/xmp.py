import logging
from datetime import datetime
from pathlib import Path
from typing import List, Mapping, Optional
from xml.sax.saxutils import escape

from .. import config
from ..exceptions import SidecarWriteError
from ..metadata.assemble import utc_timestamp
from ..tags import parse_tags
from .describe import sidecar_path, software_tag, summary_line, title_for, write_whole_file

NS_URI = "http://fentbuscoding.com/minecraft/ns/"

HEADER = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<x:xmpmeta xmlns:x="adobe:ns:meta/">\n'
    ' <rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#"\n'
    '          xmlns:dc="http://purl.org/dc/elements/1.1/"\n'
    '          xmlns:xmp="http://ns.adobe.com/xap/1.0/"\n'
    f'          xmlns:minecraft="{NS_URI}">\n'
    '  <rdf:Description rdf:about="">\n'
)

FOOTER = (
    '  </rdf:Description>\n'
    ' </rdf:RDF>\n'
    '</x:xmpmeta>\n'
)


def escape_xml(text: Optional[str]) -> str:
    if text is None:
        return ""
    return escape(text, {'"': "&quot;", "'": "&apos;"})


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None
    return dt if dt.tzinfo else None


class XmpSidecarWriter:
    """
    Writes <name>.xmp next to the screenshot: Dublin Core fields that file
    browsers show, plus a minecraft: block for field-level lookups.
    """

    def write(self, image: Path, metadata: Mapping[str, str]) -> Path:
        if not image.exists():
            raise SidecarWriteError(f"Cannot create XMP sidecar for missing file: {image}")

        xmp_path = sidecar_path(image, config.XMP_EXT)
        try:
            write_whole_file(xmp_path, self.render(metadata))
        except OSError as e:
            raise SidecarWriteError(f"Failed to write {xmp_path.name}: {e}") from e

        logging.debug(f"Created XMP sidecar {xmp_path.name}")
        return xmp_path

    def render(self, metadata: Mapping[str, str]) -> str:
        lines: List[str] = []
        self._dublin_core(metadata, lines)
        self._basic(metadata, lines)
        self._game_fields(metadata, lines)
        return HEADER + ''.join(f"   {line}\n" for line in lines) + FOOTER

    def _dublin_core(self, metadata, lines: List[str]):
        player = metadata.get('Username', 'Unknown Player')
        description = summary_line(metadata) or config.SUBJECT

        lines.append(f"<dc:title>{escape_xml(title_for(player))}</dc:title>")
        lines.append(f"<dc:description>{escape_xml(description)}</dc:description>")
        lines.append(f"<dc:creator>{escape_xml(player)}</dc:creator>")

        keywords = [config.SUBJECT] + parse_tags(metadata.get('Tags'))
        lines.append("<dc:subject>")
        lines.append(" <rdf:Bag>")
        for keyword in keywords:
            lines.append(f"  <rdf:li>{escape_xml(keyword)}</rdf:li>")
        lines.append(" </rdf:Bag>")
        lines.append("</dc:subject>")
        lines.append("<dc:type>Image</dc:type>")

    def _basic(self, metadata, lines: List[str]):
        lines.append(f"<xmp:CreatorTool>{escape_xml(software_tag())}</xmp:CreatorTool>")

        raw = metadata.get('Timestamp')
        created = parse_timestamp(raw)
        if created is None:
            if raw:
                logging.debug(f"Could not parse timestamp: {raw}")
            return
        stamp = utc_timestamp(created)
        lines.append(f"<xmp:CreateDate>{stamp}</xmp:CreateDate>")
        lines.append(f"<xmp:ModifyDate>{stamp}</xmp:ModifyDate>")

    def _game_fields(self, metadata, lines: List[str]):
        def field(tag: str, value: str):
            lines.append(f"<minecraft:{tag}>{escape_xml(value)}</minecraft:{tag}>")

        if 'World' in metadata:
            field('world', metadata['World'])
        if 'Biome' in metadata:
            field('biome', metadata['Biome'])
        if all(k in metadata for k in ('X', 'Y', 'Z')):
            field('coordinates', f"{metadata['X']},{metadata['Y']},{metadata['Z']}")
            field('x', metadata['X'])
            field('y', metadata['Y'])
            field('z', metadata['Z'])
        if 'Username' in metadata:
            field('player', metadata['Username'])
        tags = parse_tags(metadata.get('Tags'))
        if tags:
            field('tags', ', '.join(tags))
        if 'Weather' in metadata:
            field('weather', metadata['Weather'])
