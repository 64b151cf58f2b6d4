import logging
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Callable, Mapping

from PIL import Image
from PIL.PngImagePlugin import PngInfo

from .. import config
from ..exceptions import MetadataWriteError
from .describe import match_target_mode, software_tag, summary_line, title_for


class PngMetadataWriter:
    """
    Embeds the record as PNG text chunks.

    The image is re-encoded into a temp file next to the original and swapped
    in with a replace, so the path always holds either the old or the new file.
    """

    def __init__(self,
                 attempts: int = config.PNG_WRITE_ATTEMPTS,
                 retry_delay: float = config.PNG_RETRY_DELAY_SEC,
                 sleep: Callable[[float], None] = time.sleep):
        self.attempts = attempts
        self.retry_delay = retry_delay
        self.sleep = sleep

    def write_with_retry(self, path: Path, metadata: Mapping[str, str]):
        """Retries transient failures (e.g. the game still holding the file)."""
        last_err = None
        for attempt in range(1, self.attempts + 1):
            try:
                self.write(path, metadata)
                return
            except MetadataWriteError as e:
                last_err = e
                logging.debug(f"PNG metadata write attempt {attempt} failed for {path.name}: {e}")
                if attempt < self.attempts:
                    self.sleep(self.retry_delay)
        raise MetadataWriteError(f"Gave up on {path.name} after {self.attempts} attempts: {last_err}")

    def write(self, path: Path, metadata: Mapping[str, str]):
        if not path.exists() or path.suffix.lower() != '.png':
            raise MetadataWriteError(f"Not an existing PNG file: {path}")
        if not metadata:
            logging.debug(f"No metadata for {path.name} - skipping write")
            return

        logging.debug(f"Writing PNG metadata to {path.name} ({len(metadata)} entries)")
        fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
        os.close(fd)
        tmp_path = Path(tmp_name)
        moved = False

        try:
            with Image.open(path) as im:
                im.load()
                try:
                    self._encode(im, tmp_path, metadata, use_itxt=True)
                except Exception as e:
                    # Some encoders reject iTXt; plain tEXt is the legacy variant
                    logging.debug(f"iTXt encode failed for {path.name} ({e}), retrying with tEXt")
                    self._encode(im, tmp_path, metadata, use_itxt=False)

            match_target_mode(tmp_path, path)
            try:
                os.replace(tmp_path, path)
            except OSError as atomic_err:
                logging.debug(f"Atomic replace failed for {path.name}: {atomic_err}")
                shutil.move(str(tmp_path), str(path))
            moved = True
        except Exception as e:
            raise MetadataWriteError(f"Failed to write PNG metadata to {path.name}: {e}") from e
        finally:
            if not moved and tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError as cleanup_err:
                    logging.warning(f"Could not delete temp file {tmp_path}: {cleanup_err}")

        logging.debug(f"Wrote PNG metadata to {path.name}")

    def _encode(self, im: Image.Image, dest: Path, metadata: Mapping[str, str], use_itxt: bool):
        info = self._build_chunks(im, metadata, use_itxt)
        save_kwargs = {'pnginfo': info}
        if im.info.get('icc_profile'):
            save_kwargs['icc_profile'] = im.info['icc_profile']
        im.save(dest, format='PNG', **save_kwargs)

    def _build_chunks(self, im: Image.Image, metadata: Mapping[str, str], use_itxt: bool) -> PngInfo:
        entries = dict(metadata)
        entries.update(self._standard_entries(metadata))

        info = PngInfo()
        # Keep text chunks written by other tools unless we replace them
        for key, value in getattr(im, 'text', {}).items():
            if key not in entries:
                self._add(info, key, str(value), use_itxt)
        for key, value in entries.items():
            self._add(info, key, value, use_itxt)
        return info

    def _standard_entries(self, metadata: Mapping[str, str]) -> dict:
        """Descriptive keywords image viewers look for."""
        entries = {}
        summary = summary_line(metadata)
        if summary:
            entries['Comment'] = summary
            entries['Description'] = summary
        player = metadata.get('Username')
        if player:
            entries['Title'] = title_for(player)
            entries['Author'] = player
        entries['Software'] = software_tag()
        return entries

    @staticmethod
    def _add(info: PngInfo, key: str, value: str, use_itxt: bool):
        value = value.strip()
        if not key or not value:
            return
        if use_itxt:
            info.add_itxt(key, value)
        else:
            info.add_text(key, value)
