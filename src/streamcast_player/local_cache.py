"""
Streamcast - Local Cache

Durable per-device storage that survives restarts:

  <data_dir>/cache/<key>          small string values (the cached bundle lives here)
  <data_dir>/blobs/<sha256(key)>  uploaded media, sized for multi-gigabyte files
  <data_dir>/blobs/<sha256(key)>.json  blob metadata (original key, file name, size, mime type)

Writes go to a temporary file in the same directory and are swapped into
place with os.replace(), so a reader never sees a half-written value.
"""

import hashlib
import json
import logging
import mimetypes
import os
import shutil
import tempfile
import time
import typing as tp
from pathlib import Path

from streamcast_player import constants
from streamcast_player.models import Bundle, parse_bundle_or_none

logger = logging.getLogger(__name__)

BLOB_CHUNK_SIZE = 8 * 1024 * 1024  # 8MB

# Keep this much disk free after storing a blob
BLOB_FREE_SPACE_MARGIN = 256 * 1024 * 1024

ProgressCallback = tp.Callable[[int], None]


def hash_string(input_string: str) -> str:
    """Generate SHA256 hash of a string."""
    return hashlib.sha256(input_string.encode('utf-8')).hexdigest()


def _atomic_write(dest_path: Path, data: bytes) -> None:
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=dest_path.parent, prefix=f".{dest_path.name}.")
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        os.replace(tmp_name, dest_path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class LocalCache:

    def __init__(self, data_dir: tp.Union[str, Path] = constants.APP_DATA_DIR):
        self.data_dir = Path(data_dir)
        self.values_dir = self.data_dir / "cache"
        self.blobs_dir = self.data_dir / "blobs"

    # =========================================================================
    # Key/value
    # =========================================================================

    def _value_path(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return self.values_dir / safe

    def get(self, key: str) -> tp.Optional[str]:
        """Return the stored string, or None if absent/unreadable."""
        path = self._value_path(key)
        try:
            if not path.exists():
                return None
            return path.read_text(encoding='utf-8')
        except OSError as e:
            logger.error(f"Error reading cache key {key}: {e}")
            return None

    def set(self, key: str, value: str) -> bool:
        try:
            _atomic_write(self._value_path(key), value.encode('utf-8'))
            return True
        except OSError as e:
            logger.error(f"Error writing cache key {key}: {e}")
            return False

    def remove(self, key: str) -> None:
        path = self._value_path(key)
        try:
            if path.exists():
                path.unlink()
        except OSError as e:
            logger.error(f"Error removing cache key {key}: {e}")

    # =========================================================================
    # Bundle
    # =========================================================================

    def load_bundle(self) -> tp.Optional[Bundle]:
        """Last bundle persisted on this device, or None (missing or corrupt)."""
        return parse_bundle_or_none(self.get(constants.BUNDLE_CACHE_KEY), "local cache", logger)

    def save_bundle(self, bundle: Bundle) -> bool:
        return self.set(constants.BUNDLE_CACHE_KEY, bundle.to_json())

    # =========================================================================
    # Blobs
    # =========================================================================

    def _blob_path(self, key: str) -> Path:
        return self.blobs_dir / hash_string(key)

    def _blob_meta_path(self, key: str) -> Path:
        return self.blobs_dir / f"{hash_string(key)}.json"

    def put_blob(
            self,
            key: str,
            data: tp.Union[bytes, str, Path, tp.BinaryIO],
            on_progress: tp.Optional[ProgressCallback] = None,
            file_name: tp.Optional[str] = None,
            mime_type: tp.Optional[str] = None
    ) -> bool:
        """
        Store uploaded media under key.

        Args:
            key: Blob key (normally the content item id)
            data: Raw bytes, a path to a file, or a readable binary file object
            on_progress: Called with 0-100 as chunks are written
            file_name: Original file name, kept in the metadata
            mime_type: MIME type, guessed from file_name if not given

        Returns:
            True if the blob was stored, False otherwise.
        """
        source_path = Path(data) if isinstance(data, (str, Path)) else None
        if source_path is not None:
            if not source_path.is_file():
                logger.error(f"Upload source not found: {source_path}")
                return False
            total_size = source_path.stat().st_size
            file_name = file_name or source_path.name
        elif isinstance(data, (bytes, bytearray)):
            total_size = len(data)
        else:
            total_size = None

        if total_size is not None and not self.has_enough_space(total_size):
            logger.error(f"Not enough disk space to store blob {key} ({total_size / 1024 / 1024:.1f}MB)")
            return False

        self.blobs_dir.mkdir(parents=True, exist_ok=True)
        dest_path = self._blob_path(key)
        fd, tmp_name = tempfile.mkstemp(dir=self.blobs_dir, prefix=f".{dest_path.name}.")

        written = 0
        try:
            with os.fdopen(fd, 'wb') as out:
                if isinstance(data, (bytes, bytearray)):
                    chunks = (bytes(data[i:i + BLOB_CHUNK_SIZE]) for i in range(0, len(data), BLOB_CHUNK_SIZE))
                    written = self._copy_chunks(chunks, out, total_size, on_progress)
                elif source_path is not None:
                    with open(source_path, 'rb') as src:
                        written = self._copy_chunks(iter(lambda: src.read(BLOB_CHUNK_SIZE), b''), out, total_size, on_progress)
                else:
                    written = self._copy_chunks(iter(lambda: data.read(BLOB_CHUNK_SIZE), b''), out, total_size, on_progress)
            os.replace(tmp_name, dest_path)
        except OSError as e:
            logger.error(f"Error storing blob {key}: {e}", exc_info=True)
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            return False

        meta = {
            'key': key,
            'fileName': file_name,
            'fileSize': written,
            'mimeType': mime_type or (mimetypes.guess_type(file_name)[0] if file_name else None),
            'uploadedAt': int(time.time() * 1000),
        }
        try:
            _atomic_write(self._blob_meta_path(key), json.dumps(meta, indent=2).encode('utf-8'))
        except OSError as e:
            logger.warning(f"Stored blob {key} but could not write its metadata: {e}")

        if on_progress:
            on_progress(100)
        logger.info(f"Stored blob {key} ({written / 1024 / 1024:.1f}MB)")
        return True

    @staticmethod
    def _copy_chunks(chunks, out, total_size, on_progress) -> int:
        written = 0
        last_reported = -1
        for chunk in chunks:
            out.write(chunk)
            written += len(chunk)
            if on_progress and total_size:
                # 100 is only reported once the blob is in place
                percent = min(99, int(written * 100 / total_size))
                if percent != last_reported:
                    on_progress(percent)
                    last_reported = percent
        return written

    def get_blob_url(self, key: str) -> tp.Optional[str]:
        """file:// URL of the stored blob, or None if it is not on this device."""
        path = self._blob_path(key)
        try:
            if path.is_file() and path.stat().st_size > 0:
                return path.resolve().as_uri()
        except OSError as e:
            logger.error(f"Error checking blob {key}: {e}")
        return None

    def delete_blob(self, key: str) -> bool:
        removed = False
        for path in (self._blob_path(key), self._blob_meta_path(key)):
            try:
                if path.exists():
                    path.unlink()
                    removed = True
            except OSError as e:
                logger.error(f"Error deleting {path}: {e}")
                return False
        if removed:
            logger.info(f"Deleted blob {key}")
        return removed

    def list_blobs(self) -> tp.List[tp.Dict[str, tp.Any]]:
        """Metadata of every stored blob."""
        if not self.blobs_dir.exists():
            return []

        blobs = []
        for meta_path in sorted(self.blobs_dir.glob("*.json")):
            try:
                meta = json.loads(meta_path.read_text(encoding='utf-8'))
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping unreadable blob metadata {meta_path.name}: {e}")
                continue
            if (self.blobs_dir / meta_path.stem).is_file():
                blobs.append(meta)
        return blobs

    def get_storage_usage(self) -> tp.Dict[str, int]:
        """Bytes used by blobs and total/free bytes of the underlying disk."""
        used = 0
        if self.blobs_dir.exists():
            for path in self.blobs_dir.iterdir():
                if path.is_file():
                    used += path.stat().st_size
        try:
            usage = shutil.disk_usage(self.data_dir if self.data_dir.exists() else self.data_dir.parent)
            total, free = usage.total, usage.free
        except OSError:
            total, free = 0, 0
        return {'used': used, 'total': total, 'free': free}

    def has_enough_space(self, size: int) -> bool:
        free = self.get_storage_usage()['free']
        if free == 0:
            # Could not determine - assume there is room
            return True
        return free - BLOB_FREE_SPACE_MARGIN > size
