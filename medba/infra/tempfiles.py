import asyncio
import logging
import os
import threading
import time
import uuid
from typing import List, Optional

import aiofiles.os

from medba.config.settings import config

logger = logging.getLogger(__name__)

# yt-dlp leftovers that are never a finished rendition
PARTIAL_SUFFIXES = (".part", ".ytdl", ".temp", ".tmp")


class TemporaryMediaFile:
    """
    Output target of one yt-dlp download.

    The request that creates it owns every file carrying its prefix (the
    final rendition and any fragments yt-dlp leaves behind). ``cleanup`` is
    idempotent: the first call deletes, later calls are no-ops.
    """

    def __init__(self, kind: str, ext: str, directory: Optional[str] = None):
        self.directory = directory or config.download.temp_dir
        self.ext = ext
        self.prefix = f"{kind}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"
        self._lock = threading.Lock()
        self._cleaned = False

    @property
    def output_template(self) -> str:
        """yt-dlp ``-o`` template; yt-dlp fills in the real extension"""
        return os.path.join(self.directory, f"{self.prefix}.%(ext)s")

    @property
    def expected_path(self) -> str:
        return os.path.join(self.directory, f"{self.prefix}.{self.ext}")

    @property
    def cleaned(self) -> bool:
        return self._cleaned

    async def _owned_files(self) -> List[str]:
        try:
            names = await aiofiles.os.listdir(self.directory)
        except OSError:
            return []
        return [
            os.path.join(self.directory, name)
            for name in names
            if name == self.prefix or name.startswith(f"{self.prefix}.")
        ]

    async def locate(self) -> Optional[str]:
        """Path of the finished rendition, preferring the expected extension"""
        if await aiofiles.os.path.isfile(self.expected_path):
            return self.expected_path

        for path in sorted(await self._owned_files()):
            if not path.endswith(PARTIAL_SUFFIXES) and await aiofiles.os.path.isfile(path):
                return path
        return None

    async def cleanup(self) -> bool:
        """Delete every owned file exactly once; True only for the call that did it"""
        with self._lock:
            if self._cleaned:
                return False
            self._cleaned = True

        # Deletion finishes even when the awaiting task is cancelled
        await asyncio.shield(self._remove_owned_files())
        return True

    async def _remove_owned_files(self) -> None:
        for path in await self._owned_files():
            try:
                await aiofiles.os.remove(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Could not delete temporary file {path}: {e}")
            else:
                logger.debug(f"Cleaned up {path}")


def ensure_temp_dir(directory: Optional[str] = None) -> str:
    directory = directory or config.download.temp_dir
    os.makedirs(directory, exist_ok=True)
    return directory


def purge_stale_files(directory: Optional[str] = None, max_age: Optional[float] = None) -> int:
    """Remove files abandoned by a crashed process; returns how many were removed"""
    directory = directory or config.download.temp_dir
    max_age = max_age if max_age is not None else config.download.stale_file_seconds
    cutoff = time.time() - max_age
    removed = 0

    try:
        entries = list(os.scandir(directory))
    except OSError:
        return 0

    for entry in entries:
        try:
            if entry.is_file() and entry.stat().st_mtime < cutoff:
                os.remove(entry.path)
                removed += 1
        except OSError as e:
            logger.warning(f"Could not purge {entry.path}: {e}")

    if removed:
        logger.info(f"Purged {removed} stale temporary files from {directory}")
    return removed
