"""Shared-file tier: one JSON file per key in a directory every process can reach."""

from __future__ import annotations

import asyncio
import logging
import os
import re
import tempfile
from pathlib import Path

from result import Err, Ok, Result

from quotasync.data.errors import NotFound, WriteFailed

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class SharedFileTier:
    """Reads and replaces whole files under ``directory``.

    Writers never assume exclusive access. Each write lands in a temp file in
    the same directory and is moved over the target in one step, so readers see
    either the old or the new content. Readers still treat anything unparseable
    as missing, which covers filesystems where the replace is not atomic.
    """

    suffix = ".json"

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, key: str) -> Path:
        if not _KEY_RE.match(key) or key in {".", ".."}:
            msg = f"Invalid tier key: {key!r}"
            raise ValueError(msg)
        return self._directory / f"{key}{self.suffix}"

    async def read(self, key: str) -> Result[bytes, NotFound]:
        path = self.path_for(key)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            return Err(NotFound(key))
        except OSError as exc:
            logger.warning("Cannot read shared file %s: %s", path, exc)
            return Err(NotFound(key))
        if not data:
            return Err(NotFound(key))
        return Ok(data)

    async def write(self, key: str, data: bytes) -> Result[None, WriteFailed]:
        path = self.path_for(key)
        try:
            await asyncio.to_thread(self._replace, path, data)
        except OSError as exc:
            logger.warning("Cannot write shared file %s: %s", path, exc)
            return Err(WriteFailed(key, str(exc)))
        return Ok(None)

    async def delete(self, key: str) -> Result[None, WriteFailed]:
        path = self.path_for(key)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as exc:
            logger.warning("Cannot delete shared file %s: %s", path, exc)
            return Err(WriteFailed(key, str(exc)))
        return Ok(None)

    def _replace(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
