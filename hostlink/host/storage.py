#!/usr/bin/env python3

"""
Local File Storage

FileStorage rooted in one directory on disk. Paths coming from the relay
are always interpreted relative to that root and may not escape it.
"""

import logging
from pathlib import Path
from typing import List

import aiofiles
import aiofiles.os

from shared.functional import Result, Success, Failure, from_async_callable
from .base import FileEntry, FileStorage

logger = logging.getLogger(__name__)

# browse(recursive=True) descends at most this many directory levels
MAX_BROWSE_DEPTH = 3


class LocalFileStorage(FileStorage):

    def __init__(self, root: str):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"File storage rooted at {self.root}")

    def _resolve(self, path: str) -> Result[Path, str]:
        target = (self.root / path.lstrip("/")).resolve()
        if target != self.root and self.root not in target.parents:
            return Failure(f"Path escapes storage root: {path}")
        return Success(target)

    def _relative(self, target: Path) -> str:
        return target.relative_to(self.root).as_posix()

    async def browse(self, path: str = "", recursive: bool = False) -> Result[List[FileEntry], str]:
        resolved = self._resolve(path)
        if resolved.is_failure():
            return resolved

        directory = resolved.value
        if not await aiofiles.os.path.isdir(directory):
            return Failure(f"Not a directory: {path}")

        entries: List[FileEntry] = []
        collected = await from_async_callable(
            lambda: self._collect(directory, entries, depth=1 if not recursive else MAX_BROWSE_DEPTH)
        )
        if collected.is_failure():
            return Failure(f"Could not list directory: {collected.error}")
        return Success(entries)

    async def _collect(self, directory: Path, entries: List[FileEntry], depth: int) -> None:
        children = []
        for name in await aiofiles.os.listdir(directory):
            child = directory / name
            children.append((not await aiofiles.os.path.isdir(child), name, child))

        subdirectories = []
        for is_file, name, child in sorted(children):
            entries.append(FileEntry(name=name, path=self._relative(child),
                                     type="file" if is_file else "directory"))
            if not is_file:
                subdirectories.append(child)

        if depth > 1:
            for child in subdirectories:
                await self._collect(child, entries, depth - 1)

    async def upload(self, path: str, filename: str, data: bytes,
                     overwrite: bool = False) -> Result[str, str]:
        if not filename or "/" in filename or filename in (".", ".."):
            return Failure(f"Invalid filename: {filename!r}")

        resolved = self._resolve(f"{path}/{filename}")
        if resolved.is_failure():
            return resolved

        target = resolved.value
        if await aiofiles.os.path.exists(target) and not overwrite:
            return Failure("File already exists. Set overwrite to true to replace it.")

        async def _write() -> str:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            async with aiofiles.open(target, "wb") as f:
                await f.write(data)
            return self._relative(target)

        written = await from_async_callable(_write)
        if written.is_failure():
            return Failure(f"Could not write file: {written.error}")

        logger.info(f"Stored {len(data)} bytes at {written.value}")
        return Success(written.value)

    async def download(self, path: str) -> Result[bytes, str]:
        resolved = self._resolve(path)
        if resolved.is_failure():
            return resolved

        target = resolved.value
        if not await aiofiles.os.path.isfile(target):
            return Failure(f"File not found: {path}")

        async def _read() -> bytes:
            async with aiofiles.open(target, "rb") as f:
                return await f.read()

        data = await from_async_callable(_read)
        if data.is_failure():
            return Failure(f"Could not read file: {data.error}")
        return data
