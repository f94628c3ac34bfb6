from __future__ import annotations
"""Binary object store for generated artifacts.

The shipped implementation writes under ``MEDIA_VOLUME``, which the API
also serves as static files. A successful ``put`` is the commit point of a
generation unit.
"""

import asyncio
import logging
import os
from typing import Protocol

from pixelstudio.errors import ObjectNotFound, PersistenceError

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    async def put(self, key: str, data: bytes, content_type: str) -> None: ...

    async def get(self, key: str) -> bytes: ...

    async def delete(self, key: str) -> None: ...


class LocalObjectStore:
    """Object store backed by a local directory."""

    def __init__(self, root: str) -> None:
        self.root = os.path.abspath(root)

    def _path(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.root, key))
        if not path.startswith(self.root + os.sep):
            raise PersistenceError(f"Invalid object key: {key}")
        return path

    def _write(self, path: str, data: bytes) -> None:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)

    def _read(self, path: str) -> bytes:
        with open(path, "rb") as f:
            return f.read()

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path(key)
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as e:
            raise PersistenceError(f"Failed to store object {key}: {e}") from e
        logger.info("Stored object %s (%d bytes, %s)", key, len(data), content_type)

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return await asyncio.to_thread(self._read, path)
        except FileNotFoundError as e:
            raise ObjectNotFound(f"Object not found: {key}") from e
        except OSError as e:
            raise PersistenceError(f"Failed to read object {key}: {e}") from e

    async def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            await asyncio.to_thread(os.remove, path)
        except FileNotFoundError:
            logger.info("Object %s already absent", key)
        except OSError as e:
            raise PersistenceError(f"Failed to delete object {key}: {e}") from e
