"""In-process resource store.

Keys are flat strings; a key is a container when other keys live under
``<key>/``. Used for ephemeral staging and tests.
"""

from __future__ import annotations

import threading
from typing import BinaryIO

from staging_store.domain.exceptions import ResourceError, ResourceNotFoundError


class MemoryResourceInstance:
    """One key of a ``MemoryResourceProvider``."""

    def __init__(self, provider: "MemoryResourceProvider", key: str):
        self._provider = provider
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def put(self, stream: BinaryIO) -> int:
        data = stream.read()
        with self._provider.lock:
            self._provider.entries[self._key] = bytes(data)
        return len(data)

    def read_at(self, offset: int, size: int) -> bytes:
        if offset < 0:
            raise ValueError(f"Negative read offset: {offset}")
        return self._data()[offset:offset + size]

    def size(self) -> int:
        return len(self._data())

    def delete(self) -> None:
        with self._provider.lock:
            if self._key in self._provider.entries:
                del self._provider.entries[self._key]
                return
            if self._provider.children_of(self._key):
                raise ResourceError(f"Container {self._key} is not empty")
            if self._key not in self._provider.containers:
                raise ResourceNotFoundError(self._key)
            self._provider.containers.discard(self._key)

    def list_children(self) -> list[str]:
        with self._provider.lock:
            children = self._provider.children_of(self._key)
            if not children and self._key not in self._provider.containers:
                raise ResourceNotFoundError(self._key)
            return children

    def _data(self) -> bytes:
        with self._provider.lock:
            try:
                return self._provider.entries[self._key]
            except KeyError as e:
                raise ResourceNotFoundError(self._key) from e


class MemoryResourceProvider:
    """Resource store holding every entry in a dict."""

    def __init__(self) -> None:
        self.entries: dict[str, bytes] = {}
        # Containers that outlive their last child until deleted
        self.containers: set[str] = set()
        self.lock = threading.RLock()

    def new_instance(self, key: str) -> MemoryResourceInstance:
        normalized = key.strip("/")
        if not normalized:
            raise ResourceError(f"Invalid resource key: {key!r}")
        with self.lock:
            parts = normalized.split("/")
            for depth in range(1, len(parts)):
                self.containers.add("/".join(parts[:depth]))
        return MemoryResourceInstance(self, normalized)

    def children_of(self, key: str) -> list[str]:
        prefix = f"{key}/"
        names = {
            name[len(prefix):].split("/", 1)[0]
            for name in list(self.entries) + list(self.containers)
            if name.startswith(prefix)
        }
        return sorted(names)
