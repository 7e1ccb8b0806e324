"""Filesystem-backed resource store.

Each key maps to a path under a root directory. Container keys are
directories. ``put`` writes to a temporary file beside the target and
renames it into place, so an entry is always replaced wholesale.

Thread Safety:
    Independent keys can be used concurrently. Readers of a key being
    replaced see either the old or the new entry.
"""

from __future__ import annotations

import os
import posixpath
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO

from staging_store.domain.exceptions import ResourceError, ResourceNotFoundError

COPY_BUFFER_SIZE = 1024 * 1024


class FileResourceInstance:
    """One key of a ``FileResourceProvider``."""

    def __init__(self, root: Path, key: str):
        self._key = key
        self.path = root.joinpath(*key.split("/"))

    @property
    def key(self) -> str:
        return self._key

    def put(self, stream: BinaryIO) -> int:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "wb") as tmp:
                    shutil.copyfileobj(stream, tmp, COPY_BUFFER_SIZE)
                    tmp.flush()
                    os.fsync(tmp.fileno())
                    written = tmp.tell()
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise ResourceError(f"Failed to write {self._key}: {e}") from e
        return written

    def read_at(self, offset: int, size: int) -> bytes:
        if offset < 0:
            raise ValueError(f"Negative read offset: {offset}")
        try:
            with open(self.path, "rb") as f:
                f.seek(offset)
                return f.read(size)
        except (FileNotFoundError, IsADirectoryError) as e:
            raise ResourceNotFoundError(self._key) from e
        except OSError as e:
            raise ResourceError(f"Failed to read {self._key}: {e}") from e

    def size(self) -> int:
        try:
            stat = self.path.stat()
        except FileNotFoundError as e:
            raise ResourceNotFoundError(self._key) from e
        except OSError as e:
            raise ResourceError(f"Failed to stat {self._key}: {e}") from e
        if self.path.is_dir():
            raise ResourceNotFoundError(self._key)
        return stat.st_size

    def delete(self) -> None:
        try:
            if self.path.is_dir():
                self.path.rmdir()
            else:
                self.path.unlink()
        except FileNotFoundError as e:
            raise ResourceNotFoundError(self._key) from e
        except OSError as e:
            raise ResourceError(f"Failed to delete {self._key}: {e}") from e

    def list_children(self) -> list[str]:
        try:
            names = os.listdir(self.path)
        except (FileNotFoundError, NotADirectoryError) as e:
            raise ResourceNotFoundError(self._key) from e
        except OSError as e:
            raise ResourceError(f"Failed to list {self._key}: {e}") from e
        # Skip in-progress temporary files
        return sorted(name for name in names if not name.startswith("."))


class FileResourceProvider:
    """Resource store rooted at a local directory."""

    def __init__(self, root: str | Path):
        """Initialize the provider.

        Args:
            root: Directory holding all entries; created if missing.
        """
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def new_instance(self, key: str) -> FileResourceInstance:
        normalized = posixpath.normpath(key.strip("/"))
        if normalized in ("", ".") or normalized.startswith(".."):
            raise ResourceError(f"Invalid resource key: {key!r}")
        return FileResourceInstance(self.root, normalized)
