# note_poster/storage/vault.py
"""
Host vault capability and its filesystem implementation.

Paths handed across this boundary are vault-relative POSIX strings
("notes/tcp.md"), the same form used inside embed links.
"""

import logging
from pathlib import Path, PurePosixPath
from typing import Protocol

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """The vault refused a read or write (read-only, invalid path, ...)."""


class Vault(Protocol):
    """Capabilities the pipeline needs from the note host."""

    async def read(self, note_path: str) -> str: ...

    async def write(self, path: str, data: bytes) -> str: ...

    async def append(self, note_path: str, text: str) -> None: ...

    def exists(self, path: str) -> bool: ...

    def resolve_file(self, path: str) -> Path | None: ...


class FileSystemVault:
    """
    Vault backed by a directory of Markdown notes.

    All paths are resolved under ``root``; anything escaping it is rejected.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser().resolve()
        logger.info(f"Opened vault at {self.root}")

    def _abs(self, path: str) -> Path:
        if not path or PurePosixPath(path).is_absolute():
            raise StorageError(f"Invalid vault path: {path!r}")
        candidate = (self.root / path).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            raise StorageError(f"Path escapes the vault: {path}")
        return candidate

    def relative(self, path: str | Path) -> str:
        """Convert an OS path (absolute or cwd-relative) into a vault path."""
        absolute = Path(path).expanduser().resolve()
        try:
            return absolute.relative_to(self.root).as_posix()
        except ValueError as e:
            raise StorageError(f"{path} is not inside the vault {self.root}") from e

    def exists(self, path: str) -> bool:
        try:
            return self._abs(path).exists()
        except StorageError:
            return False

    def resolve_file(self, path: str) -> Path | None:
        """Return the file for ``path`` or None if it no longer exists."""
        try:
            candidate = self._abs(path)
        except StorageError:
            return None
        return candidate if candidate.is_file() else None

    async def read(self, note_path: str) -> str:
        try:
            return self._abs(note_path).read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot read {note_path}: {e}") from e

    async def write(self, path: str, data: bytes) -> str:
        target = self._abs(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            # "xb" fails instead of overwriting an existing file
            with target.open("xb") as f:
                f.write(data)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}") from e
        logger.info(f"Wrote {len(data)} bytes to {path}")
        return path

    async def append(self, note_path: str, text: str) -> None:
        target = self._abs(note_path)
        try:
            with target.open("a", encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            raise StorageError(f"Cannot modify {note_path}: {e}") from e
