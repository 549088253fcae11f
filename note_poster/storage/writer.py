# note_poster/storage/writer.py
"""Persists generated images into the vault and embeds them in the source note."""

import logging
from datetime import datetime
from pathlib import PurePosixPath

from .vault import StorageError, Vault

logger = logging.getLogger(__name__)

MIME_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}

MAX_NAME_ATTEMPTS = 1000


def extension_for(mime_type: str) -> str:
    """File extension for ``mime_type`` (png when unknown)."""
    return MIME_EXTENSIONS.get((mime_type or "").split(";")[0].strip().lower(), "png")


def resolve_attachment_folder(note_path: str, attachment_folder: str) -> str:
    """
    Resolve where attachments for ``note_path`` go.

    "" or "./" -> the note's folder; "./sub" -> a subfolder of the note's
    folder; anything else -> relative to the vault root.
    """
    note_dir = PurePosixPath(note_path).parent
    folder = (attachment_folder or "").strip().replace("\\", "/").strip("/")
    if not folder or folder == ".":
        resolved = note_dir
    elif folder.startswith("./"):
        resolved = note_dir / folder[2:]
    else:
        resolved = PurePosixPath(folder)
    return "" if str(resolved) == "." else resolved.as_posix()


class StorageWriter:
    """
    Writes poster images next to notes and links them in.

    Naming: ``<note-stem>-poster-<YYYYMMDD-HHMMSS>.<ext>``, with ``-1``,
    ``-2``, ... appended until the name is free. Existing files are never
    overwritten. Embeds are appended at the end of the note as
    ``![[<path>]]`` on their own paragraph.
    """

    def __init__(self, vault: Vault, clock=datetime.now) -> None:
        self._vault = vault
        self._clock = clock

    def _pick_path(self, folder: str, stem: str, ext: str) -> str:
        base = f"{stem}-poster-{self._clock().strftime('%Y%m%d-%H%M%S')}"
        for i in range(MAX_NAME_ATTEMPTS):
            name = f"{base}.{ext}" if i == 0 else f"{base}-{i}.{ext}"
            candidate = f"{folder}/{name}" if folder else name
            if not self._vault.exists(candidate):
                return candidate
        raise StorageError(f"No free file name for {base}.{ext} in {folder or '/'}")

    async def save_image(
        self,
        image_bytes: bytes,
        mime_type: str,
        note_path: str,
        attachment_folder: str,
    ) -> str:
        """
        Write ``image_bytes`` under the resolved attachment folder.

        Returns:
            Vault-relative path of the new file

        Raises:
            StorageError: If the vault denies the write
        """
        folder = resolve_attachment_folder(note_path, attachment_folder)
        stem = PurePosixPath(note_path).stem or "note"
        path = self._pick_path(folder, stem, extension_for(mime_type))
        await self._vault.write(path, image_bytes)
        logger.info(f"Saved poster image to {path}")
        return path

    async def embed_image_in_note(self, note_path: str, file_path: str) -> None:
        """
        Append an embed link for ``file_path`` to the end of the note.

        Raises:
            StorageError: If the note is gone or cannot be modified
        """
        if self._vault.resolve_file(note_path) is None:
            raise StorageError(f"Note not found: {note_path}")

        content = await self._vault.read(note_path)
        if not content:
            separator = ""
        elif content.endswith("\n\n"):
            separator = ""
        elif content.endswith("\n"):
            separator = "\n"
        else:
            separator = "\n\n"

        await self._vault.append(note_path, f"{separator}![[{file_path}]]\n")
        logger.info(f"Embedded {file_path} in {note_path}")
