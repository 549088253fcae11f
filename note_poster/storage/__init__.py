# note_poster/storage/__init__.py
"""Vault access and image persistence."""

from .vault import FileSystemVault, StorageError, Vault
from .writer import StorageWriter, extension_for, resolve_attachment_folder

__all__ = [
    "FileSystemVault",
    "StorageError",
    "Vault",
    "StorageWriter",
    "extension_for",
    "resolve_attachment_folder",
]
