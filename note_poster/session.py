# note_poster/session.py
"""
Session persistence for the command line.

The pipeline keeps "last prompt / last note" in a PosterSession for the
lifetime of the process. Each CLI command is its own process, so the CLI
stores the session as JSON next to the config to make ``regenerate`` work
across invocations. The vault root is stored alongside because note paths
are vault-relative.
"""

import json
import logging
from pathlib import Path

from note_poster.config.loader import get_config_dir
from note_poster.models import PosterSession

logger = logging.getLogger(__name__)

SESSION_FILE = "session.json"


def get_session_path() -> Path:
    return get_config_dir() / SESSION_FILE


def load_session(path: Path | None = None) -> tuple[PosterSession, str | None]:
    """
    Load the stored session.

    Returns:
        (session, vault_root): an empty session and None if the file is
        missing or unreadable
    """
    session_path = path or get_session_path()
    if not session_path.exists():
        return PosterSession(), None

    try:
        data = json.loads(session_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable session file {session_path}: {e}")
        return PosterSession(), None

    session = PosterSession(
        last_prompt=data.get("last_prompt") or "",
        last_note_path=data.get("last_note_path"),
    )
    return session, data.get("vault_root")


def save_session(
    session: PosterSession, vault_root: str | Path, path: Path | None = None
) -> None:
    """Overwrite the stored session (last writer wins)."""
    session_path = path or get_session_path()
    session_path.write_text(
        json.dumps(
            {
                "last_prompt": session.last_prompt,
                "last_note_path": session.last_note_path,
                "vault_root": str(vault_root),
            },
            ensure_ascii=False,
            indent=2,
        ),
        encoding="utf-8",
    )
    logger.info(f"Saved session to {session_path}")
