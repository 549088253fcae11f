# note_poster/__main__.py
"""Entry point for ``python -m note_poster``."""

from note_poster.cli import app

if __name__ == "__main__":
    app()
