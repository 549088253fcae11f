# note_poster/__init__.py
"""
note-poster: turn Markdown notes into AI-generated knowledge posters.

A text model condenses the note into an image prompt, an image model renders
the poster, and the image is saved next to the note and embedded in it.
"""

__version__ = "0.3.0"
