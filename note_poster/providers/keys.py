# note_poster/providers/keys.py
"""Credential lookup for the selected provider."""

from collections.abc import Mapping


def resolve_provider_key(provider_id: str, api_keys: Mapping[str, str | None]) -> str:
    """
    Return the configured credential for ``provider_id``.

    Absence (unknown provider, unset or blank key) is signalled by "" so callers
    can check before any network call.
    """
    return (api_keys.get(provider_id) or "").strip()
