# note_poster/logging_config.py
"""
Stderr-only logging configuration.

stdout is reserved for command output (e.g. ``note-poster prompt`` prints the
prompt so it can be piped), so every handler writes to stderr.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any


class JsonFormatter(logging.Formatter):
    """Formats log records as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON line."""
        log_data: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        if record.exc_info:
            log_data["exc"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def configure_logging(verbose: bool = False, json_output: bool = False) -> None:
    """
    Configure root logging to stderr.

    Args:
        verbose: INFO level when True, WARNING otherwise
        json_output: Emit JSON lines instead of human-readable text
    """
    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s  %(levelname)-7s  %(message)s", datefmt="%H:%M:%S")
        )

    level = logging.INFO if verbose else logging.WARNING
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # SDK request logs are noisy at INFO
    for logger_name in ["httpx", "httpcore", "openai", "anthropic", "google_genai"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
