"""Shared utility functions."""

import json
import logging

logger = logging.getLogger(__name__)


def decode_json(raw: str | None, default, *, context: str = ""):
    """Decode a JSON text column, returning *default* when empty or invalid."""
    if raw is None or raw == "":
        return default
    try:
        value = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        logger.warning("Invalid JSON in %s", context or "column")
        return default
    if not isinstance(value, type(default)):
        logger.warning("Unexpected JSON shape in %s: %s", context or "column", type(value).__name__)
        return default
    return value


def encode_json(value) -> str:
    """Encode a value for a JSON text column."""
    return json.dumps(value, ensure_ascii=False, default=str)
