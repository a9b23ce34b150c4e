"""Shared structured JSON logging helpers."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from core.config import ExtractorConfig


def is_enabled(level: str) -> bool:
    """Return True when events at `level` pass the configured threshold."""
    threshold = ExtractorConfig.LOG_LEVELS[ExtractorConfig.MIN_LOG_LEVEL]
    return ExtractorConfig.LOG_LEVELS.get(level, threshold) >= threshold


def emit_json_event(
    event_type: str,
    *,
    level: str = "info",
    component: str = "extractor",
    **payload: Any,
) -> str | None:
    """Emit one JSON event line to stdout and return the rendered line."""
    if not is_enabled(level):
        return None

    event: dict[str, Any] = {
        "event_type": event_type,
        "level": level,
        "timestamp": datetime.now(UTC).isoformat(),
        "component": component,
    }
    event.update(payload)
    line = json.dumps(event, ensure_ascii=True, sort_keys=True, default=str)
    print(line)
    return line
