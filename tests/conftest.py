"""
Shared pytest fixtures and configuration for extractor tests.
"""

import json
from pathlib import Path
from typing import Callable

import pytest

from core.config import ExtractorConfig
from parser.secure import reset_secure_parser_factory
from parser.serializer import reset_serializers


# ============================================================================
# Fixtures: XML Files
# ============================================================================

@pytest.fixture
def write_xml(tmp_path: Path) -> Callable[..., Path]:
    """Write XML text to a temp file and return its path."""

    def _write(content: str, name: str = "document.xml") -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def simple_xml(write_xml) -> Path:
    """Document with mixed text and a nested element."""
    return write_xml("<root><tag>hello <b>world</b></tag></root>")


# ============================================================================
# Fixtures: Logging
# ============================================================================

@pytest.fixture
def debug_logging(monkeypatch):
    """Emit debug-level events for the duration of a test."""
    monkeypatch.setattr(ExtractorConfig, "MIN_LOG_LEVEL", "debug")


@pytest.fixture
def json_events(capsys) -> Callable[[], list[dict]]:
    """Return structured events printed so far."""

    def _read() -> list[dict]:
        lines = [line.strip() for line in capsys.readouterr().out.splitlines() if line.strip()]
        return [json.loads(line) for line in lines]

    return _read


# ============================================================================
# Fixtures: Cleanup
# ============================================================================

@pytest.fixture(autouse=True)
def fresh_singletons():
    """Rebuild process-wide factories for every test."""
    reset_secure_parser_factory()
    reset_serializers()
    yield
    reset_secure_parser_factory()
    reset_serializers()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "contract: configuration and error contract tests")
    config.addinivalue_line("markers", "integration: file-based end-to-end tests")
    config.addinivalue_line("markers", "unit: unit tests")
