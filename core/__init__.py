"""Core module for the XML element extractor."""

from core.config import ExtractorConfig
from core.errors import (
    ConfigurationError,
    FileAccessError,
    InvalidArgumentError,
    XmlParseError,
    XmlProcessingError,
)
from core.models import NodeKind, ParserSettings, SerializerSettings

__all__ = [
    "ExtractorConfig",
    "XmlProcessingError",
    "InvalidArgumentError",
    "FileAccessError",
    "XmlParseError",
    "ConfigurationError",
    "NodeKind",
    "ParserSettings",
    "SerializerSettings",
]
