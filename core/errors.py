"""Error taxonomy for XML extraction failures."""

from __future__ import annotations


class XmlProcessingError(Exception):
    """Base class for every extraction failure surfaced to callers."""


class InvalidArgumentError(XmlProcessingError):
    """File path or tag name is missing or empty."""


class FileAccessError(XmlProcessingError):
    """Path does not exist, is not a regular file, or is not readable."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class XmlParseError(XmlProcessingError):
    """Document is malformed, forbidden by the hardening rules, or unreadable."""


class ConfigurationError(XmlProcessingError):
    """Secure parser or serializer factory could not be configured."""
