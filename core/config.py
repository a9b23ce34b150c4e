"""
Default configuration for the XML element extractor.

These settings are IMMUTABLE and describe the hardened defaults every
extraction runs with. Per-call behavior is never configured through the
environment; if a caller needs different parser or serializer settings it
builds its own factory from the models in core.models.
"""

from typing import Dict


class ExtractorConfig:
    """
    Immutable extractor settings.
    """

    # ========================================================================
    # Parser Feature Names (DOM Level 3 Load/Save names)
    # ========================================================================

    FEATURE_NAMESPACES: str = "namespaces"
    FEATURE_ENTITIES: str = "entities"
    FEATURE_VALIDATION: str = "validation"
    FEATURE_EXTERNAL_GENERAL_ENTITIES: str = "external-general-entities"
    FEATURE_EXTERNAL_PARAMETER_ENTITIES: str = "external-parameter-entities"

    # Not a DOM feature: toggled on the defused builder itself.
    FEATURE_DISALLOW_DOCTYPE: str = "disallow-doctype-decl"

    # Only the empty value (no protocol allowed) is accepted for these.
    DISALLOWED_EXTERNAL_ACCESS: str = ""

    # ========================================================================
    # Serializer
    # ========================================================================

    OUTPUT_ENCODING: str = "utf-8"
    """Encoding forced on serialized markup."""

    SERIALIZER_CACHE_KEY: str = "default"
    """Key of the shared serializer instance."""

    # ========================================================================
    # Length Estimate
    # ========================================================================

    # Per-element overhead on top of 2x the tag name (angle brackets, slash).
    ELEMENT_OVERHEAD_CHARS: int = 5

    # ========================================================================
    # Logging
    # ========================================================================

    LOG_LEVELS: Dict[str, int] = {
        "debug": 10,
        "info": 20,
        "warning": 30,
        "error": 40,
    }

    MIN_LOG_LEVEL: str = "info"
    """Events below this level are not emitted."""

    @classmethod
    def validate(cls) -> None:
        """
        Validate configuration at startup.

        Raises:
            AssertionError: If any constraint is violated.
        """
        assert (
            cls.MIN_LOG_LEVEL in cls.LOG_LEVELS
        ), f"MIN_LOG_LEVEL must be one of {sorted(cls.LOG_LEVELS)}"

        assert (
            cls.ELEMENT_OVERHEAD_CHARS >= 0
        ), "ELEMENT_OVERHEAD_CHARS must be >= 0"

        assert (
            cls.DISALLOWED_EXTERNAL_ACCESS == ""
        ), "DISALLOWED_EXTERNAL_ACCESS must be empty"

        assert cls.OUTPUT_ENCODING, "OUTPUT_ENCODING must not be empty"
        assert cls.SERIALIZER_CACHE_KEY, "SERIALIZER_CACHE_KEY must not be empty"


# Validate at module import time
ExtractorConfig.validate()
