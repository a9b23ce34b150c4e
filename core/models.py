"""
Core Pydantic models for the XML element extractor.

Design principles:
- Settings are frozen once built (safe to share across threads)
- Defaults are the hardened configuration; callers opt out explicitly
- Node kinds are a closed variant, not a DOM class hierarchy
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.config import ExtractorConfig


# ============================================================================
# Enums
# ============================================================================

class NodeKind(str, Enum):
    """How a child node is rendered into inner markup."""
    TEXT = "text"  # trimmed, dropped when blank
    CDATA = "cdata"  # verbatim
    ELEMENT = "element"  # whole subtree through the serializer
    OTHER = "other"  # comments, processing instructions, ... (skipped)


# ============================================================================
# Parser Settings
# ============================================================================

class ParserSettings(BaseModel):
    """
    Configuration applied to the secure parser factory.

    Every default is the hardened value. Mandatory toggles fail factory
    configuration when the engine refuses them; best-effort toggles
    (disallow_doctype, external_*_entities) only log a warning.
    """
    model_config = ConfigDict(frozen=True)

    namespace_aware: bool = True
    expand_entity_references: bool = False
    xinclude_aware: bool = False
    validating: bool = False

    disallow_doctype: bool = True
    external_general_entities: bool = False
    external_parameter_entities: bool = False

    access_external_dtd: str = ExtractorConfig.DISALLOWED_EXTERNAL_ACCESS
    access_external_schema: str = ExtractorConfig.DISALLOWED_EXTERNAL_ACCESS


# ============================================================================
# Serializer Settings
# ============================================================================

class SerializerSettings(BaseModel):
    """
    Configuration applied to the secure serializer factory and its serializers.
    """
    model_config = ConfigDict(frozen=True)

    secure_processing: bool = True
    access_external_dtd: str = ExtractorConfig.DISALLOWED_EXTERNAL_ACCESS
    access_external_stylesheet: str = ExtractorConfig.DISALLOWED_EXTERNAL_ACCESS

    omit_xml_declaration: bool = True
    indent: bool = False
    encoding: str = Field(default=ExtractorConfig.OUTPUT_ENCODING, min_length=1)

    @field_validator("encoding")
    @classmethod
    def normalize_encoding(cls, v: str) -> str:
        """Store encodings lowercased and stripped."""
        return v.strip().lower()
