"""Parser package: hardened DOM parsing and markup serialization."""

from parser.secure import SecureParserFactory, get_secure_parser_factory
from parser.serializer import MarkupSerializer, SecureSerializerFactory, get_serializer

__all__ = [
    "SecureParserFactory",
    "get_secure_parser_factory",
    "MarkupSerializer",
    "SecureSerializerFactory",
    "get_serializer",
]
