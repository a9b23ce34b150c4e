"""Secure markup serializer for DOM subtrees."""

from __future__ import annotations

import codecs
import io
import threading
from xml.dom import Node, minidom
from xml.sax.saxutils import escape

from core.atomic import AtomicReference
from core.config import ExtractorConfig
from core.errors import ConfigurationError
from core.models import SerializerSettings
from core.structured_logging import emit_json_event


# Node types that can only appear with a DTD; never written by a secure serializer.
_DTD_NODE_TYPES = frozenset(
    {
        Node.DOCUMENT_TYPE_NODE,
        Node.ENTITY_NODE,
        Node.ENTITY_REFERENCE_NODE,
        Node.NOTATION_NODE,
    }
)

_ATTRIBUTE_ENTITIES = {'"': "&quot;"}


def _prefix_of(qualified_name: str) -> str | None:
    """Return the prefix of `p:local`, or None for an unprefixed name."""
    if ":" in qualified_name:
        return qualified_name.split(":", 1)[0]
    return None


def _declaration_name(prefix: str | None) -> str:
    return f"xmlns:{prefix}" if prefix else "xmlns"


def used_namespace_declarations(node: minidom.Element) -> set[str]:
    """Names of the xmlns attributes the subtree's element and attribute prefixes rely on."""
    used: set[str] = set()
    stack = [node]
    while stack:
        current = stack.pop()
        if current.nodeType != Node.ELEMENT_NODE:
            continue
        used.add(_declaration_name(_prefix_of(current.tagName)))
        for name in current.attributes.keys():
            prefix = _prefix_of(name)
            if prefix and prefix not in ("xml", "xmlns"):
                used.add(_declaration_name(prefix))
        stack.extend(current.childNodes)
    return used


def inherited_namespace_declarations(node: minidom.Node) -> dict[str, str]:
    """xmlns attributes in scope from `node`'s ancestors, nearest declaration first."""
    bindings: dict[str, str] = {}
    parent = node.parentNode
    while parent is not None and parent.nodeType == Node.ELEMENT_NODE:
        for name, value in parent.attributes.items():
            if (name == "xmlns" or name.startswith("xmlns:")) and name not in bindings:
                bindings[name] = value
        parent = parent.parentNode
    return bindings


class MarkupSerializer:
    """Render DOM subtrees to markup text with fixed output settings."""

    def __init__(self, settings: SerializerSettings) -> None:
        self.settings = settings
        self._indent = "  " if settings.indent else ""
        self._newline = "\n" if settings.indent else ""

    def serialize(self, node: minidom.Node) -> str:
        """
        Serialize `node` and its whole subtree.

        An element detached from its ancestors carries the namespace
        declarations it inherited, so the fragment stays well-formed.
        Character data escapes only ``&``, ``<`` and ``>``.

        Raises:
            ValueError: If the subtree carries DTD-only nodes.
        """
        if self.settings.secure_processing:
            _reject_dtd_nodes(node)

        if node.nodeType == Node.ELEMENT_NODE:
            node = self._with_inherited_namespaces(node)

        writer = io.StringIO()
        self._write(writer, node, 0)
        markup = writer.getvalue()

        encoding = self.settings.encoding
        markup = markup.encode(encoding, "xmlcharrefreplace").decode(encoding)

        if not self.settings.omit_xml_declaration:
            markup = f'<?xml version="1.0" encoding="{encoding}"?>{self._newline}{markup}'
        return markup

    @staticmethod
    def _with_inherited_namespaces(element: minidom.Element) -> minidom.Element:
        """Return `element`, or a deep copy declaring the ancestor namespaces it uses."""
        inherited = inherited_namespace_declarations(element)
        if not inherited:
            return element

        missing = [
            name
            for name in sorted(used_namespace_declarations(element))
            if name in inherited and not element.hasAttribute(name)
        ]
        if not missing:
            return element

        clone = element.cloneNode(True)
        for name in missing:
            clone.setAttribute(name, inherited[name])
        return clone

    def _write(self, writer: io.StringIO, node: minidom.Node, depth: int) -> None:
        node_type = node.nodeType
        if node_type == Node.ELEMENT_NODE:
            writer.write(f"<{node.tagName}")
            for name, value in node.attributes.items():
                writer.write(f' {name}="{escape(value, _ATTRIBUTE_ENTITIES)}"')
            if not node.childNodes:
                writer.write("/>")
                return
            writer.write(">")
            pretty = self.settings.indent and _element_only(node)
            for child in node.childNodes:
                if pretty:
                    if child.nodeType == Node.TEXT_NODE:
                        continue
                    writer.write(self._newline + self._indent * (depth + 1))
                self._write(writer, child, depth + 1)
            if pretty:
                writer.write(self._newline + self._indent * depth)
            writer.write(f"</{node.tagName}>")
        elif node_type == Node.TEXT_NODE:
            writer.write(escape(node.data))
        elif node_type == Node.CDATA_SECTION_NODE:
            writer.write(f"<![CDATA[{node.data}]]>")
        elif node_type == Node.COMMENT_NODE:
            writer.write(f"<!--{node.data}-->")
        elif node_type == Node.PROCESSING_INSTRUCTION_NODE:
            data = f" {node.data}" if node.data else ""
            writer.write(f"<?{node.target}{data}?>")
        elif node_type == Node.DOCUMENT_NODE:
            for child in node.childNodes:
                self._write(writer, child, depth)


def _element_only(node: minidom.Element) -> bool:
    """True when every text child is blank, so re-indenting loses nothing."""
    return all(
        child.nodeType != Node.TEXT_NODE or not child.data.strip()
        for child in node.childNodes
    )


def _reject_dtd_nodes(node: minidom.Node) -> None:
    """Raise when the subtree holds nodes that would reference a DTD."""
    stack = [node]
    while stack:
        current = stack.pop()
        if current.nodeType in _DTD_NODE_TYPES:
            raise ValueError(f"refusing to serialize DTD node: {current.nodeName}")
        stack.extend(current.childNodes)


class SecureSerializerFactory:
    """Create serializers that never reach external DTDs or stylesheets."""

    def __init__(self, settings: SerializerSettings) -> None:
        self.settings = settings

    @classmethod
    def configure(cls, settings: SerializerSettings | None = None) -> SecureSerializerFactory:
        """
        Create a factory with hardened settings.

        Raises:
            ConfigurationError: If any setting would weaken the serializer.
        """
        settings = settings or SerializerSettings()
        if not settings.secure_processing:
            raise ConfigurationError("Cannot configure serializer: secure processing is required")
        for name in ("access_external_dtd", "access_external_stylesheet"):
            value = getattr(settings, name)
            if value != ExtractorConfig.DISALLOWED_EXTERNAL_ACCESS:
                raise ConfigurationError(
                    f"Cannot configure serializer: {name} must be empty, got {value!r}"
                )
        try:
            codecs.lookup(settings.encoding)
        except LookupError as exc:
            raise ConfigurationError(
                f"Cannot configure serializer: unknown encoding {settings.encoding!r}"
            ) from exc

        emit_json_event(
            "serializer_factory_configured",
            level="debug",
            component="serializer",
            encoding=settings.encoding,
            omit_xml_declaration=settings.omit_xml_declaration,
            indent=settings.indent,
        )
        return cls(settings)

    def new_serializer(self) -> MarkupSerializer:
        """Return a new serializer bound to this factory's settings."""
        return MarkupSerializer(self.settings)


_FACTORY_CACHE: AtomicReference[SecureSerializerFactory] = AtomicReference()
_SERIALIZER_CACHE: dict[str, MarkupSerializer] = {}
_SERIALIZER_CACHE_LOCK = threading.Lock()


def get_secure_serializer_factory() -> SecureSerializerFactory:
    """Return the process-wide serializer factory, configuring it on first use."""
    factory = _FACTORY_CACHE.get()
    if factory is None:
        factory = _FACTORY_CACHE.publish(SecureSerializerFactory.configure())
    return factory


def get_serializer(key: str = ExtractorConfig.SERIALIZER_CACHE_KEY) -> MarkupSerializer:
    """Return the shared serializer cached under `key`."""
    serializer = _SERIALIZER_CACHE.get(key)
    if serializer is not None:
        return serializer

    candidate = get_secure_serializer_factory().new_serializer()
    with _SERIALIZER_CACHE_LOCK:
        return _SERIALIZER_CACHE.setdefault(key, candidate)


def reset_serializers() -> None:
    """Forget the process-wide serializer factory and serializers (tests only)."""
    with _SERIALIZER_CACHE_LOCK:
        _SERIALIZER_CACHE.clear()
    _FACTORY_CACHE.clear()
