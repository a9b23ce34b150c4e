"""Extract the inner markup of the first matching element from an XML file."""

from __future__ import annotations

import os
from pathlib import Path
from xml.dom import Node, minidom

from core.config import ExtractorConfig
from core.errors import FileAccessError, InvalidArgumentError, XmlParseError
from core.models import NodeKind
from core.structured_logging import emit_json_event, is_enabled
from parser.secure import SecureParserFactory, get_secure_parser_factory
from parser.serializer import MarkupSerializer, get_serializer


_KIND_BY_NODE_TYPE = {
    Node.TEXT_NODE: NodeKind.TEXT,
    Node.CDATA_SECTION_NODE: NodeKind.CDATA,
    Node.ELEMENT_NODE: NodeKind.ELEMENT,
}


def node_kind(node: minidom.Node) -> NodeKind:
    """Classify a DOM node for inner-markup rendering."""
    return _KIND_BY_NODE_TYPE.get(node.nodeType, NodeKind.OTHER)


def find_first_element(root: minidom.Node, tag_name: str) -> minidom.Element | None:
    """Return the first element named `tag_name` in document order, or None."""
    stack = list(reversed(root.childNodes))
    while stack:
        node = stack.pop()
        if node.nodeType != Node.ELEMENT_NODE:
            continue
        if node.tagName == tag_name:
            return node
        stack.extend(reversed(node.childNodes))
    return None


def estimate_content_length(node: minidom.Node) -> int:
    """Approximate rendered length of a node's children."""
    estimate = 0
    for child in node.childNodes:
        kind = node_kind(child)
        if kind in (NodeKind.TEXT, NodeKind.CDATA):
            estimate += len(child.data or "")
        elif kind is NodeKind.ELEMENT:
            estimate += len(child.tagName) * 2 + ExtractorConfig.ELEMENT_OVERHEAD_CHARS
            estimate += estimate_content_length(child)
    return estimate


def _validate_file(path: Path) -> None:
    """Raise FileAccessError unless path is an existing readable regular file."""
    if not path.exists() or not path.is_file() or not os.access(path, os.R_OK):
        raise FileAccessError(f"Cannot access XML file: {path}", path=str(path))


class _InnerMarkupBuilder:
    """
    Accumulate rendered children.

    Text is trimmed, but where the raw text had whitespace next to an element
    sibling one space is kept at that text/element boundary. CDATA joins its
    neighbours with no separator.
    """

    def __init__(self) -> None:
        self._parts: list[str] = []
        self._last_kind: NodeKind | None = None
        self._space_before_element = False

    def append_text(self, data: str) -> None:
        text = data.strip()
        if not text:
            return
        if self._last_kind is NodeKind.ELEMENT and data[0].isspace():
            self._parts.append(" ")
        self._push(text, NodeKind.TEXT)
        self._space_before_element = data[-1].isspace()

    def append_cdata(self, data: str) -> None:
        if data:
            self._push(data, NodeKind.CDATA)

    def append_element(self, markup: str) -> None:
        if not markup:
            return
        if self._space_before_element and self._last_kind is NodeKind.TEXT:
            self._parts.append(" ")
        self._push(markup, NodeKind.ELEMENT)

    def _push(self, markup: str, kind: NodeKind) -> None:
        self._parts.append(markup)
        self._last_kind = kind
        self._space_before_element = False

    def build(self) -> str:
        return "".join(self._parts)


class ElementExtractor:
    """Extract inner markup of one element with a hardened parser and serializer."""

    def __init__(
        self,
        parser_factory: SecureParserFactory | None = None,
        serializer: MarkupSerializer | None = None,
    ) -> None:
        """Use injected parser/serializer, or the process-wide ones when omitted."""
        self._parser_factory = parser_factory
        self._serializer = serializer

    @property
    def parser_factory(self) -> SecureParserFactory:
        return self._parser_factory or get_secure_parser_factory()

    @property
    def serializer(self) -> MarkupSerializer:
        return self._serializer or get_serializer()

    def extract(self, file_path: str | os.PathLike[str], tag_name: str) -> str | None:
        """
        Return the inner markup of the first `tag_name` element in `file_path`.

        Args:
            file_path: Path to a local, readable XML file.
            tag_name: Exact (case-sensitive) element name to look for.

        Returns:
            Markup of the element's children (possibly ""), or None when the
            document has no such element.

        Raises:
            InvalidArgumentError: If file_path or tag_name is empty.
            FileAccessError: If the file is missing, not regular, or unreadable.
            XmlParseError: If the document cannot be parsed safely.
            ConfigurationError: If the secure parser/serializer cannot be built.
        """
        if not file_path or not os.fspath(file_path).strip() or not tag_name or not tag_name.strip():
            raise InvalidArgumentError("File path and tag name must not be empty")

        path = Path(file_path)
        _validate_file(path)

        try:
            document = self.parser_factory.parse_file(path)
        except XmlParseError as exc:
            emit_json_event(
                "xml_parse_failed",
                level="error",
                file_path=str(path),
                tag_name=tag_name,
                error_type=type(exc.__cause__ or exc).__name__,
                error_message=str(exc.__cause__ or exc),
            )
            raise

        if document.documentElement is not None:
            document.documentElement.normalize()

        element = find_first_element(document, tag_name)
        if element is None:
            emit_json_event(
                "xml_tag_not_found",
                level="debug",
                file_path=str(path),
                tag_name=tag_name,
            )
            return None

        markup = self.inner_markup(element)
        if is_enabled("debug"):
            emit_json_event(
                "xml_tag_extracted",
                level="debug",
                file_path=str(path),
                tag_name=tag_name,
                estimated_length=estimate_content_length(element),
                markup_length=len(markup),
            )
        return markup

    def inner_markup(self, element: minidom.Element) -> str:
        """Render an element's children; one failing child never aborts the rest."""
        serializer = self.serializer
        builder = _InnerMarkupBuilder()

        for index, child in enumerate(element.childNodes):
            kind = node_kind(child)
            try:
                if kind is NodeKind.TEXT:
                    builder.append_text(child.data)
                elif kind is NodeKind.CDATA:
                    builder.append_cdata(child.data)
                elif kind is NodeKind.ELEMENT:
                    builder.append_element(serializer.serialize(child))
            except Exception as exc:
                emit_json_event(
                    "xml_child_serialization_failed",
                    level="warning",
                    tag_name=element.tagName,
                    child_index=index,
                    node_kind=kind.value,
                    error_type=type(exc).__name__,
                    error_message=str(exc),
                )
                continue

        return builder.build()


def extract_inner_markup(file_path: str | os.PathLike[str], tag_name: str) -> str | None:
    """Extract inner markup with the process-wide secure parser and serializer."""
    return ElementExtractor().extract(file_path, tag_name)
