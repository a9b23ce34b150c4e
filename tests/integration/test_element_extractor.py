"""Integration tests for extractor/element.py against real files."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from xml.dom import minidom

import pytest

from core.errors import FileAccessError, InvalidArgumentError, XmlParseError, XmlProcessingError
from core.models import SerializerSettings
import extractor.element as element_module
from extractor.element import ElementExtractor, extract_inner_markup
from parser.serializer import MarkupSerializer


@pytest.mark.integration
def test_text_is_trimmed_and_nested_element_kept(simple_xml):
    """Mixed content keeps the inner element verbatim."""
    assert extract_inner_markup(simple_xml, "tag") == "hello <b>world</b>"


@pytest.mark.integration
def test_missing_tag_returns_none_not_empty_string(simple_xml):
    """An absent tag is a normal result, distinct from an empty element."""
    result = extract_inner_markup(simple_xml, "missing")

    assert result is None


@pytest.mark.integration
def test_missing_tag_logs_debug_event(simple_xml, debug_logging, json_events):
    """Not-found is reported at debug level."""
    extract_inner_markup(simple_xml, "missing")

    events = [item for item in json_events() if item["event_type"] == "xml_tag_not_found"]
    assert events
    assert events[-1]["level"] == "debug"
    assert events[-1]["tag_name"] == "missing"


@pytest.mark.integration
def test_missing_tag_is_silent_at_default_level(simple_xml, json_events):
    """Debug events are suppressed under the default threshold."""
    extract_inner_markup(simple_xml, "missing")

    assert json_events() == []


@pytest.mark.integration
def test_cdata_returned_verbatim(write_xml):
    """CDATA content is neither escaped nor trimmed."""
    path = write_xml("<root><tag><![CDATA[raw & stuff]]></tag></root>")

    assert extract_inner_markup(path, "tag") == "raw & stuff"


@pytest.mark.integration
def test_cdata_whitespace_is_preserved(write_xml):
    path = write_xml("<tag><![CDATA[  padded <x>  ]]></tag>")

    assert extract_inner_markup(path, "tag") == "  padded <x>  "


@pytest.mark.integration
def test_empty_element_returns_empty_string(write_xml):
    """Found but childless yields ''."""
    path = write_xml("<root><tag></tag></root>")

    assert extract_inner_markup(path, "tag") == ""


@pytest.mark.integration
def test_whitespace_only_children_are_dropped(write_xml):
    path = write_xml("<root><tag>\n    <a x=\"1\">one</a>\n    <b/>\n</tag></root>")

    assert extract_inner_markup(path, "tag") == '<a x="1">one</a><b/>'


@pytest.mark.integration
def test_comments_and_processing_instructions_are_skipped(write_xml):
    path = write_xml("<root><tag><!-- note --><?pi data?>kept</tag></root>")

    assert extract_inner_markup(path, "tag") == "kept"


@pytest.mark.integration
def test_first_match_in_document_order_wins(write_xml):
    """Only the first occurrence is used, even when nested matches follow."""
    path = write_xml(
        "<root><group><tag>first<tag>inner</tag></tag></group><tag>second</tag></root>"
    )

    assert extract_inner_markup(path, "tag") == "first<tag>inner</tag>"


@pytest.mark.integration
def test_tag_match_is_case_sensitive(write_xml):
    path = write_xml("<root><Tag>upper</Tag></root>")

    assert extract_inner_markup(path, "tag") is None
    assert extract_inner_markup(path, "Tag") == "upper"


@pytest.mark.integration
def test_root_element_can_be_the_target(write_xml):
    path = write_xml("<root><a>1</a><a>2</a></root>")

    assert extract_inner_markup(path, "root") == "<a>1</a><a>2</a>"


@pytest.mark.integration
def test_attributes_and_escaping_survive_serialization(write_xml):
    path = write_xml('<root><tag><item id="7" label="a &amp; b">x &lt; y</item></tag></root>')

    assert extract_inner_markup(path, "tag") == '<item id="7" label="a &amp; b">x &lt; y</item>'


@pytest.mark.integration
def test_prefixed_tags_match_by_qualified_name(write_xml):
    """Namespaces pass through; the name is matched as written."""
    path = write_xml('<root xmlns:ns="urn:test"><ns:tag><ns:v>1</ns:v></ns:tag></root>')

    assert extract_inner_markup(path, "ns:tag") == '<ns:v xmlns:ns="urn:test">1</ns:v>'
    assert extract_inner_markup(path, "tag") is None


@pytest.mark.integration
def test_inherited_namespaces_are_declared_on_fragment_children(write_xml):
    """Children keep the prefixed and default bindings declared on ancestors."""
    path = write_xml('<root xmlns:x="urn:x" xmlns="urn:d"><tag><x:a>1</x:a><b/></tag></root>')

    result = extract_inner_markup(path, "tag")

    assert result == '<x:a xmlns:x="urn:x">1</x:a><b xmlns="urn:d"/>'
    wrapper = minidom.parseString(f"<w>{result}</w>").documentElement
    assert [child.namespaceURI for child in wrapper.childNodes] == ["urn:x", "urn:d"]


@pytest.mark.integration
def test_default_namespace_alone_is_kept(write_xml):
    path = write_xml('<root xmlns="urn:d"><tag><b/></tag></root>')

    assert extract_inner_markup(path, "tag") == '<b xmlns="urn:d"/>'


@pytest.mark.integration
def test_local_declaration_is_not_duplicated(write_xml):
    path = write_xml('<root xmlns:x="urn:x"><tag><x:a xmlns:x="urn:other">1</x:a></tag></root>')

    assert extract_inner_markup(path, "tag") == '<x:a xmlns:x="urn:other">1</x:a>'


@pytest.mark.integration
def test_quotes_in_nested_text_are_written_literally(write_xml):
    path = write_xml('<root><tag><q lang="en">say "hi" &amp; go</q></tag></root>')

    assert extract_inner_markup(path, "tag") == '<q lang="en">say "hi" &amp; go</q>'


@pytest.mark.integration
@pytest.mark.parametrize(
    ("body", "expected"),
    [
        ("  a  <![CDATA[x]]>", "ax"),
        ("<![CDATA[x]]>  b  ", "xb"),
        ("  a  <i>x</i>  b  ", "a <i>x</i> b"),
    ],
)
def test_boundary_space_only_between_text_and_elements(write_xml, body, expected):
    path = write_xml(f"<root><tag>{body}</tag></root>")

    assert extract_inner_markup(path, "tag") == expected


@pytest.mark.integration
def test_length_estimate_skipped_when_debug_is_off(simple_xml, monkeypatch):
    """The estimate feeds only a debug event; it is not computed otherwise."""

    def fail(node):
        raise AssertionError("estimate computed with debug logging off")

    monkeypatch.setattr(element_module, "estimate_content_length", fail)

    assert extract_inner_markup(simple_xml, "tag") == "hello <b>world</b>"


@pytest.mark.integration
def test_extracted_event_reports_length_estimate(simple_xml, debug_logging, json_events):
    extract_inner_markup(simple_xml, "tag")

    events = [item for item in json_events() if item["event_type"] == "xml_tag_extracted"]
    assert events
    # "hello " + (2 * len("b") + 5 + "world")
    assert events[-1]["estimated_length"] == 6 + 12


@pytest.mark.integration
def test_non_ascii_text_round_trips(write_xml):
    path = write_xml("<root><tag>café <b>中文</b></tag></root>")

    assert extract_inner_markup(path, "tag") == "café <b>中文</b>"


@pytest.mark.integration
def test_nonexistent_file_raises_file_access_error(tmp_path):
    with pytest.raises(FileAccessError) as exc_info:
        extract_inner_markup(tmp_path / "nope.xml", "tag")

    assert exc_info.value.path == str(tmp_path / "nope.xml")


@pytest.mark.integration
def test_directory_path_raises_file_access_error(tmp_path):
    with pytest.raises(FileAccessError):
        extract_inner_markup(tmp_path, "tag")


@pytest.mark.integration
@pytest.mark.parametrize(
    ("file_path", "tag_name"),
    [("", "tag"), ("doc.xml", ""), (None, "tag"), ("doc.xml", None), ("doc.xml", "   ")],
)
def test_empty_arguments_raise_invalid_argument(file_path, tag_name):
    with pytest.raises(InvalidArgumentError):
        extract_inner_markup(file_path, tag_name)


@pytest.mark.integration
def test_malformed_xml_raises_parse_error_with_cause(write_xml, json_events):
    """Malformed input surfaces as XmlParseError wrapping the expat error."""
    path = write_xml("<root><tag>unclosed</root>")

    with pytest.raises(XmlParseError) as exc_info:
        extract_inner_markup(path, "tag")

    assert isinstance(exc_info.value, XmlProcessingError)
    assert exc_info.value.__cause__ is not None

    events = [item for item in json_events() if item["event_type"] == "xml_parse_failed"]
    assert events
    assert events[-1]["level"] == "error"
    assert events[-1]["error_type"] == "ExpatError"


@pytest.mark.integration
def test_repeated_extraction_is_identical(simple_xml):
    first = extract_inner_markup(simple_xml, "tag")
    second = extract_inner_markup(simple_xml, "tag")

    assert first == second == "hello <b>world</b>"


@pytest.mark.integration
def test_concurrent_extraction_does_not_leak_between_calls(write_xml):
    """Shared factories must not mix results across files."""
    paths = {
        index: write_xml(f"<root><tag>value-{index} <i>{index}</i></tag></root>", name=f"doc-{index}.xml")
        for index in range(16)
    }

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = dict(
            zip(paths, pool.map(lambda p: extract_inner_markup(p, "tag"), paths.values()))
        )

    for index, result in results.items():
        assert result == f"value-{index} <i>{index}</i>"


class ExplodingSerializer(MarkupSerializer):
    """Serializer that fails for one element name."""

    def __init__(self, failing_tag: str) -> None:
        super().__init__(SerializerSettings())
        self.failing_tag = failing_tag

    def serialize(self, node):
        if node.tagName == self.failing_tag:
            raise RuntimeError("serializer boom")
        return super().serialize(node)


@pytest.mark.integration
def test_failing_child_is_skipped_and_logged(write_xml, json_events):
    """One bad child must not abort the others."""
    path = write_xml("<root><tag><a>1</a><bad>2</bad><c>3</c></tag></root>")
    extractor = ElementExtractor(serializer=ExplodingSerializer("bad"))

    assert extractor.extract(path, "tag") == "<a>1</a><c>3</c>"

    events = [
        item for item in json_events() if item["event_type"] == "xml_child_serialization_failed"
    ]
    assert len(events) == 1
    assert events[0]["level"] == "warning"
    assert events[0]["child_index"] == 1
    assert events[0]["node_kind"] == "element"
    assert events[0]["error_type"] == "RuntimeError"
