"""Extractor package for pulling inner markup out of XML files."""

from extractor.element import (
    ElementExtractor,
    estimate_content_length,
    extract_inner_markup,
)

__all__ = ["ElementExtractor", "extract_inner_markup", "estimate_content_length"]
