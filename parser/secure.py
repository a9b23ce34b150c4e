"""Secure DOM parser factory hardened against XXE and DOCTYPE attacks."""

from __future__ import annotations

import copy
import os
import xml.dom
from typing import Callable
from xml.dom import minidom, xmlbuilder
from xml.parsers.expat import ExpatError

from defusedxml.expatbuilder import DefusedExpatBuilder, DefusedExpatBuilderNS

from core.atomic import AtomicReference
from core.config import ExtractorConfig
from core.errors import ConfigurationError, XmlParseError
from core.models import ParserSettings
from core.structured_logging import emit_json_event


_UNSUPPORTED_FEATURE_ERRORS = (xml.dom.NotSupportedErr, xml.dom.NotFoundErr)


def _emit_factory_event(event_type: str, *, level: str, **payload: object) -> None:
    """Emit one structured event tagged with the parser component."""
    emit_json_event(event_type, level=level, component="secure_parser", **payload)


def try_set_feature(feature: str, apply: Callable[[], object]) -> bool:
    """
    Apply one best-effort hardening toggle.

    Returns False (after a warning event) when the engine does not support
    the feature; any other failure propagates.
    """
    try:
        apply()
    except _UNSUPPORTED_FEATURE_ERRORS as exc:
        _emit_factory_event(
            "parser_feature_unsupported",
            level="warning",
            feature=feature,
            error_type=type(exc).__name__,
            error_message=str(exc),
            message="XML parser does not support this feature; security may be reduced",
        )
        return False
    return True


def _require_disallowed(name: str, value: str) -> None:
    """External access attributes only accept the empty (no protocol) value."""
    if value != ExtractorConfig.DISALLOWED_EXTERNAL_ACCESS:
        raise ConfigurationError(
            f"{name} must be empty (external access disallowed), got {value!r}"
        )


def _doctype_toggle(builder_class: type) -> Callable[[], object]:
    """Return an apply-callable that checks the builder can reject DOCTYPEs."""

    def apply() -> None:
        if not callable(getattr(builder_class, "defused_start_doctype_decl", None)):
            raise xml.dom.NotSupportedErr(
                f"{builder_class.__name__} cannot reject DOCTYPE declarations"
            )

    return apply


class SecureParserFactory:
    """
    Build hardened DOM builders from one frozen snapshot of parser options.

    Instances are immutable after configure(); every parse gets its own
    builder, so one factory can serve concurrent callers.
    """

    def __init__(
        self,
        settings: ParserSettings,
        options: xmlbuilder.Options,
        forbid_dtd: bool,
    ) -> None:
        self.settings = settings
        self._options = options
        self._forbid_dtd = forbid_dtd

    @property
    def forbid_dtd(self) -> bool:
        """True when DOCTYPE declarations are rejected outright."""
        return self._forbid_dtd

    @property
    def builder_class(self) -> type:
        """Defused builder class matching the namespace setting."""
        if self._options.namespaces:
            return DefusedExpatBuilderNS
        return DefusedExpatBuilder

    @classmethod
    def configure(cls, settings: ParserSettings | None = None) -> SecureParserFactory:
        """
        Create a factory with hardened settings.

        Raises:
            ConfigurationError: If a mandatory setting cannot be applied.
        """
        settings = settings or ParserSettings()
        dom_builder = xmlbuilder.DOMBuilder()

        try:
            dom_builder.setFeature(ExtractorConfig.FEATURE_NAMESPACES, settings.namespace_aware)
            dom_builder.setFeature(ExtractorConfig.FEATURE_ENTITIES, settings.expand_entity_references)
            dom_builder.setFeature(ExtractorConfig.FEATURE_VALIDATION, settings.validating)
        except _UNSUPPORTED_FEATURE_ERRORS as exc:
            raise ConfigurationError(f"Cannot configure secure XML parser: {exc}") from exc

        if settings.xinclude_aware:
            raise ConfigurationError("Cannot configure secure XML parser: XInclude is not supported")

        _require_disallowed("access_external_dtd", settings.access_external_dtd)
        _require_disallowed("access_external_schema", settings.access_external_schema)

        builder_class = DefusedExpatBuilderNS if settings.namespace_aware else DefusedExpatBuilder
        forbid_dtd = settings.disallow_doctype and try_set_feature(
            ExtractorConfig.FEATURE_DISALLOW_DOCTYPE,
            _doctype_toggle(builder_class),
        )
        try_set_feature(
            ExtractorConfig.FEATURE_EXTERNAL_GENERAL_ENTITIES,
            lambda: dom_builder.setFeature(
                ExtractorConfig.FEATURE_EXTERNAL_GENERAL_ENTITIES,
                settings.external_general_entities,
            ),
        )
        try_set_feature(
            ExtractorConfig.FEATURE_EXTERNAL_PARAMETER_ENTITIES,
            lambda: dom_builder.setFeature(
                ExtractorConfig.FEATURE_EXTERNAL_PARAMETER_ENTITIES,
                settings.external_parameter_entities,
            ),
        )

        # Same snapshot DOMBuilder.parse() takes before handing options to expat.
        options = copy.copy(dom_builder._options)
        factory = cls(settings, options, forbid_dtd)
        _emit_factory_event(
            "parser_factory_configured",
            level="debug",
            namespace_aware=bool(options.namespaces),
            forbid_dtd=forbid_dtd,
        )
        return factory

    def new_builder(self) -> DefusedExpatBuilder:
        """Return a fresh single-use builder; entity declarations and external refs always fail."""
        return self.builder_class(
            self._options,
            forbid_dtd=self._forbid_dtd,
            forbid_entities=True,
            forbid_external=True,
        )

    def parse_file(self, path: str | os.PathLike[str]) -> minidom.Document:
        """
        Parse one XML file into a new document.

        Raises:
            XmlParseError: On malformed XML, forbidden DTD/entity/external
                reference, or I/O failure.
        """
        builder = self.new_builder()
        try:
            with open(path, "rb") as handle:
                return builder.parseFile(handle)
        except (ExpatError, ValueError, OSError) as exc:
            raise XmlParseError(f"Failed to parse XML file: {os.fspath(path)}") from exc


_FACTORY_CACHE: AtomicReference[SecureParserFactory] = AtomicReference()


def get_secure_parser_factory() -> SecureParserFactory:
    """Return the process-wide parser factory, configuring it on first use."""
    factory = _FACTORY_CACHE.get()
    if factory is None:
        factory = _FACTORY_CACHE.publish(SecureParserFactory.configure())
    return factory


def reset_secure_parser_factory() -> None:
    """Forget the process-wide parser factory (tests only)."""
    _FACTORY_CACHE.clear()
