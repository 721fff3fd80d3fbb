"""Merge global definitions with client overrides into an effective schema.

Global definitions keep their order; override-only ("custom") definitions are
appended in override-map order. Disabled definitions stay in the result so the
validator can still see them; only prompt rendering skips them. Nothing here
mutates its inputs.
"""
import logging
from collections.abc import Mapping, Sequence
from typing import Optional, TypeVar

from .models import (
    AnalysisConfig,
    ClientConfig,
    EnabledToggle,
    FieldDefinition,
    FieldOverride,
    TagDefinition,
    TagOverride,
)

logger = logging.getLogger(__name__)

D = TypeVar("D", FieldDefinition, TagDefinition)


def _merge(
    definitions: Sequence[D],
    overrides: Optional[Mapping[str, object]],
    identity: str,
) -> list[D]:
    if not overrides:
        return list(definitions)

    merged: list[D] = []
    known: set[str] = set()
    for definition in definitions:
        ident = getattr(definition, identity)
        known.add(ident)
        override = overrides.get(ident)
        if override is None:
            merged.append(definition)
        elif isinstance(override, EnabledToggle):
            merged.append(definition.model_copy(update={"enabled": override.enabled}))
        else:
            merged.append(override)

    for ident, override in overrides.items():
        if ident in known:
            continue
        if isinstance(override, EnabledToggle):
            # A toggle for a key the global config no longer has
            logger.debug(f"[SCHEMA] Ignoring toggle for unknown {identity} '{ident}'")
            continue
        merged.append(override)

    return merged


def resolve_field_definitions(
    global_fields: Sequence[FieldDefinition],
    overrides: Optional[Mapping[str, FieldOverride]] = None,
) -> list[FieldDefinition]:
    """Apply sparse field overrides to the global field list."""
    return _merge(global_fields, overrides, "key")


def resolve_tag_definitions(
    global_tags: Sequence[TagDefinition],
    overrides: Optional[Mapping[str, TagOverride]] = None,
) -> list[TagDefinition]:
    """Apply sparse tag overrides to the global tag list."""
    return _merge(global_tags, overrides, "id")


def resolve_config(config: AnalysisConfig, client: Optional[ClientConfig] = None) -> AnalysisConfig:
    """Return the effective configuration for one client.

    Args:
        config: Global configuration
        client: Optional client document with sparse overrides

    Returns:
        A new AnalysisConfig; ``config`` is left untouched
    """
    if client is None:
        return config

    update = {
        "field_definitions": resolve_field_definitions(config.field_definitions, client.field_overrides),
        "tag_definitions": resolve_tag_definitions(config.tag_definitions, client.tag_overrides),
    }
    if client.model:
        update["model"] = client.model

    return config.model_copy(update=update)


def enabled_fields(fields: Sequence[FieldDefinition]) -> list[FieldDefinition]:
    return [f for f in fields if f.enabled]


def enabled_tags(tags: Sequence[TagDefinition]) -> list[TagDefinition]:
    return [t for t in tags if t.enabled]
