"""
Template Resolution - Substitute {{ references }} in configuration text.

A reference is a name followed by an optional path of ".key" and "[index]"
steps, e.g. {{ prompt }}, {{ Chat1.choices[0].text }}. References that do
not resolve are left in the text unchanged.
"""

from __future__ import annotations

import json
import re
from typing import Any, Mapping, Protocol

from agentflow.core.data_types import MediaBlob


TEMPLATE_PATTERN = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")
_PATH_STEP = re.compile(r"\.?([^.\[\]]+)|\[(\d+)\]")

MISSING = object()


class TemplateResolver(Protocol):
    """Pluggable template renderer."""

    def render(self, template: str, context: Mapping[str, Any]) -> str:
        ...


def lookup_path(context: Mapping[str, Any], path: str) -> Any:
    """Follow a dotted/indexed path; returns MISSING when it breaks."""
    current: Any = context
    position = 0
    for match in _PATH_STEP.finditer(path):
        if match.start() != position:
            return MISSING
        position = match.end()
        key, index = match.group(1), match.group(2)
        if index is not None:
            if not isinstance(current, (list, tuple)) or int(index) >= len(current):
                return MISSING
            current = current[int(index)]
        elif isinstance(current, Mapping) and key in current:
            current = current[key]
        elif isinstance(current, (list, tuple)) and key.isdigit() and int(key) < len(current):
            current = current[int(key)]
        else:
            return MISSING
    if position != len(path):
        return MISSING
    return current


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=repr)
    if isinstance(value, MediaBlob):
        return value.filename or repr(value)
    if value is None:
        return ""
    return str(value)


class DoubleBraceResolver:
    """Default resolver for {{ name.path }} references."""

    def render(self, template: str, context: Mapping[str, Any]) -> str:
        def replace(match: re.Match) -> str:
            value = lookup_path(context, match.group(1))
            if value is MISSING:
                return match.group(0)
            return _to_text(value)

        return TEMPLATE_PATTERN.sub(replace, template)

    def render_value(self, value: Any, context: Mapping[str, Any]) -> Any:
        """Render strings nested anywhere inside dicts and lists."""
        if isinstance(value, str):
            return self.render(value, context) if "{{" in value else value
        if isinstance(value, dict):
            return {k: self.render_value(v, context) for k, v in value.items()}
        if isinstance(value, list):
            return [self.render_value(v, context) for v in value]
        return value


def find_references(template: str) -> list[str]:
    """Names referenced by a template, in order of appearance."""
    return [match.group(1) for match in TEMPLATE_PATTERN.finditer(template)]
