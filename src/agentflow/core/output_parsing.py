"""
Output Parsing - Extract part of a node output before it is stored.

Modes:
- default: value passes through unchanged
- delimiter: text between "<start>|<end>" markers
- field: a field of a structured value, or a "field": value pattern in text
- regex: first capture group (or whole match) of the first match
- sequence: 1-based line number
"""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any

from agentflow.core.data_types import stringify


class ParseMode(Enum):
    DEFAULT = "default"
    DELIMITER = "delimiter"
    FIELD = "field"
    REGEX = "regex"
    SEQUENCE = "sequence"


def parse_output(value: Any, mode: ParseMode | str, config: Any = "") -> Any:
    """Apply an output parse transform to a produced value."""
    mode = ParseMode(mode)
    if mode is ParseMode.DEFAULT:
        return value
    if mode is ParseMode.DELIMITER:
        return parse_delimiter(stringify(value), str(config))
    if mode is ParseMode.FIELD:
        return parse_field(value, str(config))
    if mode is ParseMode.REGEX:
        return parse_regex(stringify(value), str(config))
    return parse_sequence(stringify(value), config)


def parse_delimiter(text: str, config: str) -> str:
    """
    Return the text strictly between the first start marker and the next
    end marker after it.

    A missing end marker returns everything after the start marker; a
    missing start marker returns the text unchanged.
    """
    start, sep, end = config.partition("|")
    if not sep or not start:
        return text
    start_index = text.find(start)
    if start_index == -1:
        return text
    content_start = start_index + len(start)
    if not end:
        return text[content_start:]
    end_index = text.find(end, content_start)
    if end_index == -1:
        return text[content_start:]
    return text[content_start:end_index]


def parse_field(value: Any, field: str) -> Any:
    """
    Extract a field from a structured value.

    Dicts (or text that parses as a JSON object) are indexed directly.
    Otherwise the first "field": value pattern in the text is used.
    Returns an empty string when the field cannot be found.
    """
    structured = value
    if isinstance(value, str):
        try:
            structured = json.loads(value)
        except json.JSONDecodeError:
            structured = None
    if isinstance(structured, dict):
        if field in structured:
            return structured[field]
        return ""

    text = stringify(value)
    pattern = re.compile(
        r'"' + re.escape(field) + r'"\s*:\s*(?:"((?:[^"\\]|\\.)*)"|([^,}\]\s][^,}\]\n]*))'
    )
    match = pattern.search(text)
    if not match:
        return ""
    if match.group(1) is not None:
        return match.group(1)
    return match.group(2).strip()


def parse_regex(text: str, pattern: str) -> str:
    """First capture group of the first match, or the whole match."""
    try:
        match = re.search(pattern, text)
    except re.error as e:
        raise ValueError(f"Invalid output parse regex {pattern!r}: {e}") from e
    if not match:
        return ""
    if match.re.groups:
        return match.group(1) or ""
    return match.group(0)


def parse_sequence(text: str, line: Any) -> str:
    """Return the 1-based line, or an empty string when out of range."""
    try:
        index = int(line)
    except (TypeError, ValueError):
        return ""
    lines = text.split("\n")
    if 1 <= index <= len(lines):
        return lines[index - 1]
    return ""
