"""
Data Types - Variable type tags, media payloads and value coercion.

This module defines the values that flow through node ports and variables:
- VariableType: Closed set of variable type tags
- MediaBlob: Opaque binary payload for image/audio/video/document values
- coerce_value: Total coercion from a produced value into a variable type
"""

from __future__ import annotations

import base64
import json
import mimetypes
from dataclasses import dataclass, field
from enum import Enum, auto
from io import BytesIO
from pathlib import Path
from typing import Any, TypeAlias

from PIL import Image, UnidentifiedImageError


class VariableType(Enum):
    """
    Type tags a global variable can carry.

    The binary tags (image, audio, video, document) hold MediaBlob payloads,
    never text.
    """
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    DOCUMENT = "document"
    LARGE_TEXT = "largeText"

    @property
    def is_binary(self) -> bool:
        return self in _BINARY_TYPES

    @property
    def is_textual(self) -> bool:
        return self in (VariableType.STRING, VariableType.LARGE_TEXT)


_BINARY_TYPES = frozenset({
    VariableType.IMAGE,
    VariableType.AUDIO,
    VariableType.VIDEO,
    VariableType.DOCUMENT,
})


# Type alias for configuration values
ParameterValue: TypeAlias = str | int | float | bool | list | dict | None


@dataclass
class MediaBlob:
    """
    Binary payload stored in a media-typed variable.

    Attributes:
        data: Raw bytes
        mime_type: MIME type, e.g. "image/png"
        filename: Original filename, if known
        metadata: Free-form extra information (dimensions, source URL...)
    """
    data: bytes
    mime_type: str = "application/octet-stream"
    filename: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        mime_type: str | None = None,
        filename: str | None = None,
    ) -> MediaBlob:
        """
        Wrap raw bytes, sniffing image payloads with Pillow.

        When no MIME type is given it is guessed from the filename, then
        from the image header, then falls back to octet-stream.
        """
        data = bytes(data)
        metadata: dict[str, Any] = {}
        if mime_type is None and filename:
            mime_type = mimetypes.guess_type(filename)[0]

        if mime_type is None or mime_type.startswith("image/"):
            try:
                with Image.open(BytesIO(data)) as img:
                    metadata["width"], metadata["height"] = img.size
                    if mime_type is None and img.format:
                        mime_type = Image.MIME.get(img.format)
            except (UnidentifiedImageError, OSError):
                pass

        return cls(
            data=data,
            mime_type=mime_type or "application/octet-stream",
            filename=filename,
            metadata=metadata,
        )

    @classmethod
    def from_file(cls, path: str | Path) -> MediaBlob:
        """Load a file from disk."""
        path = Path(path)
        return cls.from_bytes(path.read_bytes(), filename=path.name)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def media_type(self) -> VariableType:
        """Variable type matching this payload's MIME type."""
        major = self.mime_type.split("/", 1)[0]
        if major == "image":
            return VariableType.IMAGE
        if major == "audio":
            return VariableType.AUDIO
        if major == "video":
            return VariableType.VIDEO
        return VariableType.DOCUMENT

    def to_pil(self) -> Image.Image:
        """Decode an image payload."""
        img = Image.open(BytesIO(self.data))
        img.load()
        return img

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        return {
            "__media__": True,
            "data": base64.b64encode(self.data).decode("ascii"),
            "mime_type": self.mime_type,
            "filename": self.filename,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MediaBlob:
        """Create from a dictionary produced by to_dict."""
        return cls(
            data=base64.b64decode(data["data"]),
            mime_type=data.get("mime_type", "application/octet-stream"),
            filename=data.get("filename"),
            metadata=data.get("metadata", {}),
        )

    def __repr__(self) -> str:
        return f"MediaBlob({self.mime_type}, {self.size} bytes, filename={self.filename!r})"


def is_media_value(value: Any) -> bool:
    """True for a MediaBlob or a non-empty list of MediaBlobs."""
    if isinstance(value, MediaBlob):
        return True
    return (
        isinstance(value, (list, tuple))
        and len(value) > 0
        and all(isinstance(v, MediaBlob) for v in value)
    )


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------

class CoercionOutcome(Enum):
    """How a produced value ended up in its target type."""
    CONVERTED = auto()    # Value now matches the target type
    STRINGIFIED = auto()  # Value only fits as text
    FAILED = auto()       # Value cannot be stored in the target type


@dataclass
class Coercion:
    """Result of coerce_value."""
    outcome: CoercionOutcome
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.outcome is CoercionOutcome.CONVERTED


_TRUE_STRINGS = {"true", "1", "yes"}
_FALSE_STRINGS = {"false", "0", "no"}


def stringify(value: Any) -> str:
    """Render any produced value as text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, default=_json_default)
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    return str(value)


def _json_default(value: Any) -> Any:
    if isinstance(value, MediaBlob):
        return repr(value)
    return str(value)


def _parse_number(text: str) -> int | float | None:
    text = text.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    # NaN and infinities are not meaningful workflow numbers
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def _parse_json(text: str, expected: type) -> Any:
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return parsed if isinstance(parsed, expected) else None


def coerce_value(value: Any, target: VariableType) -> Coercion:
    """
    Coerce a produced value into a variable type.

    Total over all (value, type) pairs: the result is CONVERTED when the
    value fits the type (possibly after parsing), STRINGIFIED when it only
    fits as text, and FAILED when the target is a binary media type and the
    value carries no compatible payload. None is a valid "unset" value for
    every type.
    """
    if value is None:
        return Coercion(CoercionOutcome.CONVERTED, None)

    if target.is_binary:
        if is_media_value(value):
            return Coercion(CoercionOutcome.CONVERTED, list(value) if isinstance(value, tuple) else value)
        if isinstance(value, (bytes, bytearray)):
            return Coercion(CoercionOutcome.CONVERTED, MediaBlob.from_bytes(value))
        return Coercion(CoercionOutcome.FAILED, value)

    if isinstance(value, (bytes, bytearray)) or is_media_value(value):
        # Only a placeholder description fits outside a media variable
        return Coercion(CoercionOutcome.STRINGIFIED, stringify(value))

    if target.is_textual:
        return Coercion(CoercionOutcome.CONVERTED, stringify(value))

    if target is VariableType.NUMBER:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return Coercion(CoercionOutcome.CONVERTED, value)
        if isinstance(value, str):
            number = _parse_number(value)
            if number is not None:
                return Coercion(CoercionOutcome.CONVERTED, number)

    elif target is VariableType.BOOLEAN:
        if isinstance(value, bool):
            return Coercion(CoercionOutcome.CONVERTED, value)
        if isinstance(value, int) and value in (0, 1):
            return Coercion(CoercionOutcome.CONVERTED, bool(value))
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_STRINGS:
                return Coercion(CoercionOutcome.CONVERTED, True)
            if lowered in _FALSE_STRINGS:
                return Coercion(CoercionOutcome.CONVERTED, False)

    elif target is VariableType.OBJECT:
        if isinstance(value, dict):
            return Coercion(CoercionOutcome.CONVERTED, value)
        if isinstance(value, str):
            parsed = _parse_json(value, dict)
            if parsed is not None:
                return Coercion(CoercionOutcome.CONVERTED, parsed)

    elif target is VariableType.ARRAY:
        if isinstance(value, (list, tuple)):
            return Coercion(CoercionOutcome.CONVERTED, list(value))
        if isinstance(value, str):
            parsed = _parse_json(value, list)
            if parsed is not None:
                return Coercion(CoercionOutcome.CONVERTED, parsed)

    return Coercion(CoercionOutcome.STRINGIFIED, stringify(value))


def infer_type_from_port(port_name: str) -> VariableType:
    """Guess a variable type from an output port name."""
    lowered = port_name.lower()
    for needle, vtype in (
        ("image", VariableType.IMAGE),
        ("audio", VariableType.AUDIO),
        ("video", VariableType.VIDEO),
        ("document", VariableType.DOCUMENT),
    ):
        if needle in lowered:
            return vtype
    return VariableType.STRING


def infer_type_from_value(value: Any, fallback: VariableType = VariableType.STRING) -> VariableType:
    """Guess a variable type from a produced value."""
    if value is None:
        return fallback
    if isinstance(value, MediaBlob):
        return value.media_type
    if is_media_value(value):
        return value[0].media_type
    if isinstance(value, bool):
        return VariableType.BOOLEAN
    if isinstance(value, (int, float)):
        return VariableType.NUMBER
    if isinstance(value, dict):
        return VariableType.OBJECT
    if isinstance(value, (list, tuple)):
        return VariableType.ARRAY
    return VariableType.STRING


def default_value_for(vtype: VariableType) -> Any:
    """Initial value for a freshly created variable."""
    if vtype.is_textual:
        return ""
    if vtype is VariableType.NUMBER:
        return 0
    if vtype is VariableType.BOOLEAN:
        return False
    if vtype is VariableType.OBJECT:
        return {}
    if vtype is VariableType.ARRAY:
        return []
    return None


def encode_value(value: Any) -> Any:
    """Make a variable value JSON-safe (media payloads become dicts)."""
    if isinstance(value, MediaBlob):
        return value.to_dict()
    if isinstance(value, list):
        return [encode_value(v) for v in value]
    if isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    return value


def decode_value(value: Any) -> Any:
    """Inverse of encode_value."""
    if isinstance(value, dict):
        if value.get("__media__"):
            return MediaBlob.from_dict(value)
        return {k: decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    return value
