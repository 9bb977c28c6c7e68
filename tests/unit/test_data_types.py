"""
Tests for variable types, media payloads and coercion.
"""

from io import BytesIO

import pytest
from PIL import Image

from agentflow.core.data_types import (
    CoercionOutcome,
    MediaBlob,
    VariableType,
    coerce_value,
    decode_value,
    default_value_for,
    encode_value,
    infer_type_from_port,
    infer_type_from_value,
    stringify,
)


def png_bytes(width=4, height=3):
    buffer = BytesIO()
    Image.new("RGB", (width, height), "red").save(buffer, format="PNG")
    return buffer.getvalue()


class TestMediaBlob:

    def test_sniffs_image_with_pillow(self):
        blob = MediaBlob.from_bytes(png_bytes(4, 3))
        assert blob.mime_type == "image/png"
        assert blob.metadata == {"width": 4, "height": 3}
        assert blob.media_type is VariableType.IMAGE

    def test_mime_from_filename(self):
        blob = MediaBlob.from_bytes(b"ID3...", filename="song.mp3")
        assert blob.mime_type == "audio/mpeg"
        assert blob.media_type is VariableType.AUDIO

    def test_unknown_bytes(self):
        blob = MediaBlob.from_bytes(b"\x00\x01\x02")
        assert blob.mime_type == "application/octet-stream"
        assert blob.media_type is VariableType.DOCUMENT

    def test_from_file(self, tmp_path):
        path = tmp_path / "pixel.png"
        path.write_bytes(png_bytes(1, 1))
        blob = MediaBlob.from_file(path)
        assert blob.filename == "pixel.png"
        assert blob.to_pil().size == (1, 1)

    def test_encode_decode_nested(self):
        blob = MediaBlob(b"\xff\x00", "image/png", "x.png", {"source_url": "http://x"})
        encoded = encode_value({"images": [blob], "n": 1})
        assert encoded["images"][0]["__media__"] is True
        decoded = decode_value(encoded)
        assert decoded["images"][0] == blob
        assert decoded["n"] == 1


class TestCoercion:

    @pytest.mark.parametrize("value, target, expected", [
        (5, VariableType.STRING, "5"),
        ({"a": 1}, VariableType.LARGE_TEXT, '{"a": 1}'),
        ("3", VariableType.NUMBER, 3),
        ("2.5", VariableType.NUMBER, 2.5),
        ("No", VariableType.BOOLEAN, False),
        (1, VariableType.BOOLEAN, True),
        ("[1, 2]", VariableType.ARRAY, [1, 2]),
        ((1, 2), VariableType.ARRAY, [1, 2]),
        ('{"k": "v"}', VariableType.OBJECT, {"k": "v"}),
        (None, VariableType.IMAGE, None),
    ])
    def test_converted(self, value, target, expected):
        result = coerce_value(value, target)
        assert result.outcome is CoercionOutcome.CONVERTED
        assert result.value == expected

    @pytest.mark.parametrize("value, target", [
        ("many", VariableType.NUMBER),
        ("nan", VariableType.NUMBER),
        (True, VariableType.NUMBER),
        ("maybe", VariableType.BOOLEAN),
        ("[1, 2]", VariableType.OBJECT),
        ("{}", VariableType.ARRAY),
    ])
    def test_stringified(self, value, target):
        result = coerce_value(value, target)
        assert result.outcome is CoercionOutcome.STRINGIFIED
        assert isinstance(result.value, str)

    def test_bytes_into_media_type_become_blob(self):
        result = coerce_value(png_bytes(), VariableType.IMAGE)
        assert result.ok
        assert isinstance(result.value, MediaBlob)

    def test_text_into_media_type_fails(self):
        assert coerce_value("picture.png", VariableType.IMAGE).outcome is CoercionOutcome.FAILED

    def test_media_into_text_type_is_stringified(self):
        blob = MediaBlob(b"abc", "image/png")
        assert coerce_value(blob, VariableType.STRING).outcome is CoercionOutcome.STRINGIFIED


class TestInference:

    def test_from_port_name(self):
        assert infer_type_from_port("images") is VariableType.IMAGE
        assert infer_type_from_port("audioOut") is VariableType.AUDIO
        assert infer_type_from_port("response") is VariableType.STRING

    def test_from_value(self):
        assert infer_type_from_value(True) is VariableType.BOOLEAN
        assert infer_type_from_value(3) is VariableType.NUMBER
        assert infer_type_from_value([1]) is VariableType.ARRAY
        assert infer_type_from_value([MediaBlob(b"", "audio/wav")]) is VariableType.AUDIO
        assert infer_type_from_value(None, VariableType.VIDEO) is VariableType.VIDEO

    def test_defaults(self):
        assert default_value_for(VariableType.LARGE_TEXT) == ""
        assert default_value_for(VariableType.ARRAY) == []
        assert default_value_for(VariableType.DOCUMENT) is None

    def test_stringify(self):
        assert stringify(None) == ""
        assert stringify(False) == "false"
        assert stringify(["é"]) == '["é"]'
        assert stringify(b"1234") == "<4 bytes>"
