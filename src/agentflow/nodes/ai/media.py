"""
Media Nodes - AI image and audio generation.

Image nodes output a list of MediaBlob payloads; audio nodes convert
between speech and text.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from agentflow.core.data_types import MediaBlob, VariableType, stringify
from agentflow.core.node_types import (
    NodeType,
    NodeCategory,
    InputDefinition,
    OutputDefinition,
    ParameterDefinition,
    NodeRegistry,
    register_node,
    required_input,
)
from agentflow.nodes.ai.chat import with_timeout
from agentflow.providers.base import ImageRequest, SpeechRequest, TranscriptionRequest


IMAGE_SIZES = [
    ("1024x1024", "1024 × 1024"),
    ("1792x1024", "1792 × 1024 (Landscape)"),
    ("1024x1792", "1024 × 1792 (Portrait)"),
    ("512x512", "512 × 512"),
    ("256x256", "256 × 256"),
]


def as_blob(value: Any, port: str) -> MediaBlob:
    """
    Accept a media payload in the shapes upstream nodes produce.

    Lists yield their first element; strings are read as file paths.
    """
    if isinstance(value, (list, tuple)) and value:
        value = value[0]
    if isinstance(value, MediaBlob):
        return value
    if isinstance(value, (bytes, bytearray)):
        return MediaBlob.from_bytes(value)
    if isinstance(value, str) and value and Path(value).is_file():
        return MediaBlob.from_file(value)
    raise ValueError(f"Input '{port}' is not a media payload")


def _image_parameters() -> list[ParameterDefinition]:
    return [
        ParameterDefinition.text(name="model", label="Model", default="dall-e-3"),
        ParameterDefinition.enum(name="size", label="Size", options=IMAGE_SIZES, default="1024x1024"),
        ParameterDefinition.integer(name="count", label="Images", default=1, min_value=1, max_value=10),
        ParameterDefinition.integer(name="timeout", label="Timeout (s)", default=0, min_value=0),
    ]


def _image_outputs() -> list[OutputDefinition]:
    return [
        OutputDefinition(name="images", label="Images", value_type=VariableType.IMAGE),
        OutputDefinition(name="prompt", label="Revised Prompt", value_type=VariableType.STRING),
    ]


async def image_generation_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """Execute text-to-image generation."""
    client = context.get_ai_client()
    prompt = context.render(stringify(inputs.get("prompt")))
    if not prompt.strip():
        raise ValueError("Prompt is empty")

    request = ImageRequest(
        prompt=prompt,
        model=parameters.get("model") or None,
        size=parameters.get("size", "1024x1024"),
        quality=parameters.get("quality", "standard"),
        count=int(parameters.get("count", 1)),
    )
    result = await with_timeout(client.generate_image(request), parameters)
    if not result.images:
        raise ValueError("No images generated")
    return {"images": result.images, "prompt": result.revised_prompt or prompt}


IMAGE_GENERATION_NODE = NodeType(
    id="ai-image-generation",
    name="Image Generation",
    description="Generate images from a text prompt",
    category=NodeCategory.AI,
    inputs=[
        InputDefinition(name="prompt", label="Prompt"),
    ],
    outputs=_image_outputs(),
    parameters=[
        ParameterDefinition.text(name="prompt", label="Prompt", default="", multiline=True),
        *_image_parameters(),
        ParameterDefinition.enum(
            name="quality",
            label="Quality",
            options=[("standard", "Standard"), ("hd", "HD")],
            default="standard",
        ),
    ],
    executor=image_generation_executor,
    validator=required_input("prompt"),
)


async def image_edit_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """Edit an image according to a prompt, optionally within a mask."""
    client = context.get_ai_client()
    image = as_blob(inputs.get("image"), "image")
    mask = as_blob(inputs["mask"], "mask") if inputs.get("mask") else None
    prompt = context.render(stringify(inputs.get("prompt")))
    if not prompt.strip():
        raise ValueError("Prompt is empty")

    request = ImageRequest(
        prompt=prompt,
        model=parameters.get("model") or None,
        size=parameters.get("size", "1024x1024"),
        count=int(parameters.get("count", 1)),
        image=image,
        mask=mask,
    )
    result = await with_timeout(client.edit_image(request), parameters)
    if not result.images:
        raise ValueError("No images generated")
    return {"images": result.images, "prompt": result.revised_prompt or prompt}


IMAGE_EDIT_NODE = NodeType(
    id="ai-image-edit",
    name="Image Edit",
    description="Edit an image with a text instruction",
    category=NodeCategory.AI,
    inputs=[
        InputDefinition(name="image", label="Image"),
        InputDefinition(name="mask", label="Mask", description="Transparent areas are edited"),
        InputDefinition(name="prompt", label="Prompt"),
    ],
    outputs=_image_outputs(),
    parameters=[
        ParameterDefinition.text(name="prompt", label="Prompt", default="", multiline=True),
        *_image_parameters(),
    ],
    executor=image_edit_executor,
    validator=required_input("prompt"),
)


async def image_variation_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    client = context.get_ai_client()
    request = ImageRequest(
        model=parameters.get("model") or None,
        size=parameters.get("size", "1024x1024"),
        count=int(parameters.get("count", 1)),
        image=as_blob(inputs.get("image"), "image"),
    )
    result = await with_timeout(client.create_image_variation(request), parameters)
    if not result.images:
        raise ValueError("No images generated")
    return {"images": result.images}


IMAGE_VARIATION_NODE = NodeType(
    id="ai-image-variation",
    name="Image Variation",
    description="Create variations of an existing image",
    category=NodeCategory.AI,
    inputs=[
        InputDefinition(name="image", label="Image"),
    ],
    outputs=[
        OutputDefinition(name="images", label="Images", value_type=VariableType.IMAGE),
    ],
    parameters=_image_parameters(),
    executor=image_variation_executor,
)


async def transcription_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """Transcribe an audio payload to text."""
    client = context.get_ai_client()
    request = TranscriptionRequest(
        audio=as_blob(inputs.get("audio"), "audio"),
        prompt=stringify(inputs.get("prompt")),
        model=parameters.get("model") or None,
        language=parameters.get("language") or None,
    )
    result = await with_timeout(client.transcribe_audio(request), parameters)
    return {"text": result.text, "language": result.language or ""}


AUDIO_TRANSCRIPTION_NODE = NodeType(
    id="ai-audio-transcription",
    name="Audio Transcription",
    description="Convert speech to text",
    category=NodeCategory.AI,
    inputs=[
        InputDefinition(name="audio", label="Audio"),
        InputDefinition(name="prompt", label="Prompt", description="Hint for spelling and style"),
    ],
    outputs=[
        OutputDefinition(name="text", label="Text", value_type=VariableType.LARGE_TEXT),
        OutputDefinition(name="language", label="Language", value_type=VariableType.STRING),
    ],
    parameters=[
        ParameterDefinition.text(name="model", label="Model", default="whisper-1"),
        ParameterDefinition.text(name="language", label="Language", default=""),
        ParameterDefinition.integer(name="timeout", label="Timeout (s)", default=0, min_value=0),
    ],
    executor=transcription_executor,
)


async def text_to_speech_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """Synthesize speech from text."""
    client = context.get_ai_client()
    text = context.render(stringify(inputs.get("text")))
    if not text.strip():
        raise ValueError("Text is empty")
    request = SpeechRequest(
        text=text,
        model=parameters.get("model") or None,
        voice=parameters.get("voice", "alloy"),
        speed=float(parameters.get("speed", 1.0)),
        response_format=parameters.get("format", "mp3"),
    )
    audio = await with_timeout(client.text_to_speech(request), parameters)
    return {"audio": audio, "text": text}


TEXT_TO_SPEECH_NODE = NodeType(
    id="ai-text-to-speech",
    name="Text to Speech",
    description="Convert text to spoken audio",
    category=NodeCategory.AI,
    inputs=[
        InputDefinition(name="text", label="Text"),
    ],
    outputs=[
        OutputDefinition(name="audio", label="Audio", value_type=VariableType.AUDIO),
        OutputDefinition(name="text", label="Text", value_type=VariableType.STRING),
    ],
    parameters=[
        ParameterDefinition.text(name="text", label="Text", default="", multiline=True),
        ParameterDefinition.text(name="model", label="Model", default="tts-1"),
        ParameterDefinition.enum(
            name="voice",
            label="Voice",
            options=[(v, v.capitalize()) for v in ("alloy", "echo", "fable", "onyx", "nova", "shimmer")],
            default="alloy",
        ),
        ParameterDefinition.float_param(name="speed", label="Speed", default=1.0, min_value=0.25, max_value=4.0),
        ParameterDefinition.enum(
            name="format",
            label="Format",
            options=[("mp3", "MP3"), ("wav", "WAV"), ("opus", "Opus"), ("flac", "FLAC")],
            default="mp3",
        ),
        ParameterDefinition.integer(name="timeout", label="Timeout (s)", default=0, min_value=0),
    ],
    executor=text_to_speech_executor,
    validator=required_input("text"),
)


def register_media_nodes(registry: NodeRegistry | None = None) -> None:
    """Register all AI media node types."""
    for node_type in (
        IMAGE_GENERATION_NODE,
        IMAGE_EDIT_NODE,
        IMAGE_VARIATION_NODE,
        AUDIO_TRANSCRIPTION_NODE,
        TEXT_TO_SPEECH_NODE,
    ):
        register_node(node_type, registry)
