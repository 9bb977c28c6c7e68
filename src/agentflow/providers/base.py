"""
Provider Base - The AI client capability consumed by AI nodes.

This module provides the interface AI-typed nodes call through:
- Request/result dataclasses for chat, image and audio operations
- AIClient: Abstract base class for client implementations
- ProviderConfig: Per-provider configuration
- ProviderError hierarchy

The wire protocol of any concrete service is left to implementations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from agentflow.core.data_types import MediaBlob


@dataclass
class ChatMessage:
    """A single message in a conversation."""
    role: str  # "system", "user" or "assistant"
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ChatRequest:
    """Request for a chat completion."""
    messages: list[ChatMessage]
    model: str | None = None
    temperature: float = 0.7
    max_tokens: int = 2048
    extra_params: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChatResult:
    """Result of a chat completion."""
    content: str
    model: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class ImageRequest:
    """Request for image generation, editing or variation."""
    prompt: str = ""
    model: str | None = None
    size: str = "1024x1024"
    quality: str = "standard"
    count: int = 1
    image: MediaBlob | None = None
    mask: MediaBlob | None = None
    extra_params: dict[str, Any] = field(default_factory=dict)


@dataclass
class ImageResult:
    """Images produced by an image operation."""
    images: list[MediaBlob]
    revised_prompt: str | None = None


@dataclass
class TranscriptionRequest:
    """Request to transcribe audio."""
    audio: MediaBlob
    prompt: str = ""
    model: str | None = None
    language: str | None = None


@dataclass
class TranscriptionResult:
    text: str
    language: str | None = None


@dataclass
class SpeechRequest:
    """Request to synthesize speech."""
    text: str
    model: str | None = None
    voice: str = "alloy"
    speed: float = 1.0
    response_format: str = "mp3"


@dataclass
class ProviderConfig:
    """Configuration for a provider."""
    api_key: str = ""
    enabled: bool = True
    base_url: str | None = None  # Override default URL
    default_model: str | None = None
    timeout: float = 30.0  # Seconds
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "api_key": self.api_key,
            "enabled": self.enabled,
            "base_url": self.base_url,
            "default_model": self.default_model,
            "timeout": self.timeout,
            "extra": self.extra,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProviderConfig:
        return cls(
            api_key=data.get("api_key", ""),
            enabled=data.get("enabled", True),
            base_url=data.get("base_url"),
            default_model=data.get("default_model"),
            timeout=data.get("timeout", 30.0),
            extra=data.get("extra", {}),
        )


class ProviderError(Exception):
    """Base exception for provider errors."""
    pass


class AuthenticationError(ProviderError):
    """API key invalid or missing."""
    pass


class RateLimitError(ProviderError):
    """Rate limit exceeded."""
    retry_after: float | None = None


class GenerationError(ProviderError):
    """Error during generation."""
    pass


class AIClient(ABC):
    """
    Abstract base class for AI clients.

    Each implementation talks to one service. AI nodes only see this
    interface, obtained from the execution context.
    """

    # Provider identification
    id: str = ""
    name: str = ""

    def __init__(self, config: ProviderConfig | None = None):
        self.config = config or ProviderConfig()

    @property
    def api_key(self) -> str:
        return self.config.api_key

    @property
    def is_configured(self) -> bool:
        """Check if the client has necessary configuration."""
        return bool(self.config.api_key)

    @abstractmethod
    async def chat(self, request: ChatRequest) -> ChatResult:
        """
        Run a chat completion.

        Raises:
            AuthenticationError: Invalid API key
            RateLimitError: Rate limit exceeded
            GenerationError: The request failed
        """
        ...

    async def generate_image(self, request: ImageRequest) -> ImageResult:
        """Generate images from a prompt."""
        raise GenerationError(f"{self.name or type(self).__name__} does not support image generation")

    async def edit_image(self, request: ImageRequest) -> ImageResult:
        """Edit an image, optionally restricted by a mask."""
        raise GenerationError(f"{self.name or type(self).__name__} does not support image editing")

    async def create_image_variation(self, request: ImageRequest) -> ImageResult:
        """Create variations of an image."""
        raise GenerationError(f"{self.name or type(self).__name__} does not support image variations")

    async def transcribe_audio(self, request: TranscriptionRequest) -> TranscriptionResult:
        """Transcribe speech to text."""
        raise GenerationError(f"{self.name or type(self).__name__} does not support transcription")

    async def text_to_speech(self, request: SpeechRequest) -> MediaBlob:
        """Synthesize speech audio."""
        raise GenerationError(f"{self.name or type(self).__name__} does not support speech synthesis")

    async def close(self) -> None:
        """Release any held resources."""
        return None
