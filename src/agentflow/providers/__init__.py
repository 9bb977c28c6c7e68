"""
Providers package - The AI client capability used by AI nodes.
"""

from agentflow.providers.base import (
    AIClient,
    AuthenticationError,
    ChatMessage,
    ChatRequest,
    ChatResult,
    GenerationError,
    ImageRequest,
    ImageResult,
    ProviderConfig,
    ProviderError,
    RateLimitError,
    SpeechRequest,
    TranscriptionRequest,
    TranscriptionResult,
)
from agentflow.providers.registry import ProviderRegistry, get_registry

__all__ = [
    "AIClient",
    "AuthenticationError",
    "ChatMessage",
    "ChatRequest",
    "ChatResult",
    "GenerationError",
    "ImageRequest",
    "ImageResult",
    "ProviderConfig",
    "ProviderError",
    "RateLimitError",
    "SpeechRequest",
    "TranscriptionRequest",
    "TranscriptionResult",
    "ProviderRegistry",
    "get_registry",
]
