from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_src_on_path() -> None:
    """
    Ensure `src/` is on sys.path so tests can import `agentflow`
    without requiring an editable install.
    """
    src_root = Path(__file__).resolve().parents[1] / "src"
    if str(src_root) not in sys.path:
        sys.path.insert(0, str(src_root))


_ensure_src_on_path()

from agentflow.core.data_types import MediaBlob  # noqa: E402
from agentflow.core.node_types import NodeRegistry  # noqa: E402
from agentflow.core.workflow import Workflow  # noqa: E402
from agentflow.nodes import register_all_nodes  # noqa: E402
from agentflow.providers import get_registry  # noqa: E402
from agentflow.providers.base import AIClient, ChatResult, ImageResult, ProviderConfig  # noqa: E402


class FakeAIClient(AIClient):
    """AI client that records requests and returns canned replies."""

    id = "fake"
    name = "Fake"

    def __init__(self, replies=None, images=None):
        super().__init__(ProviderConfig(api_key="test"))
        self.replies = list(replies or [])
        self.images = images
        self.requests = []

    async def chat(self, request):
        self.requests.append(request)
        if self.replies:
            return ChatResult(content=self.replies.pop(0))
        return ChatResult(content=f"echo: {request.messages[-1].content}")

    async def generate_image(self, request):
        self.requests.append(request)
        images = self.images
        if images is None:
            images = [MediaBlob(b"\x89PNG fake", "image/png", "generated.png")]
        return ImageResult(images=images)


@pytest.fixture
def registry():
    """A fresh node registry holding every built-in node type."""
    return register_all_nodes(NodeRegistry())


@pytest.fixture
def ai_client():
    return FakeAIClient()


@pytest.fixture
def make_ai_client():
    """Factory for fake clients with custom replies or images."""
    return FakeAIClient


@pytest.fixture
def workflow(registry, ai_client):
    return Workflow(registry=registry, ai_client=ai_client)


@pytest.fixture
def provider_registry():
    """The shared provider registry, emptied before and after the test."""
    providers = get_registry()
    providers.reset()
    yield providers
    providers.reset()
