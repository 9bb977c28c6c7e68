"""
Provider registry - which AI client the workflow talks to.

Client classes register under their id. Instances are created on first use
from the stored ProviderConfig, and the default client is handed to AI
nodes through the execution context. Settings persist as JSON in
~/.config/agentflow/providers.json.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from agentflow.providers.base import AIClient, ProviderConfig


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "agentflow" / "providers.json"


class ProviderRegistry:
    """
    Process-wide registry of AI clients.

    Constructing ProviderRegistry() always returns the same object; use
    reset() to start from an empty state.
    """

    _instance: ProviderRegistry | None = None

    def __new__(cls) -> ProviderRegistry:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._init()
        return cls._instance

    @classmethod
    def instance(cls) -> ProviderRegistry:
        return cls()

    def _init(self) -> None:
        self._classes: dict[str, type[AIClient]] = {}
        self._clients: dict[str, AIClient] = {}
        self._settings: dict[str, ProviderConfig] = {}
        self._default_id: str | None = None
        self._source: Path | None = None

    # --- Clients ---

    def register_provider(self, client_class: type[AIClient]) -> None:
        self._classes[client_class.id] = client_class

    def register_instance(self, client: AIClient) -> None:
        """Register a ready-made client, bypassing lazy construction."""
        self._clients[client.id] = client

    def get_provider(self, provider_id: str) -> AIClient | None:
        """The client for an id, built from its stored config on first use."""
        client = self._clients.get(provider_id)
        if client is None and provider_id in self._classes:
            client = self._classes[provider_id](self.get_config(provider_id))
            self._clients[provider_id] = client
        return client

    def list_providers(self) -> list[str]:
        return sorted(self._classes.keys() | self._clients.keys())

    def list_configured_providers(self) -> list[str]:
        """Registered ids that have an API key stored."""
        return [pid for pid in self._classes if self.get_config(pid).api_key]

    def set_default(self, provider_id: str | None) -> None:
        self._default_id = provider_id

    def get_default(self) -> AIClient | None:
        """
        The client AI nodes use when none is passed explicitly.

        Falls back to the first enabled client in id order.
        """
        if self._default_id:
            return self.get_provider(self._default_id)
        for provider_id in self.list_providers():
            client = self.get_provider(provider_id)
            if client is not None and client.config.enabled:
                return client
        return None

    # --- Configuration ---

    def set_config(self, provider_id: str, config: ProviderConfig) -> None:
        self._settings[provider_id] = config
        # Rebuild the client with the new settings on next use
        self._clients.pop(provider_id, None)

    def get_config(self, provider_id: str) -> ProviderConfig:
        return self._settings.get(provider_id) or ProviderConfig()

    def load_config(self, path: Path | None = None) -> None:
        """Read stored settings; a missing or unreadable file leaves them unchanged."""
        path = path or DEFAULT_CONFIG_PATH
        self._source = path
        if not path.exists():
            return

        try:
            stored = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load provider config {path}: {e}")
            return

        for provider_id, entry in stored.get("providers", {}).items():
            self.set_config(provider_id, ProviderConfig.from_dict(entry))
        self._default_id = stored.get("default_provider", self._default_id)
        logger.debug(f"Loaded settings for {len(self._settings)} providers from {path}")

    def save_config(self, path: Path | None = None) -> None:
        """Write settings back to where they were loaded from, or the default path."""
        path = path or self._source or DEFAULT_CONFIG_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        document = {
            "default_provider": self._default_id,
            "providers": {pid: config.to_dict() for pid, config in self._settings.items()},
        }
        path.write_text(json.dumps(document, indent=2), encoding="utf-8")

    def reset(self) -> None:
        """Forget all providers and configuration (for testing)."""
        self._init()


def get_registry() -> ProviderRegistry:
    """The shared provider registry."""
    return ProviderRegistry.instance()
