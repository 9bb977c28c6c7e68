"""
Projects - a workflow together with the settings it runs under.

ProjectSettings live in ~/.config/agentflow/settings.json and seed every
new workflow (workspace id for node ids, output auto-binding, HTTP
timeout). A Project tracks where its workflow document is saved and
whether it has unsaved changes.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Any

from agentflow.core.interaction import ConfirmationHandler
from agentflow.core.node_types import NodeRegistry
from agentflow.core.workflow import Workflow
from agentflow.core import workspace


logger = logging.getLogger(__name__)

SETTINGS_PATH = Path.home() / ".config" / "agentflow" / "settings.json"


@dataclass
class ProjectSettings:
    """Defaults applied to every workflow a project creates or opens."""
    workspace_id: int = 1
    auto_bind_outputs: bool = True
    http_timeout: float = 30.0  # Seconds, for nodes without their own timeout

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectSettings:
        """Build settings from stored data; unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    @classmethod
    def load(cls, path: Path | None = None) -> ProjectSettings:
        """Load settings from a JSON file, falling back to defaults."""
        path = path or SETTINGS_PATH
        if not path.exists():
            return cls()
        try:
            return cls.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError, TypeError, AttributeError) as e:
            logger.warning(f"Failed to load settings {path}: {e}")
            return cls()

    def save(self, path: Path | None = None) -> Path:
        path = path or SETTINGS_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
        return path


@dataclass
class Project:
    name: str
    workflow: Workflow
    settings: ProjectSettings = field(default_factory=ProjectSettings)
    path: Path | None = None  # None until first saved
    is_modified: bool = False
    last_change: datetime | None = None

    @classmethod
    def create(
        cls,
        name: str = "Untitled",
        settings: ProjectSettings | None = None,
        registry: NodeRegistry | None = None,
        ai_client: Any = None,
        confirmation: ConfirmationHandler | None = None,
    ) -> Project:
        """Start an empty workflow configured from settings."""
        settings = settings or ProjectSettings()
        workflow = Workflow(
            registry=registry,
            ai_client=ai_client,
            confirmation=confirmation,
            workspace_id=settings.workspace_id,
            auto_bind=settings.auto_bind_outputs,
            http_timeout=settings.http_timeout,
        )
        return cls(name=name, workflow=workflow, settings=settings)

    @classmethod
    def open(
        cls,
        path: Path,
        settings: ProjectSettings | None = None,
        registry: NodeRegistry | None = None,
        ai_client: Any = None,
        confirmation: ConfirmationHandler | None = None,
    ) -> Project:
        """Load a project from a workflow file."""
        data = workspace.load_workflow_file(path)
        name = data.get("metadata", {}).get("name", path.stem)
        project = cls.create(name, settings, registry, ai_client, confirmation)
        project.workflow.import_data(data)
        project.path = path
        logger.info(f"Opened {name} ({len(project.workflow)} nodes) from {path}")
        return project

    def save(self, path: Path | None = None) -> Path:
        """Save the workflow document; defaults to the project's path."""
        self.path = workspace.save_workflow(self.workflow, path or self.path, self.name)
        self.is_modified = False
        return self.path

    def mark_modified(self) -> None:
        self.is_modified = True
        self.last_change = datetime.now()
