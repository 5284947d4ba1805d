"""Runtime settings shared by the orchestrator, catalog and CLI."""

import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional


# Environment variable -> Settings field
ENV_VARS = {
    "BIODOCK_RUNTIME": "runtime",
    "BIODOCK_NAMESPACE": "namespace",
    "BIODOCK_PIPELINES_DIR": "pipelines_dir",
    "BIODOCK_PROJECTS_DIR": "projects_dir",
    "BIODOCK_CONTAINER_INPUT": "container_input_path",
    "BIODOCK_CONTAINER_OUTPUT": "container_output_path",
    "BIODOCK_LOG_LEVEL": "log_level",
}


@dataclass
class Settings:
    """Configuration for talking to the container runtime."""

    runtime: str = "docker"  # executable used for every runtime command
    namespace: str = "biodock"  # image tags are <namespace>/<pipeline id>
    pipelines_dir: str = "pipelines"  # one build context per pipeline id
    projects_dir: str = str(Path.home() / "BioDockProjects")
    container_input_path: str = "/data"
    container_output_path: str = "/results"
    log_level: str = "WARNING"

    def image_tag(self, pipeline_id: str) -> str:
        return f"{self.namespace}/{pipeline_id}"

    def build_context(self, pipeline_id: str) -> Path:
        return Path(self.pipelines_dir) / pipeline_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Settings":
        """Create from dictionary, ignoring unknown keys."""
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> "Settings":
        """
        Build settings from ``BIODOCK_*`` environment variables.

        Keyword overrides (e.g. from CLI flags) win over the environment;
        ``None`` overrides are ignored.
        """
        environ = os.environ if environ is None else environ
        values = {field_name: environ[var] for var, field_name in ENV_VARS.items() if environ.get(var)}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(values)
