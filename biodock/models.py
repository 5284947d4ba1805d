"""Data model for pipelines, containers, projects and samples."""

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


# Image tag component: lowercase letters, digits, '-', '_', '.'
PIPELINE_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_.-]*$")

# camelCase keys written by older catalogs -> field names
_PIPELINE_KEY_ALIASES = {
    "inputFileTypes": "input_file_types",
    "outputFileTypes": "output_file_types",
    "estimatedDuration": "estimated_duration",
    "requiredMemory": "required_memory",
}


# =============================================================================
# Pipelines and containers
# =============================================================================

@dataclass(frozen=True)
class PipelineDefinition:
    """One containerized analysis tool as described by its catalog entry."""

    id: str
    name: str
    description: str
    command: Tuple[str, ...]
    version: str = "latest"
    input_file_types: Tuple[str, ...] = ("fastq", "fq")
    output_file_types: Tuple[str, ...] = ("html", "txt", "zip")
    estimated_duration: str = "5-10 minutes"
    required_memory: str = "2GB"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PipelineDefinition":
        """
        Create from a catalog definition document.

        Raises:
            ValueError: If required keys are missing or ``id`` is not a valid
                image tag component.
        """
        data = {_PIPELINE_KEY_ALIASES.get(k, k): v for k, v in d.items()}

        missing = [k for k in ("id", "name", "command") if k not in data]
        if missing:
            raise ValueError(f"Pipeline definition missing keys: {', '.join(missing)}")

        pipeline_id = str(data["id"])
        if not PIPELINE_ID_PATTERN.match(pipeline_id):
            raise ValueError(
                f"Invalid pipeline id '{pipeline_id}': use lowercase letters, digits, '-', '_' or '.'"
            )

        command = data["command"]
        if isinstance(command, str) or not isinstance(command, (list, tuple)):
            raise ValueError(f"Pipeline '{pipeline_id}' command must be a list of arguments")

        kwargs = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        kwargs["id"] = pipeline_id
        kwargs["description"] = str(data.get("description", ""))
        kwargs["command"] = tuple(str(arg) for arg in command)
        for key in ("input_file_types", "output_file_types"):
            if key in kwargs:
                kwargs[key] = tuple(str(t).lstrip(".") for t in kwargs[key])
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "command": list(self.command),
            "version": self.version,
            "inputFileTypes": list(self.input_file_types),
            "outputFileTypes": list(self.output_file_types),
            "estimatedDuration": self.estimated_duration,
            "requiredMemory": self.required_memory,
        }


@dataclass(frozen=True)
class CommandResult:
    """Exit code and captured streams of one external invocation."""

    exit_code: int
    output: str
    error: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


CONTAINER_INFO_FIELDS = ("container_id", "image", "command", "created", "status", "ports", "names")


@dataclass(frozen=True)
class ContainerInfo:
    """Snapshot of a container as reported by the runtime's ``ps`` listing."""

    container_id: str
    image: str
    command: str
    created: str
    status: str
    ports: str
    names: str

    @classmethod
    def from_status_line(cls, line: str, delimiter: str = "\t") -> "ContainerInfo":
        """Populate fields positionally; missing trailing fields become ''."""
        parts = line.split(delimiter)
        values = [parts[i] if i < len(parts) else "" for i in range(len(CONTAINER_INFO_FIELDS))]
        return cls(*values)


class RuntimeStatus(Enum):
    """State of the container runtime installation and daemon."""

    NOT_INSTALLED = "not_installed"
    NOT_RUNNING = "not_running"
    RUNNING = "running"
    ERROR = "error"

    @property
    def description(self) -> str:
        return _RUNTIME_STATUS_DESCRIPTIONS[self]

    @property
    def is_ready(self) -> bool:
        return self is RuntimeStatus.RUNNING


_RUNTIME_STATUS_DESCRIPTIONS = {
    RuntimeStatus.NOT_INSTALLED: "Container runtime is not installed",
    RuntimeStatus.NOT_RUNNING: "Container runtime is installed but daemon is not running",
    RuntimeStatus.RUNNING: "Container runtime is installed and running",
    RuntimeStatus.ERROR: "Error checking container runtime status",
}


class RunState(Enum):
    """Lifecycle of a single pipeline run."""

    NOT_BUILT = "not_built"
    BUILDING = "building"
    BUILT = "built"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# =============================================================================
# Projects and samples
# =============================================================================

class SampleStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class AnalysisResult:
    """Outcome of running a pipeline over one sample."""

    sample_id: str
    pipeline: str
    status: SampleStatus
    start_time: datetime
    end_time: Optional[datetime] = None
    output_files: List[Path] = field(default_factory=list)
    log_file: Optional[Path] = None
    html_report: Optional[Path] = None
    summary: Dict[str, str] = field(default_factory=dict)
    error_message: Optional[str] = None

    @property
    def duration(self) -> Optional[float]:
        """Elapsed seconds, or None while unfinished."""
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    @property
    def is_success(self) -> bool:
        return self.status is SampleStatus.COMPLETED and self.error_message is None

    def get_duration_formatted(self) -> str:
        if self.duration is None:
            return "N/A"
        seconds = int(self.duration)
        minutes = seconds // 60
        hours = minutes // 60
        if hours > 0:
            return f"{hours}h {minutes % 60}m"
        if minutes > 0:
            return f"{minutes}m {seconds % 60}s"
        return f"{seconds}s"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sample_id": self.sample_id,
            "pipeline": self.pipeline,
            "status": self.status.value,
            "start_time": _format_time(self.start_time),
            "end_time": _format_time(self.end_time),
            "output_files": [str(p) for p in self.output_files],
            "log_file": str(self.log_file) if self.log_file else None,
            "html_report": str(self.html_report) if self.html_report else None,
            "summary": dict(self.summary),
            "error_message": self.error_message,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AnalysisResult":
        return cls(
            sample_id=d["sample_id"],
            pipeline=d["pipeline"],
            status=SampleStatus(d["status"]),
            start_time=_parse_time(d["start_time"]),
            end_time=_parse_time(d.get("end_time")),
            output_files=[Path(p) for p in d.get("output_files", [])],
            log_file=Path(d["log_file"]) if d.get("log_file") else None,
            html_report=Path(d["html_report"]) if d.get("html_report") else None,
            summary=dict(d.get("summary", {})),
            error_message=d.get("error_message"),
        )


@dataclass
class Sample:
    """A sequencing file submitted to a project."""

    name: str
    file: Path
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    file_size: int = -1
    added_at: datetime = field(default_factory=datetime.now)
    status: SampleStatus = SampleStatus.PENDING
    analysis_result: Optional[AnalysisResult] = None
    is_valid: bool = False
    validation_message: Optional[str] = None

    def __post_init__(self):
        self.file = Path(self.file)
        if self.file_size < 0:
            self.file_size = self.file.stat().st_size if self.file.exists() else 0

    def validate(self, validator, pipeline: Optional[PipelineDefinition] = None) -> bool:
        """Run ``validator`` over the sample file and record the verdict."""
        if pipeline is not None:
            result = validator.validate_for_pipeline(self.file, pipeline)
        else:
            result = validator.validate(self.file)
        self.is_valid = result.ok
        self.validation_message = result.message
        return self.is_valid

    def get_display_name(self) -> str:
        if self.name != self.file.name:
            return f"{self.name} ({self.file.name})"
        return self.name

    def get_size_formatted(self) -> str:
        size = self.file_size
        if size < 1024:
            return f"{size} B"
        if size < 1024 ** 2:
            return f"{size // 1024} KB"
        if size < 1024 ** 3:
            return f"{size // 1024 ** 2} MB"
        return f"{size // 1024 ** 3} GB"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "file": str(self.file),
            "file_size": self.file_size,
            "added_at": _format_time(self.added_at),
            "status": self.status.value,
            "analysis_result": self.analysis_result.to_dict() if self.analysis_result else None,
            "is_valid": self.is_valid,
            "validation_message": self.validation_message,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Sample":
        result = d.get("analysis_result")
        return cls(
            id=d["id"],
            name=d["name"],
            file=Path(d["file"]),
            file_size=d.get("file_size", -1),
            added_at=_parse_time(d.get("added_at")) or datetime.now(),
            status=SampleStatus(d.get("status", SampleStatus.PENDING.value)),
            analysis_result=AnalysisResult.from_dict(result) if result else None,
            is_valid=d.get("is_valid", False),
            validation_message=d.get("validation_message"),
        )


@dataclass
class Project:
    """A working directory of samples analysed with one selected pipeline."""

    name: str
    working_directory: Path
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    description: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    last_modified: datetime = field(default_factory=datetime.now)
    samples: List[Sample] = field(default_factory=list)
    selected_pipeline: str = ""

    def __post_init__(self):
        self.working_directory = Path(self.working_directory)

    def touch(self) -> None:
        self.last_modified = datetime.now()

    def add_sample(self, sample: Sample) -> None:
        self.samples.append(sample)
        self.touch()

    def remove_sample(self, sample_id: str) -> None:
        self.samples = [s for s in self.samples if s.id != sample_id]
        self.touch()

    def clear_samples(self) -> None:
        self.samples = []
        self.touch()

    def get_sample_by_id(self, sample_id: str) -> Optional[Sample]:
        return next((s for s in self.samples if s.id == sample_id), None)

    def samples_with_status(self, status: SampleStatus) -> List[Sample]:
        return [s for s in self.samples if s.status is status]

    def get_completed_samples(self) -> List[Sample]:
        return self.samples_with_status(SampleStatus.COMPLETED)

    def get_pending_samples(self) -> List[Sample]:
        return self.samples_with_status(SampleStatus.PENDING)

    def get_running_samples(self) -> List[Sample]:
        return self.samples_with_status(SampleStatus.RUNNING)

    def get_failed_samples(self) -> List[Sample]:
        return self.samples_with_status(SampleStatus.FAILED)

    def get_overall_status(self) -> str:
        if not self.samples:
            return "Empty"
        if self.get_running_samples():
            return "Running"
        if self.get_failed_samples():
            return "Some Failed"
        if self.get_pending_samples():
            return "Ready"
        return "Complete"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": _format_time(self.created_at),
            "last_modified": _format_time(self.last_modified),
            "samples": [s.to_dict() for s in self.samples],
            "working_directory": str(self.working_directory),
            "selected_pipeline": self.selected_pipeline,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Project":
        return cls(
            id=d["id"],
            name=d["name"],
            description=d.get("description", ""),
            created_at=_parse_time(d.get("created_at")) or datetime.now(),
            last_modified=_parse_time(d.get("last_modified")) or datetime.now(),
            samples=[Sample.from_dict(s) for s in d.get("samples", [])],
            working_directory=Path(d["working_directory"]),
            selected_pipeline=d.get("selected_pipeline", ""),
        )
