from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

from biodock.config import Settings
from biodock.executor import CommandExecutor
from biodock.models import CommandResult, PipelineDefinition
from biodock.runner import DockerService

VALID_FASTQ = "@SEQ_ID\nACGT\n+\nIIII\n"


class RecordingExecutor(CommandExecutor):
    """Records every argv and answers from canned results keyed by subcommand."""

    def __init__(self, responses: Optional[Dict[str, CommandResult]] = None):
        self.responses = dict(responses or {})
        self.calls: List[List[str]] = []

    def respond(self, key: str, exit_code: int = 0, output: str = "", error: str = "") -> None:
        self.responses[key] = CommandResult(exit_code, output, error)

    def execute(self, command: Sequence[str]) -> CommandResult:
        argv = list(command)
        self.calls.append(argv)
        key = argv[1] if len(argv) > 1 else ""
        if key == "image" and len(argv) > 2:
            key = f"image {argv[2]}"
        return self.responses.get(key, CommandResult(0, "", ""))


class RaisingExecutor(CommandExecutor):
    def execute(self, command: Sequence[str]) -> CommandResult:
        raise RuntimeError("executor exploded")


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(pipelines_dir=str(tmp_path / "pipelines"), projects_dir=str(tmp_path / "projects"))


@pytest.fixture
def service(executor: RecordingExecutor, settings: Settings) -> DockerService:
    return DockerService(executor=executor, settings=settings)


@pytest.fixture
def pipeline() -> PipelineDefinition:
    return PipelineDefinition(
        id="fastqc-only",
        name="FastQC Only",
        description="Quality control analysis of raw sequence data",
        command=("fastqc", "--outdir=/results", "/data/*.fastq"),
    )


@pytest.fixture
def write_fastq(tmp_path: Path):
    def _write(name: str = "sample.fastq", content: str = VALID_FASTQ, directory: Optional[Path] = None) -> Path:
        path = (directory or tmp_path) / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path
    return _write
