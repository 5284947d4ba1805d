"""Container lifecycle for catalog pipelines: build, run, inspect, remove."""

from pathlib import Path
from typing import List, Optional, Sequence, Union

from biodock.config import Settings
from biodock.executor import CommandExecutor, DefaultCommandExecutor
from biodock.globbing import expand_globs
from biodock.models import ContainerInfo, PipelineDefinition, RuntimeStatus
from biodock.progress import get_logger
from biodock.result import Error, Result, Success

logger = get_logger(__name__)


# Fields requested from `<runtime> ps`, in ContainerInfo order
CONTAINER_STATUS_FORMAT = "\t".join([
    "{{.ID}}",
    "{{.Image}}",
    "{{.Command}}",
    "{{.CreatedAt}}",
    "{{.Status}}",
    "{{.Ports}}",
    "{{.Names}}",
])


class DockerService:
    """
    High-level interface to the container runtime for catalog pipelines.

    Every operation issues a single runtime command through the injected
    ``CommandExecutor`` (status checks issue up to two) and reports the
    outcome as a ``Result``; expected failures are never raised.

    Volume mounting uses fixed in-container paths: the host input directory
    is bound to ``settings.container_input_path`` (``/data``) and the host
    output directory to ``settings.container_output_path`` (``/results``).

    Image tags and container names derive from ``pipeline.id`` alone, so two
    concurrent runs of the same pipeline collide on the container name.
    """

    def __init__(
        self,
        executor: Optional[CommandExecutor] = None,
        settings: Optional[Settings] = None,
    ):
        self.executor = executor if executor is not None else DefaultCommandExecutor()
        self.settings = settings if settings is not None else Settings()

    @property
    def runtime(self) -> str:
        return self.settings.runtime

    def image_tag(self, pipeline: PipelineDefinition) -> str:
        return self.settings.image_tag(pipeline.id)

    def get_runtime_status(self) -> Result[RuntimeStatus]:
        """
        Check whether the runtime is installed and its daemon is reachable.

        Runs ``<runtime> --version`` and, if that succeeds, ``<runtime> info``.
        The status is always returned as ``Success``; an unexpected failure in
        the execution layer yields ``RuntimeStatus.ERROR``.
        """
        try:
            version = self.executor.execute([self.runtime, "--version"])
            if not version.ok:
                status = RuntimeStatus.NOT_INSTALLED
            elif self.executor.execute([self.runtime, "info"]).ok:
                status = RuntimeStatus.RUNNING
            else:
                status = RuntimeStatus.NOT_RUNNING
        except Exception as e:
            logger.warning("Error checking %s status: %s", self.runtime, e)
            return Success(RuntimeStatus.ERROR, f"{RuntimeStatus.ERROR.description}: {e}")

        return Success(status, status.description)

    def build_image(self, pipeline: PipelineDefinition) -> Result[str]:
        """Build ``<namespace>/<id>`` from the pipeline's build context directory."""
        tag = self.image_tag(pipeline)
        context = self.settings.build_context(pipeline.id)
        logger.info("Building %s from %s", tag, context)

        result = self.executor.execute([self.runtime, "build", "-t", tag, f"{context}/."])
        if not result.ok:
            return Error(f"Failed to build image: {result.error}")
        return Success(tag, f"Successfully built image: {pipeline.id}")

    def remove_image(self, pipeline: PipelineDefinition) -> Result[str]:
        tag = self.image_tag(pipeline)
        result = self.executor.execute([self.runtime, "rmi", tag])
        if not result.ok:
            return Error(f"Failed to remove image: {result.error}")
        return Success(tag, f"Successfully removed image: {pipeline.id}")

    def inspect_image(self, pipeline: PipelineDefinition) -> Result[str]:
        """Check that the pipeline's image exists locally (without pulling)."""
        tag = self.image_tag(pipeline)
        result = self.executor.execute([self.runtime, "image", "inspect", tag])
        if not result.ok:
            message = f"Image not found: {tag}"
            if result.error.strip():
                message += f": {result.error.strip()}"
            return Error(message)
        return Success(tag, f"Image available: {tag}")

    def expand_globs(self, command: Sequence[str], host_input_dir: Union[str, Path]) -> List[str]:
        return expand_globs(command, host_input_dir)

    def build_run_command(
        self,
        pipeline: PipelineDefinition,
        host_input_dir: Union[str, Path],
        host_output_dir: Union[str, Path],
    ) -> List[str]:
        """Assemble the ``<runtime> run`` argv for a pipeline."""
        return [
            self.runtime, "run", "--rm",
            "-v", f"{host_input_dir}:{self.settings.container_input_path}",
            "-v", f"{host_output_dir}:{self.settings.container_output_path}",
            "--name", pipeline.id,
            self.image_tag(pipeline),
            *self.expand_globs(pipeline.command, host_input_dir),
        ]

    def run_pipeline(
        self,
        pipeline: PipelineDefinition,
        host_input_dir: Union[str, Path],
        host_output_dir: Union[str, Path],
    ) -> Result[str]:
        """
        Run the pipeline container to completion.

        Returns ``Success(host_output_dir)`` on exit code 0, otherwise an
        ``Error`` carrying the captured stderr.
        """
        cmd = self.build_run_command(pipeline, host_input_dir, host_output_dir)
        logger.info("Running %s on %s", pipeline.id, host_input_dir)

        result = self.executor.execute(cmd)
        if not result.ok:
            return Error(f"Failed to run pipeline: {result.error}")
        return Success(str(host_output_dir), f"Successfully ran pipeline: {pipeline.name}")

    def fetch_container_status(self, pipeline: PipelineDefinition) -> Result[ContainerInfo]:
        """Look up the container named after ``pipeline.id``."""
        result = self.executor.execute([
            self.runtime, "ps", "-a",
            "--format", CONTAINER_STATUS_FORMAT,
            "--filter", f"name={pipeline.id}",
        ])

        if not result.ok:
            return Error(f"Failed to fetch container status: {result.error}")

        lines = [line for line in result.output.splitlines() if line.strip()]
        if not lines:
            detail = result.error.strip() or f"no container named {pipeline.id}"
            return Error(f"Failed to fetch container status: {detail}")

        info = ContainerInfo.from_status_line(lines[0])
        return Success(info, "Successfully fetched container status")
