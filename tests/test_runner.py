from pathlib import Path

from biodock.config import Settings
from biodock.executor import DefaultCommandExecutor
from biodock.models import ContainerInfo, RuntimeStatus
from biodock.result import Error, Success
from biodock.runner import CONTAINER_STATUS_FORMAT, DockerService

from conftest import RaisingExecutor


class TestRuntimeStatus:
    def test_not_installed_when_version_fails(self, service, executor):
        executor.respond("--version", exit_code=127, error="docker: not found")
        result = service.get_runtime_status()
        assert isinstance(result, Success)
        assert result.data is RuntimeStatus.NOT_INSTALLED
        assert executor.calls == [["docker", "--version"]]

    def test_running_when_both_probes_succeed(self, service, executor):
        assert service.get_runtime_status().data is RuntimeStatus.RUNNING
        assert executor.calls == [["docker", "--version"], ["docker", "info"]]

    def test_not_running_when_info_fails(self, service, executor):
        executor.respond("info", exit_code=1, error="Cannot connect to the Docker daemon")
        assert service.get_runtime_status().data is RuntimeStatus.NOT_RUNNING

    def test_executor_exception_maps_to_error_status(self):
        service = DockerService(executor=RaisingExecutor())
        result = service.get_runtime_status()
        assert result.data is RuntimeStatus.ERROR
        assert "executor exploded" in result.message


class TestImages:
    def test_build_command_and_tag(self, service, executor, pipeline, settings):
        result = service.build_image(pipeline)
        assert result == Success("biodock/fastqc-only", "Successfully built image: fastqc-only")
        context = Path(settings.pipelines_dir) / "fastqc-only"
        assert executor.calls == [["docker", "build", "-t", "biodock/fastqc-only", f"{context}/."]]

    def test_build_failure_carries_stderr(self, service, executor, pipeline):
        executor.respond("build", exit_code=1, error="no Dockerfile")
        result = service.build_image(pipeline)
        assert isinstance(result, Error)
        assert result.message == "Failed to build image: no Dockerfile"

    def test_remove_image(self, service, executor, pipeline):
        assert service.remove_image(pipeline).data == "biodock/fastqc-only"
        assert executor.calls == [["docker", "rmi", "biodock/fastqc-only"]]

    def test_remove_image_failure(self, service, executor, pipeline):
        executor.respond("rmi", exit_code=1, error="No such image")
        assert service.remove_image(pipeline).message == "Failed to remove image: No such image"

    def test_inspect_image(self, service, executor, pipeline):
        assert service.inspect_image(pipeline).ok
        executor.respond("image inspect", exit_code=1, error="No such image")
        result = service.inspect_image(pipeline)
        assert not result.ok
        assert result.message == "Image not found: biodock/fastqc-only: No such image"

    def test_custom_runtime_and_namespace(self, executor, pipeline):
        service = DockerService(executor, Settings(runtime="podman", namespace="lab", pipelines_dir="catalog"))
        service.build_image(pipeline)
        assert executor.calls[0] == ["podman", "build", "-t", "lab/fastqc-only", "catalog/fastqc-only/."]


class TestRunPipeline:
    def test_run_command_shape(self, service, executor, pipeline, tmp_path):
        input_dir = tmp_path / "in"
        input_dir.mkdir()
        (input_dir / "s1.fastq").write_text("x")
        (input_dir / "s2.fastq").write_text("x")

        result = service.run_pipeline(pipeline, input_dir, tmp_path / "out")

        assert result == Success(str(tmp_path / "out"), "Successfully ran pipeline: FastQC Only")
        assert executor.calls == [[
            "docker", "run", "--rm",
            "-v", f"{input_dir}:/data",
            "-v", f"{tmp_path / 'out'}:/results",
            "--name", "fastqc-only",
            "biodock/fastqc-only",
            "fastqc", "--outdir=/results", "/data/s1.fastq", "/data/s2.fastq",
        ]]

    def test_unmatched_glob_is_passed_through(self, service, executor, pipeline, tmp_path):
        service.run_pipeline(pipeline, tmp_path, tmp_path / "out")
        assert executor.calls[0][-1] == "/data/*.fastq"

    def test_nonzero_exit_returns_stderr(self, service, executor, pipeline, tmp_path):
        executor.respond("run", exit_code=2, error="fastqc: bad input")
        result = service.run_pipeline(pipeline, tmp_path, tmp_path / "out")
        assert isinstance(result, Error)
        assert result.message == "Failed to run pipeline: fastqc: bad input"

    def test_same_pipeline_reuses_container_name(self, service, executor, pipeline, tmp_path):
        service.run_pipeline(pipeline, tmp_path, tmp_path / "a")
        service.run_pipeline(pipeline, tmp_path, tmp_path / "b")
        names = [call[call.index("--name") + 1] for call in executor.calls]
        assert names == ["fastqc-only", "fastqc-only"]


class TestContainerStatus:
    def test_status_query_command(self, service, executor, pipeline):
        service.fetch_container_status(pipeline)
        assert executor.calls == [[
            "docker", "ps", "-a", "--format", CONTAINER_STATUS_FORMAT, "--filter", "name=fastqc-only",
        ]]

    def test_empty_output_is_error(self, service, executor, pipeline):
        executor.respond("ps", output="")
        result = service.fetch_container_status(pipeline)
        assert isinstance(result, Error)
        assert result.message == "Failed to fetch container status: no container named fastqc-only"

    def test_nonzero_exit_is_error(self, service, executor, pipeline):
        executor.respond("ps", exit_code=1, output="abc\n", error="daemon down")
        result = service.fetch_container_status(pipeline)
        assert result.message == "Failed to fetch container status: daemon down"

    def test_fields_populated_positionally(self, service, executor, pipeline):
        line = "3f2a\tbiodock/fastqc-only\t\"fastqc\"\t2026-10-19 10:00:00\tExited (0)\t\tfastqc-only"
        executor.respond("ps", output=line + "\n")
        result = service.fetch_container_status(pipeline)
        assert result.data == ContainerInfo(
            container_id="3f2a",
            image="biodock/fastqc-only",
            command="\"fastqc\"",
            created="2026-10-19 10:00:00",
            status="Exited (0)",
            ports="",
            names="fastqc-only",
        )

    def test_missing_trailing_fields_default_to_empty(self):
        info = ContainerInfo.from_status_line("3f2a\tbiodock/x")
        assert info.image == "biodock/x"
        assert info.status == ""
        assert info.names == ""


class TestDefaultExecutor:
    def test_missing_program_is_reported_not_raised(self):
        result = DefaultCommandExecutor().execute(["biodock-definitely-not-a-program"])
        assert result.exit_code == -1
        assert result.output == ""
        assert result.error
