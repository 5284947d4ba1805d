import pytest

from biodock.analysis import PipelineRun, analyse_project
from biodock.files import save_project_directory
from biodock.models import Project, RunState, Sample, SampleStatus
from biodock.progress import ProgressTracker


@pytest.fixture
def project(tmp_path, write_fastq):
    project = Project(name="Demo", working_directory=tmp_path / "Demo")
    save_project_directory(project)
    for name in ("a.fastq", "b.fastq"):
        path = write_fastq(name=name, directory=project.working_directory)
        project.add_sample(Sample(name=name, file=path))
    return project


def test_successful_analysis(project, pipeline, service, executor):
    out = project.working_directory / "results" / "fastqc-only"
    out.mkdir(parents=True)
    (out / "a_fastqc.html").write_text("<html/>")

    run = PipelineRun(pipeline=pipeline.id)
    tracker = ProgressTracker(pipeline=pipeline.id)
    result = analyse_project(project, pipeline, service, tracker=tracker, run=run)

    assert result.ok
    assert len(result.data) == 2
    assert all(s.status is SampleStatus.COMPLETED for s in project.samples)
    assert project.samples[0].analysis_result.html_report == (out / "a_fastqc.html").resolve()
    assert project.selected_pipeline == "fastqc-only"
    assert run.history == [RunState.NOT_BUILT, RunState.BUILT, RunState.RUNNING, RunState.SUCCEEDED]
    assert [s.status for s in tracker.stages] == ["succeeded", "skipped", "succeeded"]

    subcommands = [call[1] for call in executor.calls]
    assert subcommands == ["image", "run"]
    run_call = executor.calls[-1]
    assert run_call[-2:] == ["/data/a.fastq", "/data/b.fastq"]


def test_missing_image_is_built(project, pipeline, service, executor):
    executor.respond("image inspect", exit_code=1, error="No such image")
    run = PipelineRun(pipeline=pipeline.id)
    assert analyse_project(project, pipeline, service, run=run).ok
    assert [call[1] for call in executor.calls] == ["image", "build", "run"]
    assert RunState.BUILDING in run.history


def test_build_failure_fails_samples(project, pipeline, service, executor):
    executor.respond("build", exit_code=1, error="bad Dockerfile")
    run = PipelineRun(pipeline=pipeline.id)
    result = analyse_project(project, pipeline, service, build="always", run=run)

    assert not result.ok
    assert result.message == "Failed to build image: bad Dockerfile"
    assert run.state is RunState.FAILED
    assert all(s.status is SampleStatus.FAILED for s in project.samples)
    assert not any(call[1] == "run" for call in executor.calls)


def test_run_failure_fails_samples(project, pipeline, service, executor):
    executor.respond("run", exit_code=1, error="out of memory")
    result = analyse_project(project, pipeline, service, build="never")
    assert result.message == "Failed to run pipeline: out of memory"
    sample = project.samples[0]
    assert sample.status is SampleStatus.FAILED
    assert sample.analysis_result.error_message == "Failed to run pipeline: out of memory"


def test_invalid_samples_are_left_out(project, pipeline, service, executor, write_fastq):
    bad = write_fastq(name="c.fastq", content="not fastq\n", directory=project.working_directory)
    project.add_sample(Sample(name="c.fastq", file=bad))

    assert analyse_project(project, pipeline, service, build="never").ok
    run_call = executor.calls[-1]
    assert run_call[-2:] == ["/data/a.fastq", "/data/b.fastq"]
    assert "/data/c.fastq" not in run_call
    failed = project.get_failed_samples()
    assert [s.name for s in failed] == ["c.fastq"]
    assert failed[0].analysis_result.error_message.startswith("Invalid FASTQ format")
    assert len(project.get_completed_samples()) == 2


def test_no_pending_samples(tmp_path, pipeline, service, executor):
    project = Project(name="Empty", working_directory=tmp_path)
    result = analyse_project(project, pipeline, service)
    assert result.message == "No pending samples to analyse"
    assert executor.calls == []


def test_samples_outside_workdir_are_copied_in(project, pipeline, service, write_fastq, tmp_path):
    outside = write_fastq(name="ext.fastq", directory=tmp_path / "elsewhere")
    sample = Sample(name="ext", file=outside)
    project.add_sample(sample)
    analyse_project(project, pipeline, service, build="never")
    assert sample.file == project.working_directory / "ext.fastq"
    assert sample.file.exists()


def test_illegal_transition_raises():
    run = PipelineRun(pipeline="x")
    with pytest.raises(ValueError):
        run.advance(RunState.SUCCEEDED)


def test_unknown_build_mode(project, pipeline, service):
    with pytest.raises(ValueError):
        analyse_project(project, pipeline, service, build="sometimes")


def test_run_mounts_only_this_runs_samples(project, pipeline, service, executor, write_fastq):
    assert analyse_project(project, pipeline, service, build="never").ok

    late = write_fastq(name="late.fastq", directory=project.working_directory)
    project.add_sample(Sample(name="late.fastq", file=late))
    assert analyse_project(project, pipeline, service, build="never").ok

    staging = project.working_directory.resolve() / ".runs" / "fastqc-only"
    run_call = executor.calls[-1]
    assert f"{staging}:/data" in run_call
    assert run_call[-1] == "/data/late.fastq"
    assert sorted(p.name for p in staging.iterdir()) == ["late.fastq"]
