"""Analyse a project's samples with one catalog pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from biodock.files import copy_file_to_project, stage_files
from biodock.models import AnalysisResult, PipelineDefinition, Project, RunState, Sample, SampleStatus
from biodock.progress import ProgressTracker, get_logger
from biodock.result import Error, Result, Success
from biodock.runner import DockerService
from biodock.validation import FastqValidator

logger = get_logger(__name__)

BUILD_MODES = ("auto", "always", "never")

# Per-run input directories, below the project working directory
RUNS_DIR = ".runs"

# Allowed RunState transitions
TRANSITIONS = {
    RunState.NOT_BUILT: (RunState.BUILDING, RunState.BUILT, RunState.FAILED),
    RunState.BUILDING: (RunState.BUILT, RunState.FAILED),
    RunState.BUILT: (RunState.RUNNING, RunState.FAILED),
    RunState.RUNNING: (RunState.SUCCEEDED, RunState.FAILED),
    RunState.SUCCEEDED: (),
    RunState.FAILED: (),
}


@dataclass
class PipelineRun:
    """State of one pipeline run over a project."""

    pipeline: str
    state: RunState = RunState.NOT_BUILT
    history: List[RunState] = field(default_factory=lambda: [RunState.NOT_BUILT])
    error: Optional[str] = None

    def advance(self, state: RunState) -> None:
        if state not in TRANSITIONS[self.state]:
            raise ValueError(f"Illegal run transition {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def fail(self, message: str) -> None:
        self.error = message
        self.advance(RunState.FAILED)

    @property
    def finished(self) -> bool:
        return self.state in (RunState.SUCCEEDED, RunState.FAILED)


def _collect_outputs(output_dir: Path) -> List[Path]:
    if not output_dir.is_dir():
        return []
    return sorted(p for p in output_dir.rglob("*") if p.is_file())


def _stage(tracker: Optional[ProgressTracker], name: str, status: Optional[str] = None, message: str = "") -> None:
    if tracker is None:
        return
    if status is None:
        tracker.start_stage(name, message)
    else:
        tracker.complete_stage(name, status, message)


def _fail_samples(samples: List[Sample], pipeline: PipelineDefinition, started: datetime, message: str) -> List[AnalysisResult]:
    results = []
    for sample in samples:
        sample.status = SampleStatus.FAILED
        sample.analysis_result = AnalysisResult(
            sample_id=sample.id,
            pipeline=pipeline.id,
            status=SampleStatus.FAILED,
            start_time=started,
            end_time=datetime.now(),
            error_message=message,
        )
        results.append(sample.analysis_result)
    return results


def analyse_project(
    project: Project,
    pipeline: PipelineDefinition,
    service: DockerService,
    validator: Optional[FastqValidator] = None,
    output_dir: Optional[Union[str, Path]] = None,
    build: str = "auto",
    tracker: Optional[ProgressTracker] = None,
    run: Optional[PipelineRun] = None,
) -> Result[List[AnalysisResult]]:
    """
    Validate, build and run ``pipeline`` over the project's pending samples.

    ``build`` is one of ``auto`` (build only when the image is missing),
    ``always`` or ``never``. The pipeline runs once with
    ``<working directory>/.runs/<pipeline id>`` mounted as input. That
    directory holds only the samples accepted for this run, so rejected files
    and samples analysed earlier are never submitted. Every analysed sample gets an
    ``AnalysisResult`` recording the shared outcome.
    """
    if build not in BUILD_MODES:
        raise ValueError(f"build must be one of {', '.join(BUILD_MODES)}, got {build!r}")

    validator = validator or FastqValidator()
    run = run or PipelineRun(pipeline=pipeline.id)
    workdir = project.working_directory.resolve()
    out = Path(output_dir) if output_dir else workdir / "results" / pipeline.id
    project.selected_pipeline = pipeline.id
    project.touch()

    pending = project.get_pending_samples()
    if not pending:
        run.fail("No pending samples to analyse")
        return Error(run.error)

    # Validate
    _stage(tracker, "validate", message=f"{len(pending)} sample(s)")
    started = datetime.now()
    accepted = []
    for sample in pending:
        if sample.validate(validator, pipeline):
            accepted.append(sample)
        else:
            logger.warning("Sample %s rejected: %s", sample.name, sample.validation_message)
            _fail_samples([sample], pipeline, started, sample.validation_message or "Invalid sample")

    if not accepted:
        _stage(tracker, "validate", "failed", "no valid samples")
        run.fail("No valid samples to analyse")
        return Error(run.error)
    _stage(tracker, "validate", "succeeded", f"{len(accepted)}/{len(pending)} valid")

    for sample in accepted:
        if sample.file.resolve().parent != workdir:
            sample.file = copy_file_to_project(sample.file, project)

    # Build
    needs_build = build == "always" or (build == "auto" and not service.inspect_image(pipeline).ok)
    if needs_build:
        _stage(tracker, "build", message=service.image_tag(pipeline))
        run.advance(RunState.BUILDING)
        built = service.build_image(pipeline)
        if not built.ok:
            _stage(tracker, "build", "failed", built.message)
            run.fail(built.message)
            _fail_samples(accepted, pipeline, started, built.message)
            return built
        _stage(tracker, "build", "succeeded", built.data)
    else:
        _stage(tracker, "build", "skipped", "image available")
    run.advance(RunState.BUILT)

    # Run
    staging = workdir / RUNS_DIR / pipeline.id
    stage_files((s.file for s in accepted), staging)
    out.mkdir(parents=True, exist_ok=True)
    for sample in accepted:
        sample.status = SampleStatus.RUNNING
    _stage(tracker, "run", message=pipeline.name)
    run.advance(RunState.RUNNING)
    started = datetime.now()

    outcome = service.run_pipeline(pipeline, staging, out.resolve())
    if not outcome.ok:
        _stage(tracker, "run", "failed", outcome.message)
        run.fail(outcome.message)
        _fail_samples(accepted, pipeline, started, outcome.message)
        project.touch()
        return outcome

    finished = datetime.now()
    outputs = _collect_outputs(out)
    report = next((p for p in outputs if p.suffix.lower() == ".html"), None)
    results = []
    for sample in accepted:
        sample.status = SampleStatus.COMPLETED
        sample.analysis_result = AnalysisResult(
            sample_id=sample.id,
            pipeline=pipeline.id,
            status=SampleStatus.COMPLETED,
            start_time=started,
            end_time=finished,
            output_files=list(outputs),
            html_report=report,
            summary={"image": service.image_tag(pipeline), "output_dir": str(out)},
        )
        results.append(sample.analysis_result)

    run.advance(RunState.SUCCEEDED)
    _stage(tracker, "run", "succeeded", f"{len(outputs)} output file(s)")
    project.touch()
    return Success(results, f"Analysed {len(results)} sample(s) with {pipeline.name}")
