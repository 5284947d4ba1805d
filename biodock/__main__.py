#!/usr/bin/env python3
"""BioDock CLI entry point."""

import argparse
import concurrent.futures
import json
import sys
import textwrap
import time
from pathlib import Path
from typing import List, Optional

from biodock.analysis import BUILD_MODES, analyse_project
from biodock.config import Settings
from biodock.discovery import (
    delete_pipeline,
    get_available_pipelines,
    get_pipeline,
    save_pipeline,
    validate_pipeline,
)
from biodock.dispatch import BackgroundRunner
from biodock.files import (
    cleanup_project,
    copy_file_to_project,
    extract_sample_name,
    load_project,
    save_project_directory,
)
from biodock.models import PipelineDefinition, Project, Sample
from biodock.progress import (
    Colors,
    ProgressTracker,
    configure_logging,
    is_tty,
    print_banner,
    print_stage_summary,
)
from biodock.report import export_results, results_frame, status_counts
from biodock.runner import DockerService
from biodock.validation import FastqValidator


class BiodockHelpFormatter(argparse.RawDescriptionHelpFormatter):
    """Help formatter with colored section headers."""

    def __init__(self, prog, indent_increment=2, max_help_position=40, width=100):
        super().__init__(prog, indent_increment, max_help_position, width)

    def start_section(self, heading):
        if heading:
            if "REQUIRED" in heading.upper():
                heading = Colors.red_bold(heading) if is_tty() else f"*** {heading} ***"
            elif any(x in heading.upper() for x in ["RUNTIME", "OUTPUT", "PROJECT"]):
                heading = Colors.cyan_bold(heading) if is_tty() else heading
        super().start_section(heading)


def error(message: str) -> int:
    print(f"{Colors.red_bold('ERROR')}: {message}", file=sys.stderr)
    return 1


def ok(message: str) -> None:
    print(f"{Colors.green_bold('OK')} {message}" if is_tty() else f"[OK] {message}")


def require_pipeline(pipeline_id: str, settings: Settings) -> Optional[PipelineDefinition]:
    pipeline = get_pipeline(pipeline_id, settings.pipelines_dir)
    if pipeline is None:
        error(f"Unknown pipeline '{pipeline_id}' in {settings.pipelines_dir}. Use 'biodock list' to see available pipelines.")
    return pipeline


def wait_for(future, label: str, verbose: bool, interval: float = 10.0):
    """Block on a background call, printing elapsed time while it runs."""
    started = time.monotonic()
    while True:
        try:
            return future.result(timeout=interval)
        except concurrent.futures.TimeoutError:
            if verbose:
                elapsed = int(time.monotonic() - started)
                print(Colors.dim(f"  ... {label} still running ({elapsed}s)"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="biodock",
        formatter_class=BiodockHelpFormatter,
        description=textwrap.dedent("""
        BioDock - containerized analysis pipelines for sequencing data

        Builds each catalog pipeline into a container image and runs it
        against a directory of FASTQ files.
        """),
        epilog=textwrap.dedent(f"""
{Colors.cyan_bold("COMMANDS:") if is_tty() else "COMMANDS:"}
  list      List available pipelines
  info      Show detailed pipeline information
  doctor    Check the container runtime
  build     Build a pipeline image
  rmi       Remove a pipeline image
  run       Run a pipeline on an input directory
  status    Show the container status of a pipeline
  validate  Check FASTQ files before submitting them
  project   Manage projects and analyse their samples
  pipeline  Add, remove or check catalog pipelines

Use 'biodock <command> --help' for more information on a specific command.
        """),
    )

    runtime_group = parser.add_argument_group('RUNTIME options')
    runtime_group.add_argument("--runtime", default=None, help="Container runtime executable (default: docker)")
    runtime_group.add_argument("--namespace", default=None, help="Image namespace (default: biodock)")
    runtime_group.add_argument("--pipelines-dir", default=None, metavar="DIR",
                               help="Pipeline catalog directory (default: ./pipelines)")
    runtime_group.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")

    subparsers = parser.add_subparsers(dest="command", metavar="command")

    subparsers.add_parser("list", help="List available pipelines")

    info_parser = subparsers.add_parser("info", help="Show pipeline details")
    info_parser.add_argument("--pipeline", "-p", default="", metavar="PIPELINE",
                             help="Pipeline to describe (default: all)")

    subparsers.add_parser("doctor", help="Check the container runtime")

    for name, help_text in (("build", "Build a pipeline image"),
                            ("rmi", "Remove a pipeline image"),
                            ("status", "Show container status")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--pipeline", "-p", required=True, metavar="PIPELINE", help="Pipeline ID")

    run_parser = subparsers.add_parser(
        "run",
        help="Run a pipeline",
        formatter_class=BiodockHelpFormatter,
        description="Run a pipeline container with INPUT mounted at /data and OUTPUT at /results.",
    )
    required_group = run_parser.add_argument_group('REQUIRED arguments')
    required_group.add_argument("--pipeline", "-p", required=True, metavar="PIPELINE", help="Pipeline ID")
    required_group.add_argument("--input", "-i", required=True, metavar="DIR", help="Host input directory")
    output_group = run_parser.add_argument_group('OUTPUT options')
    output_group.add_argument("--outdir", "-o", default="./outputs", metavar="DIR",
                              help="Host output directory (default: ./outputs)")
    run_parser.add_argument("--build", action="store_true", help="Build the image before running")

    validate_parser = subparsers.add_parser("validate", help="Validate FASTQ files")
    validate_parser.add_argument("files", nargs="+", metavar="FILE")
    validate_parser.add_argument("--pipeline", "-p", default="", metavar="PIPELINE",
                                 help="Check extensions against this pipeline's input types")

    project_parser = subparsers.add_parser("project", help="Manage projects", formatter_class=BiodockHelpFormatter)
    project_sub = project_parser.add_subparsers(dest="project_command", metavar="action")

    new_parser = project_sub.add_parser("new", help="Create a project")
    new_parser.add_argument("name")
    new_parser.add_argument("--dir", "-d", default="", metavar="DIR",
                            help="Working directory (default: <projects dir>/<name>)")
    new_parser.add_argument("--description", default="")

    add_parser = project_sub.add_parser("add", help="Copy FASTQ files into a project")
    add_parser.add_argument("project", metavar="PROJECT_DIR")
    add_parser.add_argument("files", nargs="+", metavar="FILE")

    show_parser = project_sub.add_parser("show", help="Show project samples")
    show_parser.add_argument("project", metavar="PROJECT_DIR")

    analyse_parser = project_sub.add_parser("analyse", help="Run a pipeline over pending samples")
    analyse_parser.add_argument("project", metavar="PROJECT_DIR")
    analyse_parser.add_argument("--pipeline", "-p", required=True, metavar="PIPELINE")
    analyse_parser.add_argument("--build", choices=BUILD_MODES, default="auto",
                                help="Image build policy (default: auto)")

    export_parser = project_sub.add_parser("export", help="Export the results table")
    export_parser.add_argument("project", metavar="PROJECT_DIR")
    export_parser.add_argument("--output", "-o", default="", metavar="PATH",
                               help="TSV or CSV path (default: <project>/results.tsv)")

    remove_parser = project_sub.add_parser("remove", help="Remove samples from a project")
    remove_parser.add_argument("project", metavar="PROJECT_DIR")
    remove_parser.add_argument("samples", nargs="+", metavar="SAMPLE", help="Sample id, name or file name")

    clear_parser = project_sub.add_parser("clear", help="Remove every sample from a project")
    clear_parser.add_argument("project", metavar="PROJECT_DIR")

    delete_parser = project_sub.add_parser("delete", help="Delete a project directory and everything in it")
    delete_parser.add_argument("project", metavar="PROJECT_DIR")
    delete_parser.add_argument("--yes", action="store_true", help="Confirm the deletion")

    catalog_parser = subparsers.add_parser("pipeline", help="Manage the pipeline catalog",
                                           formatter_class=BiodockHelpFormatter)
    catalog_sub = catalog_parser.add_subparsers(dest="pipeline_command", metavar="action")

    add_pipeline_parser = catalog_sub.add_parser("add", help="Add a pipeline from a Dockerfile and definition")
    add_pipeline_parser.add_argument("--pipeline", "-p", default="", metavar="PIPELINE",
                                     help="Pipeline ID (default: the id in the definition)")
    add_pipeline_parser.add_argument("--dockerfile", required=True, metavar="FILE", help="Dockerfile to build from")
    add_pipeline_parser.add_argument("--config", required=True, metavar="JSON", help="Pipeline definition file")

    for name, help_text in (("remove", "Remove a pipeline from the catalog"),
                            ("check", "Check a catalog entry is complete")):
        sub = catalog_sub.add_parser(name, help=help_text)
        sub.add_argument("--pipeline", "-p", required=True, metavar="PIPELINE", help="Pipeline ID")

    return parser


def cmd_list(settings: Settings) -> int:
    pipelines = get_available_pipelines(settings.pipelines_dir)
    if not pipelines:
        print(f"\nNo pipelines found in {settings.pipelines_dir}\n")
        return 0
    print("\nAvailable pipelines:")
    for pipeline in pipelines:
        print(f"  {Colors.cyan_bold(pipeline.id):20} - {pipeline.name}")
    print()
    return 0


def cmd_info(settings: Settings, pipeline_id: str) -> int:
    if pipeline_id:
        pipeline = require_pipeline(pipeline_id, settings)
        if pipeline is None:
            return 1
        pipelines = [pipeline]
    else:
        pipelines = get_available_pipelines(settings.pipelines_dir)

    for pipeline in pipelines:
        print(f"\n{Colors.cyan_bold(pipeline.id)}:")
        print(f"  Name:        {pipeline.name}")
        print(f"  Version:     {pipeline.version}")
        print(f"  Image:       {settings.image_tag(pipeline.id)}")
        print(f"  Command:     {' '.join(pipeline.command)}")
        print(f"  Inputs:      {', '.join(pipeline.input_file_types)}")
        print(f"  Outputs:     {', '.join(pipeline.output_file_types)}")
        print(f"  Duration:    {pipeline.estimated_duration}")
        print(f"  Memory:      {pipeline.required_memory}")
        print(f"  Description: {pipeline.description}")
    print()
    return 0


def cmd_doctor(service: DockerService) -> int:
    print(Colors.cyan_bold("BioDock Doctor") if is_tty() else "=== BioDock Doctor ===")
    print("=" * 40)
    print()
    print("Settings:")
    for key, value in service.settings.to_dict().items():
        print(f"  {key + ':':24} {value}")
    print()
    print(f"Container runtime ({service.runtime}):")
    status = service.get_runtime_status().data
    if status.is_ready:
        print(f"  {Colors.green_bold('OK')} {status.description}" if is_tty() else f"  [OK] {status.description}")
        return 0
    print(f"  {Colors.red_bold('ERROR')} {status.description}" if is_tty() else f"  [ERROR] {status.description}")
    return 1


def cmd_run(service: DockerService, pipeline: PipelineDefinition, input_dir: str, outdir: str,
            build: bool, verbose: bool) -> int:
    status = service.get_runtime_status().data
    if not status.is_ready:
        return error(f"{status.description}. Run 'biodock doctor' for details.")

    input_path = Path(input_dir).resolve()
    if not input_path.is_dir():
        return error(f"Input directory not found: {input_dir}")
    output_path = Path(outdir).resolve()
    output_path.mkdir(parents=True, exist_ok=True)

    tracker = ProgressTracker(pipeline=pipeline.id, verbose=True)
    tracker.complete_stage("validate", "skipped", "direct run")
    tracker.print_header()

    with BackgroundRunner() as runner:
        if build:
            tracker.start_stage("build", service.image_tag(pipeline))
            built = wait_for(runner.submit(service.build_image, pipeline), "build", verbose)
            if not built.ok:
                tracker.complete_stage("build", "failed")
                print_stage_summary(tracker.stages)
                return error(built.message)
            tracker.complete_stage("build", "succeeded", built.data)
        else:
            tracker.complete_stage("build", "skipped")

        tracker.start_stage("run", f"{input_path} -> {output_path}")
        outcome = wait_for(runner.submit(service.run_pipeline, pipeline, input_path, output_path), "run", verbose)

    if not outcome.ok:
        tracker.complete_stage("run", "failed")
        print_stage_summary(tracker.stages)
        return error(outcome.message)
    tracker.complete_stage("run", "succeeded", outcome.message)
    print_stage_summary(tracker.stages)
    print(f"\nResults: {outcome.data}")
    return 0


def cmd_status(service: DockerService, pipeline: PipelineDefinition) -> int:
    result = service.fetch_container_status(pipeline)
    if not result.ok:
        return error(result.message)
    info = result.data
    print(f"\n{Colors.cyan_bold(info.names or pipeline.id)}:")
    print(f"  Container:   {info.container_id}")
    print(f"  Image:       {info.image}")
    print(f"  Command:     {info.command}")
    print(f"  Created:     {info.created}")
    print(f"  Status:      {info.status}")
    print(f"  Ports:       {info.ports}")
    print()
    return 0


def cmd_validate(files: List[str], pipeline: Optional[PipelineDefinition]) -> int:
    validator = FastqValidator()
    failures = 0
    for name in files:
        if pipeline is not None:
            result = validator.validate_for_pipeline(name, pipeline)
        else:
            result = validator.validate(name)
        if result.ok:
            ok(f"{name}: {result.message}")
        else:
            failures += 1
            print(f"{Colors.red_bold('INVALID')} {name}: {result.message}" if is_tty()
                  else f"[INVALID] {name}: {result.message}")
    return 1 if failures else 0


def cmd_project(args, settings: Settings, service: DockerService) -> int:
    action = args.project_command
    if action is None:
        return error("Missing project action (new, add, show, analyse, export, remove, clear, delete)")

    if action == "new":
        workdir = Path(args.dir) if args.dir else Path(settings.projects_dir) / args.name
        project = Project(name=args.name, description=args.description, working_directory=workdir)
        path = save_project_directory(project)
        ok(f"Created project {project.name} at {path.parent}")
        return 0

    project = load_project(args.project)

    if action == "add":
        validator = FastqValidator()
        added = 0
        for name in args.files:
            result = validator.validate(name)
            if not result.ok:
                error(f"{name}: {result.message}")
                continue
            copied = copy_file_to_project(name, project)
            sample = Sample(name=extract_sample_name(copied), file=copied, is_valid=True,
                            validation_message=result.message)
            project.add_sample(sample)
            added += 1
        save_project_directory(project)
        print(f"Added {added} of {len(args.files)} file(s) to {project.name}")
        return 0 if added == len(args.files) else 1

    if action == "show":
        print(f"\n{Colors.cyan_bold(project.name)} ({project.get_overall_status()})")
        if project.description:
            print(f"  {project.description}")
        print(f"  Directory: {project.working_directory}")
        print(f"  Pipeline:  {project.selected_pipeline or '-'}")
        print()
        for sample in project.samples:
            result = sample.analysis_result
            duration = result.get_duration_formatted() if result else "N/A"
            print(f"  {sample.get_display_name():40} {sample.get_size_formatted():>8}  "
                  f"{sample.status.display_name:10} {duration}")
        counts = status_counts(project)
        print("\n  " + ", ".join(f"{label}: {count}" for label, count in counts.items() if count))
        print()
        return 0

    if action == "analyse":
        pipeline = require_pipeline(args.pipeline, settings)
        if pipeline is None:
            return 1
        tracker = ProgressTracker(pipeline=pipeline.id, verbose=True)
        tracker.print_header()
        outcome = analyse_project(project, pipeline, service, build=args.build, tracker=tracker)
        save_project_directory(project)
        print_stage_summary(tracker.stages)
        if not outcome.ok:
            return error(outcome.message)
        ok(outcome.message)
        return 0

    if action == "export":
        target = Path(args.output) if args.output else project.working_directory / "results.tsv"
        path = export_results(project, target)
        ok(f"Wrote {len(results_frame(project))} row(s) to {path}")
        return 0

    if action == "remove":
        missing = 0
        for ref in args.samples:
            sample = next((s for s in project.samples if ref in (s.id, s.name, s.file.name)), None)
            if sample is None:
                missing += 1
                error(f"No sample '{ref}' in project {project.name}")
                continue
            project.remove_sample(sample.id)
        save_project_directory(project)
        removed = len(args.samples) - missing
        print(f"Removed {removed} sample(s) from {project.name}")
        return 1 if missing else 0

    if action == "clear":
        count = len(project.samples)
        project.clear_samples()
        save_project_directory(project)
        print(f"Removed {count} sample(s) from {project.name}")
        return 0

    if action == "delete":
        if not args.yes:
            return error(f"Refusing to delete {project.working_directory} without --yes")
        cleanup_project(project)
        ok(f"Deleted project {project.name} ({project.working_directory})")
        return 0

    return error(f"Unknown project action: {action}")


def cmd_pipeline(args, settings: Settings) -> int:
    action = args.pipeline_command
    if action is None:
        return error("Missing pipeline action (add, remove, check)")

    if action == "add":
        try:
            with open(args.config, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            return error(f"Could not read pipeline definition {args.config}: {e}")
        if not isinstance(data, dict):
            return error(f"{args.config} does not contain a JSON object")
        if args.pipeline:
            data["id"] = args.pipeline
        try:
            pipeline = PipelineDefinition.from_dict(data)
        except ValueError as e:
            return error(str(e))

        saved = save_pipeline(pipeline, args.dockerfile, settings.pipelines_dir)
        if not saved.ok:
            return error(saved.message)
        checked = validate_pipeline(pipeline.id, settings.pipelines_dir)
        if not checked.ok:
            return error(checked.message)
        ok(f"Added pipeline {pipeline.id} to {settings.pipelines_dir}")
        return 0

    if action == "remove":
        if not delete_pipeline(args.pipeline, settings.pipelines_dir):
            return error(f"Pipeline {args.pipeline} does not exist.")
        ok(f"Removed pipeline {args.pipeline}")
        return 0

    if action == "check":
        result = validate_pipeline(args.pipeline, settings.pipelines_dir)
        if not result.ok:
            return error(result.message)
        ok(f"{args.pipeline}: {result.message}")
        return 0

    return error(f"Unknown pipeline action: {action}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = Settings.from_env(
        runtime=args.runtime,
        namespace=args.namespace,
        pipelines_dir=args.pipelines_dir,
    )
    configure_logging("DEBUG" if args.verbose else settings.log_level)

    if args.command is None:
        print_banner()
        parser.print_help()
        return 0

    service = DockerService(settings=settings)

    try:
        if args.command == "list":
            return cmd_list(settings)
        if args.command == "info":
            return cmd_info(settings, args.pipeline)
        if args.command == "doctor":
            return cmd_doctor(service)
        if args.command == "validate":
            pipeline = None
            if args.pipeline:
                pipeline = require_pipeline(args.pipeline, settings)
                if pipeline is None:
                    return 1
            return cmd_validate(args.files, pipeline)
        if args.command == "project":
            return cmd_project(args, settings, service)
        if args.command == "pipeline":
            return cmd_pipeline(args, settings)

        pipeline = require_pipeline(args.pipeline, settings)
        if pipeline is None:
            return 1

        if args.command in ("build", "rmi"):
            result = service.build_image(pipeline) if args.command == "build" else service.remove_image(pipeline)
            if not result.ok:
                return error(result.message)
            ok(result.message)
            return 0
        if args.command == "status":
            return cmd_status(service, pipeline)
        if args.command == "run":
            return cmd_run(service, pipeline, args.input, args.outdir, args.build, args.verbose)
    except FileNotFoundError as e:
        return error(str(e))
    except KeyboardInterrupt:
        print(f"\n{Colors.yellow_bold('Interrupted by user')}", file=sys.stderr)
        return 130

    return error(f"Unknown command: {args.command}")


if __name__ == "__main__":
    sys.exit(main())
