"""Discovery and persistence of the on-disk pipeline catalog.

Each pipeline lives in ``<pipelines_dir>/<id>/`` with a ``Dockerfile`` (the
build context) and a ``config.json`` holding its definition.
"""

import json
import shutil
from pathlib import Path
from typing import List, Optional, Union

from biodock.files import list_subdirectories
from biodock.models import PipelineDefinition
from biodock.progress import get_logger
from biodock.result import Error, Result, Success

logger = get_logger(__name__)

DEFINITION_FILE = "config.json"
BUILD_FILE = "Dockerfile"
DEFAULT_PIPELINES_DIR = "pipelines"


def load_definition(config_path: Path) -> PipelineDefinition:
    """Parse one ``config.json`` (raises on unreadable or invalid documents)."""
    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{config_path} does not contain a JSON object")
    return PipelineDefinition.from_dict(data)


def get_available_pipelines(pipelines_dir: Union[str, Path] = DEFAULT_PIPELINES_DIR) -> List[PipelineDefinition]:
    """
    List every complete catalog entry, sorted by id.

    Directories without both a Dockerfile and a config.json are ignored;
    entries that fail to parse are logged and skipped.
    """
    pipelines = []
    for directory in list_subdirectories(pipelines_dir):
        config = directory / DEFINITION_FILE
        dockerfile = directory / BUILD_FILE
        if not (config.exists() and dockerfile.exists()):
            continue
        try:
            pipelines.append(load_definition(config))
        except (OSError, ValueError) as e:
            logger.error("Tried to load pipeline %s, got error: %s", directory.name, e)
    return sorted(pipelines, key=lambda p: p.id)


def list_pipeline_ids(pipelines_dir: Union[str, Path] = DEFAULT_PIPELINES_DIR) -> List[str]:
    """List all available pipeline IDs."""
    return [p.id for p in get_available_pipelines(pipelines_dir)]


def get_pipeline(pipeline_id: str, pipelines_dir: Union[str, Path] = DEFAULT_PIPELINES_DIR) -> Optional[PipelineDefinition]:
    """Get a pipeline by id, or None if it is not in the catalog."""
    return next((p for p in get_available_pipelines(pipelines_dir) if p.id == pipeline_id), None)


def save_pipeline(
    pipeline: PipelineDefinition,
    dockerfile_path: Union[str, Path],
    pipelines_dir: Union[str, Path] = DEFAULT_PIPELINES_DIR,
) -> Result[str]:
    """Write ``pipeline`` and its Dockerfile into the catalog."""
    pipeline_dir = Path(pipelines_dir) / pipeline.id
    source_dockerfile = Path(dockerfile_path)
    existed_before = pipeline_dir.exists()

    if not source_dockerfile.is_file():
        return Error(f"Dockerfile not found at {dockerfile_path}")

    try:
        pipeline_dir.mkdir(parents=True, exist_ok=True)
        with open(pipeline_dir / DEFINITION_FILE, "w", encoding="utf-8") as f:
            json.dump(pipeline.to_dict(), f, indent=2)
        shutil.copyfile(source_dockerfile, pipeline_dir / BUILD_FILE)
    except OSError as e:
        if not existed_before:
            shutil.rmtree(pipeline_dir, ignore_errors=True)
        return Error(f"Error, got exception {e} when trying to save pipeline.", cause=e)

    return Success(str(pipeline_dir), "Successfully saved pipeline.")


def _pipeline_id(pipeline: Union[PipelineDefinition, str]) -> str:
    return pipeline if isinstance(pipeline, str) else pipeline.id


def delete_pipeline(
    pipeline: Union[PipelineDefinition, str],
    pipelines_dir: Union[str, Path] = DEFAULT_PIPELINES_DIR,
) -> bool:
    """Remove a catalog entry by definition or id; False if it was absent."""
    pipeline_id = _pipeline_id(pipeline)
    pipeline_dir = Path(pipelines_dir) / pipeline_id
    if not pipeline_dir.exists():
        logger.warning("Could not delete %s as it does not exist.", pipeline_id)
        return False
    shutil.rmtree(pipeline_dir)
    return True


def validate_pipeline(
    pipeline: Union[PipelineDefinition, str],
    pipelines_dir: Union[str, Path] = DEFAULT_PIPELINES_DIR,
) -> Result[PipelineDefinition]:
    """Check that the catalog entry for ``pipeline`` (definition or id) is complete and parses."""
    pipeline_id = _pipeline_id(pipeline)
    pipeline_dir = Path(pipelines_dir) / pipeline_id
    config = pipeline_dir / DEFINITION_FILE
    dockerfile = pipeline_dir / BUILD_FILE

    if not pipeline_dir.exists():
        return Error(f"Pipeline {pipeline_id} does not exist.")
    if not config.exists():
        return Error(f"Could not find json for pipeline {pipeline_id}.")
    if not dockerfile.exists():
        return Error(f"Could not find dockerfile for pipeline {pipeline_id}.")
    if dockerfile.stat().st_size == 0:
        return Error(f"Found empty dockerfile for pipeline {pipeline_id}.")

    try:
        validated = load_definition(config)
    except (OSError, ValueError) as e:
        return Error(f"Failed to parse {DEFINITION_FILE} for pipeline, got error {e}", cause=e)
    return Success(validated, "Valid pipeline.")
