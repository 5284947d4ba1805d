"""Project working-directory management.

These helpers operate on directories the caller is expected to have set up;
a missing source or project directory raises ``FileNotFoundError``.
"""

import json
import os
import shutil
from pathlib import Path
from typing import Iterable, List, Union

from biodock.models import Project

PROJECT_FILE = "project.json"

# Suffixes stripped when deriving a sample name, outermost first
COMPRESSED_SUFFIXES = (".gz",)
SEQUENCE_SUFFIXES = (".fastq", ".fq")


def extract_sample_name(path: Union[str, Path]) -> str:
    """
    Derive a sample name from a file name.

    ``reads_R1.fastq.gz`` -> ``reads_R1``; other files lose their last suffix.
    """
    name = Path(path).name
    lowered = name.lower()
    for suffix in COMPRESSED_SUFFIXES:
        if lowered.endswith(suffix):
            name, lowered = name[:-len(suffix)], lowered[:-len(suffix)]
            break
    for suffix in SEQUENCE_SUFFIXES:
        if lowered.endswith(suffix):
            return name[:-len(suffix)]
    return Path(name).stem


def save_project_directory(project: Project) -> Path:
    """Create the project working directory and write ``project.json``."""
    project.working_directory.mkdir(parents=True, exist_ok=True)
    path = project.working_directory / PROJECT_FILE
    with open(path, "w", encoding="utf-8") as f:
        json.dump(project.to_dict(), f, indent=2)
    return path


def load_project(directory: Union[str, Path]) -> Project:
    path = Path(directory) / PROJECT_FILE
    if not path.exists():
        raise FileNotFoundError(f"Could not find project file {path}")
    with open(path, "r", encoding="utf-8") as f:
        return Project.from_dict(json.load(f))


def copy_file_to_project(source: Union[str, Path], project: Project) -> Path:
    """Copy ``source`` into the project working directory, overwriting."""
    source = Path(source)
    if not source.exists():
        raise FileNotFoundError(f"Could not find file {source.name}")
    if not project.working_directory.exists():
        raise FileNotFoundError(f"Could not find project {project.working_directory.name}")

    destination = project.working_directory / source.name
    shutil.copyfile(source, destination)
    return destination


def cleanup_project(project: Project) -> None:
    """Delete the project working directory and everything in it."""
    if not project.working_directory.exists():
        raise FileNotFoundError(f"Could not find file {project.working_directory.name}")
    shutil.rmtree(project.working_directory)


def list_subdirectories(path: Union[str, Path]) -> List[Path]:
    """Immediate subdirectories of ``path`` (sorted); empty if not a directory."""
    path = Path(path)
    if not path.is_dir():
        return []
    return sorted(p for p in path.iterdir() if p.is_dir())


def create_link(source: Union[str, Path], target: Union[str, Path]) -> Path:
    """Hard-link ``source`` at ``target``."""
    os.link(source, target)
    return Path(target)


def stage_files(sources: Iterable[Union[str, Path]], directory: Union[str, Path]) -> List[Path]:
    """
    Populate ``directory`` with exactly ``sources``, replacing what was there.

    Each file is hard-linked, or copied when linking is not possible (for
    example across filesystems).
    """
    directory = Path(directory)
    if directory.exists():
        shutil.rmtree(directory)
    directory.mkdir(parents=True)

    staged = []
    for source in sources:
        source = Path(source)
        target = directory / source.name
        try:
            create_link(source, target)
        except OSError:
            shutil.copyfile(source, target)
        staged.append(target)
    return staged
