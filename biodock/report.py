#!/usr/bin/env python3
"""
Tabular export of project analysis results.

One row per sample with its validation and analysis outcome, written as TSV
(or CSV when the target ends in ``.csv``).
"""

from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd

from biodock.models import Project, Sample, SampleStatus

RESULT_COLUMNS = [
    "sample_id",
    "sample",
    "file",
    "size",
    "valid",
    "status",
    "pipeline",
    "started",
    "finished",
    "duration_s",
    "duration",
    "outputs",
    "html_report",
    "error",
]


def _sample_row(sample: Sample) -> Dict[str, Any]:
    result = sample.analysis_result
    error = result.error_message if result and result.error_message else ""
    if not error and not sample.is_valid and sample.validation_message:
        error = sample.validation_message
    return {
        "sample_id": sample.id,
        "sample": sample.name,
        "file": str(sample.file),
        "size": sample.get_size_formatted(),
        "valid": sample.is_valid,
        "status": sample.status.display_name,
        "pipeline": result.pipeline if result else "",
        "started": pd.Timestamp(result.start_time) if result else pd.NaT,
        "finished": pd.Timestamp(result.end_time) if result and result.end_time else pd.NaT,
        "duration_s": result.duration if result else None,
        "duration": result.get_duration_formatted() if result else "N/A",
        "outputs": len(result.output_files) if result else 0,
        "html_report": str(result.html_report) if result and result.html_report else "",
        "error": error,
    }


def results_frame(project: Project) -> pd.DataFrame:
    """Build the per-sample results table for ``project``."""
    rows: List[Dict[str, Any]] = [_sample_row(s) for s in project.samples]
    df = pd.DataFrame(rows, columns=RESULT_COLUMNS)
    df["duration_s"] = pd.to_numeric(df["duration_s"], errors="coerce")
    return df


def status_counts(project: Project) -> pd.Series:
    """Number of samples per status, including statuses with no samples."""
    counts = pd.Series(
        [s.status.display_name for s in project.samples], dtype="object"
    ).value_counts()
    labels = [status.display_name for status in SampleStatus]
    return counts.reindex(labels, fill_value=0).astype(int)


def export_results(project: Project, path: Union[str, Path]) -> Path:
    """Write the results table and return the path written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    sep = "," if path.suffix.lower() == ".csv" else "\t"
    results_frame(project).to_csv(path, sep=sep, index=False)
    return path
