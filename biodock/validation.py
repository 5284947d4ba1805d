"""Structural FASTQ check applied before a file is handed to a pipeline."""

import gzip
import os
import re
import zlib
from itertools import islice
from pathlib import Path
from typing import Iterable, List, Optional, Union

from biodock.models import PipelineDefinition
from biodock.result import Error, Result, Success

DEFAULT_EXTENSIONS = ("fastq", "fq")
COMPRESSED_EXTENSION = "gz"

VALID_NUCLEOTIDES = frozenset("ACGTN")
# Phred+33 quality characters: '!' (33) through '~' (126)
QUALITY_MIN = 33
QUALITY_MAX = 126

# Verdicts, in the order the checks run
FILE_MISSING = "File does not exist"
FILE_UNREADABLE = "Cannot read file"
FILE_EMPTY = "File is empty"
BAD_EXTENSION = "File has incorrect extension"
TOO_SHORT = "Invalid FASTQ format, file contains less than 4 lines."
BAD_HEADER = "Invalid header line: must start with '@'"
BAD_SEPARATOR = "Invalid separator line: must start with '+'"
EMPTY_LINE = "Sequence or quality line is empty"
LENGTH_MISMATCH = "Sequence and quality lines have different lengths"
BAD_SEQUENCE = "Invalid nucleotide characters in sequence"
BAD_QUALITY = "Invalid quality score characters"
VALID = "Valid FASTQ format"


def extension_pattern(extensions: Iterable[str], compressed: str = COMPRESSED_EXTENSION) -> "re.Pattern[str]":
    """Regex matching names ending in one of ``extensions``, optionally compressed."""
    alternatives = "|".join(re.escape(ext.lstrip(".")) for ext in extensions)
    return re.compile(rf".*\.({alternatives})(\.{re.escape(compressed)})?$", re.IGNORECASE)


def check_record(lines: List[str]) -> Optional[str]:
    """Return the first violated rule for a four-line record, or None."""
    if len(lines) < 4:
        return TOO_SHORT

    header, sequence, separator, quality = lines[:4]
    if not header.startswith("@"):
        return BAD_HEADER
    if not separator.startswith("+"):
        return BAD_SEPARATOR
    if not sequence or not quality:
        return EMPTY_LINE
    if len(sequence) != len(quality):
        return LENGTH_MISMATCH
    if not set(sequence.upper()) <= VALID_NUCLEOTIDES:
        return BAD_SEQUENCE
    if not all(QUALITY_MIN <= ord(c) <= QUALITY_MAX for c in quality):
        return BAD_QUALITY
    return None


class FastqValidator:
    """
    Admission check for FASTQ inputs.

    Only the first record is inspected; this is a fast sniff test, not a
    parser. Every verdict comes back as a ``Result``.
    """

    def __init__(self, extensions: Iterable[str] = DEFAULT_EXTENSIONS, compressed: str = COMPRESSED_EXTENSION):
        self.extensions = tuple(extensions)
        self.compressed = compressed
        self._extension_re = extension_pattern(self.extensions, compressed)

    def is_compressed(self, path: Path) -> bool:
        return path.name.lower().endswith(f".{self.compressed.lower()}")

    def read_head(self, path: Path, count: int = 4) -> List[str]:
        """Read up to ``count`` lines, decompressing gzip input."""
        if self.is_compressed(path):
            handle = gzip.open(path, "rt", encoding="utf-8", errors="replace")
        else:
            handle = open(path, "r", encoding="utf-8", errors="replace")
        with handle:
            return [line.rstrip("\r\n") for line in islice(handle, count)]

    def validate(self, path: Union[str, Path]) -> Result[str]:
        path = Path(path)

        if not path.exists():
            return Error(FILE_MISSING)
        if not os.access(path, os.R_OK):
            return Error(FILE_UNREADABLE)
        if path.stat().st_size == 0:
            return Error(FILE_EMPTY)
        if not self._extension_re.match(path.name):
            return Error(BAD_EXTENSION)

        try:
            lines = self.read_head(path)
        except (OSError, EOFError, UnicodeError, zlib.error) as e:
            return Error(f"Failed to read FASTQ file: {e}", cause=e)

        problem = check_record(lines)
        if problem is not None:
            return Error(problem)
        return Success(str(path.resolve()), VALID)

    def validate_for_pipeline(self, path: Union[str, Path], pipeline: PipelineDefinition) -> Result[str]:
        """Validate against the suffixes ``pipeline`` accepts."""
        return FastqValidator(pipeline.input_file_types, self.compressed).validate(path)
