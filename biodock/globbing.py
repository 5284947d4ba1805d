"""Wildcard expansion of pipeline command templates against a host directory."""

import os
import re
from pathlib import Path
from typing import List, Pattern, Sequence, Union


def pattern_to_regex(pattern: str) -> Pattern[str]:
    """Compile a filename pattern where '*' matches any run of characters.

    All other characters are matched literally.
    """
    return re.compile(".*".join(re.escape(piece) for piece in pattern.split("*")))


def list_entry_names(host_dir: Union[str, Path]) -> List[str]:
    """Names of the immediate entries of ``host_dir`` in lexicographic order."""
    with os.scandir(host_dir) as entries:
        return sorted(entry.name for entry in entries)


def expand_single_glob(token: str, host_dir: Union[str, Path]) -> List[str]:
    """
    Expand one command token against the entries of ``host_dir``.

    Only the final path segment is matched; everything before the last '/'
    is re-attached to each match. The token is returned unchanged (as a
    single-element list) when it has no wildcard in its final segment, when
    the directory cannot be listed, or when nothing matches.
    """
    prefix, _, pattern = token.rpartition("/")
    if "*" not in pattern:
        return [token]

    rule = pattern_to_regex(pattern)
    try:
        names = list_entry_names(host_dir)
    except OSError:
        return [token]

    matches = [f"{prefix}/{name}" if prefix else name for name in names if rule.fullmatch(name)]
    return matches or [token]


def expand_globs(command: Sequence[str], host_dir: Union[str, Path]) -> List[str]:
    """Expand every wildcard token of ``command``, preserving token order."""
    expanded: List[str] = []
    for token in command:
        if "*" in token:
            expanded.extend(expand_single_glob(token, host_dir))
        else:
            expanded.append(token)
    return expanded
