"""Invocation of external programs behind a substitutable interface."""

import subprocess
from abc import ABC, abstractmethod
from typing import Sequence

from biodock.models import CommandResult
from biodock.progress import get_logger

logger = get_logger(__name__)


class CommandExecutor(ABC):
    """Runs one external command and reports its outcome."""

    @abstractmethod
    def execute(self, command: Sequence[str]) -> CommandResult:
        """
        Run ``command`` (an argv list) to completion.

        Implementations never raise: a failure to start or talk to the
        process is reported as ``CommandResult(-1, "", <diagnostic>)``.
        """


class DefaultCommandExecutor(CommandExecutor):
    """Runs commands with :mod:`subprocess`, blocking until they exit."""

    def execute(self, command: Sequence[str]) -> CommandResult:
        argv = [str(arg) for arg in command]
        logger.debug("Executing: %s", " ".join(argv))
        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except Exception as e:
            logger.warning("Failed to execute %s: %s", argv[0] if argv else "<empty>", e)
            return CommandResult(-1, "", str(e) or "Unknown error")

        logger.debug("Exit code %d from %s", proc.returncode, argv[0])
        return CommandResult(proc.returncode, proc.stdout or "", proc.stderr or "")
