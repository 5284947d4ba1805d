#!/usr/bin/env python3
"""Terminal colors, logging and stage display utilities for the BioDock CLI."""

import logging
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union


def is_tty() -> bool:
    """Check if stdout is a TTY."""
    return hasattr(sys.stdout, 'isatty') and sys.stdout.isatty()


# ANSI color codes
class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    PURPLE = "\033[35m"
    CYAN = "\033[36m"

    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_BLUE = "\033[94m"
    BRIGHT_PURPLE = "\033[95m"
    BRIGHT_CYAN = "\033[96m"

    @classmethod
    def colorize(cls, text: str, *codes: str) -> str:
        """Apply color codes to text if TTY, otherwise return plain text."""
        if not is_tty():
            return text
        return f"{''.join(codes)}{text}{cls.RESET}"

    @classmethod
    def blue_bold(cls, text: str) -> str:
        return cls.colorize(text, cls.BOLD, cls.BRIGHT_BLUE)

    @classmethod
    def red_bold(cls, text: str) -> str:
        return cls.colorize(text, cls.BOLD, cls.BRIGHT_RED)

    @classmethod
    def green_bold(cls, text: str) -> str:
        return cls.colorize(text, cls.BOLD, cls.BRIGHT_GREEN)

    @classmethod
    def yellow_bold(cls, text: str) -> str:
        return cls.colorize(text, cls.BOLD, cls.BRIGHT_YELLOW)

    @classmethod
    def cyan_bold(cls, text: str) -> str:
        return cls.colorize(text, cls.BOLD, cls.BRIGHT_CYAN)

    @classmethod
    def dim(cls, text: str) -> str:
        return cls.colorize(text, cls.DIM)


def print_banner():
    """Print the BioDock banner."""
    border = "#" * 42
    print()
    if is_tty():
        print(Colors.blue_bold(border))
        print(Colors.blue_bold("#") + Colors.blue_bold("    BioDock") + " " + Colors.dim("- Pipeline CLI") + " " * 15 + Colors.blue_bold("#"))
        print(Colors.blue_bold("#") + Colors.dim("    Containerized sequencing analysis") + " " * 3 + Colors.blue_bold("#"))
        print(Colors.blue_bold(border))
    else:
        print(border)
        print("#       BioDock -- Pipeline CLI          #")
        print("#   Containerized sequencing analysis    #")
        print(border)
    print()


# =============================================================================
# Logging
# =============================================================================

class ColorFormatter(logging.Formatter):
    """Prefix records with a timestamp and a colored level tag."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.RED,
    }

    def __init__(self, use_color: Optional[bool] = None):
        super().__init__(datefmt="%H:%M:%S")
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        use_color = is_tty() if self.use_color is None else self.use_color
        timestamp = self.formatTime(record, self.datefmt)
        level = record.levelname
        name = record.name
        if use_color:
            color = self.LEVEL_COLORS.get(record.levelno, "")
            timestamp = f"{Colors.DIM}[{timestamp}]{Colors.RESET}"
            level = f"{Colors.BOLD}{color}{level}{Colors.RESET}"
            name = f"{Colors.PURPLE}{name}{Colors.RESET}"
        else:
            timestamp = f"[{timestamp}]"
        message = f"{timestamp} {level} {name}: {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


ROOT_LOGGER_NAME = "biodock"


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger below the ``biodock`` hierarchy.

    The first call installs a single colorizing stderr handler on the package
    logger; module loggers propagate to it.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ColorFormatter())
        root.addHandler(handler)
        root.setLevel(logging.WARNING)
    return logging.getLogger(name)


def configure_logging(level: Union[int, str] = logging.WARNING) -> None:
    """Set the level of the ``biodock`` logger (names like 'DEBUG' accepted)."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING
    get_logger(ROOT_LOGGER_NAME).setLevel(level)


# =============================================================================
# Stage tracking
# =============================================================================

@dataclass
class Stage:
    """Represents a pipeline stage."""
    name: str
    label: str
    status: str = "pending"  # pending, running, succeeded, failed, skipped
    message: str = ""
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None


DEFAULT_STAGES = [
    ("validate", "Validate Inputs"),
    ("build", "Build Image"),
    ("run", "Run Pipeline"),
]


@dataclass
class ProgressTracker:
    """Tracks the stages of a pipeline run and prints stage updates."""

    pipeline: str
    verbose: bool = False
    stages: List[Stage] = field(default_factory=list)
    current_stage_idx: int = -1
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def __post_init__(self):
        if not self.stages:
            self.stages = [Stage(name=name, label=label) for name, label in DEFAULT_STAGES]

    def _format_status_icon(self, status: str) -> str:
        icons = {
            "pending": Colors.dim("○"),
            "running": Colors.yellow_bold("●"),
            "succeeded": Colors.green_bold("✓"),
            "failed": Colors.red_bold("✗"),
            "skipped": Colors.dim("−"),
        }
        return icons.get(status, "?")

    def _format_label(self, stage: Stage) -> str:
        if stage.status == "running":
            return Colors.yellow_bold(stage.label)
        if stage.status == "succeeded":
            return Colors.green_bold(stage.label)
        if stage.status == "failed":
            return Colors.red_bold(stage.label)
        if stage.status == "skipped":
            return Colors.dim(stage.label)
        return stage.label

    def _print_stage(self, stage: Stage) -> None:
        line = f"  {self._format_status_icon(stage.status)} {self._format_label(stage)}"
        if stage.message:
            line += f" {Colors.dim('- ' + stage.message)}"
        print(line)

    def get_stage(self, stage_name: str) -> Optional[Stage]:
        return next((s for s in self.stages if s.name == stage_name), None)

    def print_header(self):
        completed = sum(1 for s in self.stages if s.status in ("succeeded", "skipped"))
        print(f"\nPipeline: {Colors.cyan_bold(self.pipeline)}  [{completed}/{len(self.stages)}]")
        print(Colors.dim("─" * 50))

    def start_stage(self, stage_name: str, message: str = ""):
        """Mark a stage as started."""
        with self._lock:
            for i, stage in enumerate(self.stages):
                if stage.name == stage_name:
                    stage.status = "running"
                    stage.message = message
                    stage.started_at = datetime.now()
                    self.current_stage_idx = i
                    if self.verbose:
                        self._print_stage(stage)
                    break

    def complete_stage(self, stage_name: str, status: str = "succeeded", message: str = ""):
        """Mark a stage as finished with ``status`` (succeeded, failed or skipped)."""
        with self._lock:
            stage = self.get_stage(stage_name)
            if stage is None:
                return
            stage.status = status
            stage.message = message
            stage.ended_at = datetime.now()
            if self.verbose:
                self._print_stage(stage)


def print_stage_summary(stages: List[Stage]):
    """Print a summary of stage results."""
    succeeded = sum(1 for s in stages if s.status == "succeeded")
    failed = sum(1 for s in stages if s.status == "failed")
    skipped = sum(1 for s in stages if s.status == "skipped")

    print()
    print(Colors.dim("─" * 50))

    summary = f"Summary: {Colors.green_bold(str(succeeded))} succeeded"
    if skipped:
        summary += f", {Colors.dim(str(skipped))} skipped"
    if failed:
        summary += f", {Colors.red_bold(str(failed))} failed"

    print(summary)
