"""BioDock - run containerized analysis pipelines on sequencing data."""

__version__ = "0.1.0"

from biodock.config import Settings
from biodock.executor import CommandExecutor, DefaultCommandExecutor
from biodock.models import CommandResult, ContainerInfo, PipelineDefinition, RuntimeStatus
from biodock.result import Error, Result, Success
from biodock.runner import DockerService
from biodock.validation import FastqValidator
