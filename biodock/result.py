"""Two-variant outcome returned by the orchestrator, validator and catalog."""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    """Operation completed; ``data`` carries the payload."""

    data: T
    message: str = ""

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Error:
    """Operation failed; ``message`` is meant to be shown to the user verbatim."""

    message: str
    cause: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return False


Result = Union[Success[T], Error]
