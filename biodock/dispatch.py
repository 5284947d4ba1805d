"""Run blocking orchestrator calls off the calling thread."""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

from biodock.progress import get_logger
from biodock.result import Error, Result

logger = get_logger(__name__)


class BackgroundRunner:
    """
    Executes calls on a single worker thread and hands back a ``Future``.

    When a ``callback`` is supplied it receives the call's ``Result`` once
    it finishes. A call that raises is logged and reported to the callback as
    an ``Error`` whose ``cause`` is the exception; the future still carries
    the exception. There is no cancellation once a call has started.
    """

    def __init__(self, max_workers: int = 1):
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="biodock")

    def submit(
        self,
        fn: Callable[..., Result[Any]],
        *args: Any,
        callback: Optional[Callable[[Result[Any]], None]] = None,
        **kwargs: Any,
    ) -> "Future[Result[Any]]":
        future = self._pool.submit(fn, *args, **kwargs)
        if callback is not None:
            future.add_done_callback(lambda f: callback(self._outcome(f, fn)))
        return future

    @staticmethod
    def _outcome(future: "Future[Result[Any]]", fn: Callable[..., Any]) -> Result[Any]:
        if future.cancelled():
            return Error(f"{getattr(fn, '__name__', 'call')} was cancelled")
        error = future.exception()
        if error is not None:
            logger.error("%s failed: %s", getattr(fn, "__name__", "call"), error)
            return Error(f"Unexpected error: {error}", cause=error)
        return future.result()

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
