"""
Bounded worker pool that runs at most one generation per key at a time.

Callers that ask for a key already being generated wait on the same future
instead of starting a second model call.
"""
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Any, Callable, Dict, Optional

from core.config import GENERATION_TIMEOUT_SEC, MAX_CONCURRENT_LLM_CALLS
from core.errors import GenerationFailure

logger = logging.getLogger(__name__)

# How often a waiting caller re-checks its own cancel token
POLL_INTERVAL_SEC = 0.05


class CancelToken:
    """Cooperative cancellation flag shared between a caller and a generation."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, what: str = "generation"):
        if self._event.is_set():
            raise GenerationFailure(f"{what} was cancelled")


class _InFlight:
    def __init__(self):
        self.token = CancelToken()
        self.future: Optional[Future] = None
        self.waiters = 0


class InFlightRegistry:
    """
    Registry of in-progress generations keyed by the id they produce.

    The work function receives the generation's own ``CancelToken`` and must
    check it before writing anything. That token is set only when every
    caller waiting on the generation has cancelled or timed out.
    """

    def __init__(self, max_workers: int = MAX_CONCURRENT_LLM_CALLS, timeout: float = GENERATION_TIMEOUT_SEC):
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="generation")
        self._lock = threading.Lock()
        self._entries: Dict[str, _InFlight] = {}

    def run(
        self,
        key: str,
        work: Callable[[CancelToken], Any],
        cancel_token: Optional[CancelToken] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Run ``work`` for ``key`` or join the run already in progress.

        Raises:
            GenerationFailure: the caller cancelled or the wait timed out
            Exception: whatever ``work`` raised, re-raised to every waiter
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.token.cancelled:
                entry = _InFlight()
                self._entries[key] = entry
                entry.future = self._executor.submit(self._execute, key, entry, work)
            else:
                logger.info(f"Joining in-flight generation for {key}")
            entry.waiters += 1

        try:
            return self._wait(key, entry, cancel_token, timeout if timeout is not None else self.timeout)
        finally:
            self._release(key, entry)

    def is_in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def shutdown(self, wait: bool = True):
        with self._lock:
            for entry in self._entries.values():
                entry.token.cancel()
        self._executor.shutdown(wait=wait)

    def _execute(self, key: str, entry: _InFlight, work: Callable[[CancelToken], Any]) -> Any:
        try:
            entry.token.raise_if_cancelled(f"Generation for {key}")
            return work(entry.token)
        finally:
            with self._lock:
                if self._entries.get(key) is entry:
                    del self._entries[key]

    def _wait(self, key: str, entry: _InFlight, cancel_token: Optional[CancelToken], timeout: float) -> Any:
        deadline = time.monotonic() + timeout
        while True:
            if cancel_token is not None and cancel_token.cancelled:
                raise GenerationFailure(f"Generation for {key} was cancelled by the caller")

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.error(f"Generation for {key} timed out after {timeout}s")
                raise GenerationFailure(f"Generation for {key} timed out after {timeout}s")

            try:
                return entry.future.result(timeout=min(remaining, POLL_INTERVAL_SEC))
            except FutureTimeoutError:
                continue

    def _release(self, key: str, entry: _InFlight):
        with self._lock:
            entry.waiters -= 1
            if entry.waiters == 0 and not entry.future.done():
                # Nobody is waiting any more; the result must not be written
                entry.token.cancel()
                entry.future.cancel()
                if self._entries.get(key) is entry:
                    del self._entries[key]
                logger.info(f"Abandoned generation for {key}")
