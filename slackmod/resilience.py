"""
Resilience patterns for outbound Slack calls.

Provides a per-operation circuit breaker, a concurrency-capped request queue
with an inter-dispatch delay, and a batch helper. All state lives in memory
for the lifetime of the process; a restart resets every circuit to CLOSED.

State mutations happen without an intervening ``await``, so the compound
read-decide-write steps are atomic under a single event loop. Code that
shares these objects across OS threads needs its own lock.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncGenerator, Awaitable, Callable, Optional, TypeVar

from slackmod.exceptions import CircuitHalfOpenLimitError, CircuitOpenError
from slackmod.resilience_config import CircuitBreakerConfig, RequestQueueConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """
    Circuit breaker guarding a single named Slack operation.

    Implements three states:
    - CLOSED: Normal operation; failures are counted
    - OPEN: After ``failure_threshold`` failures, calls fail fast until
      ``timeout_seconds`` have passed since the last failure
    - HALF_OPEN: Up to ``half_open_max_calls`` trial calls are admitted;
      a success closes the circuit, a failure reopens it

    Usage:
        breaker = CircuitBreaker("chat.postMessage")
        result = await breaker.call(lambda: client.chat_postMessage(...))

        # or
        async with breaker.protected_call():
            result = await client.chat_postMessage(...)
    """

    name: str = "circuit"
    config: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    _state: CircuitState = field(default=CircuitState.CLOSED, repr=False)
    _failures: int = field(default=0, repr=False)
    _last_failure_time: float = field(default=0.0, repr=False)
    _half_open_calls: int = field(default=0, repr=False)

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failures(self) -> int:
        """Failure count since the circuit last closed."""
        return self._failures

    @property
    def half_open_calls(self) -> int:
        return self._half_open_calls

    def cooldown_remaining(self) -> float:
        """Seconds until an open circuit may go half-open."""
        if self._state != CircuitState.OPEN:
            return 0.0
        elapsed = self.clock() - self._last_failure_time
        return max(0.0, self.config.timeout_seconds - elapsed)

    def before_call(self) -> None:
        """Admit or reject a call, advancing OPEN to HALF_OPEN when due.

        Raises:
            CircuitOpenError: If the circuit is open and still cooling down
            CircuitHalfOpenLimitError: If all half-open trial slots are taken
        """
        if self._state == CircuitState.OPEN:
            if self.clock() - self._last_failure_time > self.config.timeout_seconds:
                self._state = CircuitState.HALF_OPEN
                self._half_open_calls = 0
                logger.info(f"Circuit breaker HALF_OPEN for {self.name}")
            else:
                raise CircuitOpenError(self.name, self.cooldown_remaining())

        if self._state == CircuitState.HALF_OPEN:
            if self._half_open_calls >= self.config.half_open_max_calls:
                raise CircuitHalfOpenLimitError(self.name, self.config.half_open_max_calls)
            self._half_open_calls += 1

    def record_success(self) -> None:
        """Record a success. Closes a half-open circuit."""
        if self._state == CircuitState.HALF_OPEN:
            logger.info(f"Circuit breaker CLOSED for {self.name}")
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._half_open_calls = 0

    def record_failure(self) -> bool:
        """
        Record a failure. Returns True if the circuit just opened.
        """
        self._failures += 1
        self._last_failure_time = self.clock()

        if self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            logger.warning(f"Circuit breaker re-OPENED for {self.name} after failed trial call")
            return True

        if self._state == CircuitState.CLOSED and self._failures >= self.config.failure_threshold:
            self._state = CircuitState.OPEN
            logger.error(
                f"Circuit breaker OPEN for {self.name} after {self._failures} failures"
            )
            return True
        return False

    def reset(self) -> None:
        """Return to CLOSED with all counters cleared."""
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._last_failure_time = 0.0
        self._half_open_calls = 0

    def get_status(self) -> str:
        """Get circuit status as reported to callers: 'closed', 'open' or 'half_open'."""
        return self._state.value

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict for debugging and health output."""
        return {
            "name": self.name,
            "state": self._state.value,
            "failures": self._failures,
            "half_open_calls": self._half_open_calls,
            "cooldown_remaining": round(self.cooldown_remaining(), 2),
        }

    @asynccontextmanager
    async def protected_call(self) -> AsyncGenerator[None, None]:
        """
        Async context manager for circuit-breaker-protected calls.

        Checks the circuit before the call and records success/failure
        after the call completes.

        Raises:
            CircuitOpenError: If the circuit is open
            CircuitHalfOpenLimitError: If the half-open trial limit is reached
        """
        self.before_call()
        try:
            yield
        except asyncio.CancelledError:
            # Task cancellation is not a service failure - don't record
            raise
        except Exception as e:
            logger.debug(f"Circuit breaker recorded failure for {self.name}: {type(e).__name__}: {e}")
            self.record_failure()
            raise
        else:
            self.record_success()

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` under this breaker."""
        async with self.protected_call():
            return await operation()


@dataclass
class QueuedCall:
    """A pending operation submitted to the request queue."""

    operation: Callable[[], Awaitable[Any]]
    future: asyncio.Future
    enqueued_at: float = field(default_factory=time.monotonic)


class RequestQueue:
    """
    FIFO request queue with a concurrency cap and a fixed dispatch delay.

    At most ``max_concurrent`` operations run at once. Each waiting operation
    is dispatched after ``dispatch_delay_seconds``, one dispatch at a time,
    which smooths bursts (a leaky bucket, no burst credit). A failed
    operation rejects only its own caller.

    Once dispatched an operation runs to completion; cancelling the caller
    does not cancel it.
    """

    def __init__(self, config: Optional[RequestQueueConfig] = None):
        self.config = config or RequestQueueConfig()
        self._pending: deque[QueuedCall] = deque()
        self._active = 0
        self._dispatching = False
        self._peak_active = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def peak_active(self) -> int:
        """Highest number of simultaneously active operations observed."""
        return self._peak_active

    async def enqueue(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Submit an operation and wait for its result."""
        loop = asyncio.get_running_loop()
        call = QueuedCall(operation=operation, future=loop.create_future())
        self._pending.append(call)
        self._process_next()
        return await call.future

    def _process_next(self) -> None:
        if self._dispatching or not self._pending:
            return
        if self._active >= self.config.max_concurrent:
            return

        self._dispatching = True
        call = self._pending.popleft()
        task = asyncio.ensure_future(self._dispatch(call))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _dispatch(self, call: QueuedCall) -> None:
        await asyncio.sleep(self.config.dispatch_delay_seconds)

        self._dispatching = False
        self._active += 1
        self._peak_active = max(self._peak_active, self._active)
        # Let the next waiter start its delay while this one runs
        self._process_next()

        try:
            result = await call.operation()
        except Exception as e:
            if not call.future.done():
                call.future.set_exception(e)
        except BaseException as e:
            if not call.future.done():
                if isinstance(e, asyncio.CancelledError):
                    call.future.cancel()
                else:
                    call.future.set_exception(e)
            raise
        else:
            if not call.future.done():
                call.future.set_result(result)
        finally:
            self._active -= 1
            self._process_next()

    def stats(self) -> dict[str, Any]:
        return {
            "active": self._active,
            "pending": len(self._pending),
            "peak_active": self._peak_active,
            "max_concurrent": self.config.max_concurrent,
        }


async def process_batch(
    items: list[T],
    processor: Callable[[T], Awaitable[R]],
    batch_size: int = 5,
    delay_seconds: float = 1.0,
) -> list[R]:
    """Process items in concurrent batches with a pause between batches.

    A batch that raises is logged and skipped; later batches still run.

    Args:
        items: Items to process
        processor: Coroutine function applied to each item
        batch_size: Items processed concurrently per batch
        delay_seconds: Sleep between batches

    Returns:
        Results of the successful batches, in item order
    """
    results: list[R] = []

    for start in range(0, len(items), batch_size):
        batch = items[start:start + batch_size]
        try:
            batch_results = await asyncio.gather(*(processor(item) for item in batch))
            results.extend(batch_results)
        except Exception as e:
            logger.warning(f"Batch processing failed for batch starting at index {start}: {e}")

        if start + batch_size < len(items):
            await asyncio.sleep(delay_seconds)

    return results


__all__ = [
    "CircuitState",
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitHalfOpenLimitError",
    "QueuedCall",
    "RequestQueue",
    "process_batch",
]
