from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
from typing import Any, Callable, Coroutine, Hashable
from uuid import uuid4

from fitcheck_client.http import ApiHttpError
from fitcheck_client.models import MutationOutcome
from fitcheck_client.session import AuthenticationError

logger = logging.getLogger(__name__)

Notifier = Callable[[str], None]

DEFAULT_ERROR_MESSAGE = "Something went wrong. Please try again."


class RemoteRejection(RuntimeError):
    """The server answered, but with ``success: false``."""


def adjust_counter(entity: dict[str, Any], field: str, delta: int) -> int:
    """Add ``delta`` to an integer counter on ``entity``, clamping at zero."""
    current = int(entity.get(field) or 0)
    updated = current + delta
    if updated < 0:
        logger.warning(
            "Counter %s would drop to %d, clamping to 0 until the next refresh",
            field,
            updated,
        )
        updated = 0
    entity[field] = updated
    return updated


def explicit_failure(response: Any) -> str | None:
    """Return the message of a ``success: false`` body, or None for any other response."""
    if isinstance(response, dict) and response.get("success") is False:
        return str(response.get("message") or "").strip()
    return None


def new_temp_id() -> str:
    return f"temp-{uuid4().hex}"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def created_entity(response: Any, name: str) -> dict[str, Any] | None:
    """Pick the created entity out of a write response, if the server echoed one."""
    if not isinstance(response, dict):
        return None
    for key in (name, "data"):
        value = response.get(key)
        if isinstance(value, dict) and value.get("text") is not None:
            return value
    return None


class OptimisticMutationCoordinator:
    """Applies local changes ahead of their remote confirmation.

    One coordinator serves one feature (feed, chat, profile). Each call to
    :meth:`apply` is keyed by its target, for example ``("like", post_id)``;
    while a mutation for a key is unresolved a second attempt on the same key
    is ignored. Mutations on different keys run concurrently unless they
    share a queue.

    The remote call is a blocking callable. It runs in a worker thread and is
    bounded by ``timeout_seconds``; a timeout counts as a failure.
    """

    def __init__(self, timeout_seconds: float, notify: Notifier | None = None):
        self._timeout_seconds = timeout_seconds
        self._notify = notify
        self._in_flight: set[Hashable] = set()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._queues: dict[Hashable, asyncio.Lock] = {}
        self._queue_users: dict[Hashable, int] = {}

    def in_flight(self, key: Hashable) -> bool:
        return key in self._in_flight

    @property
    def pending_count(self) -> int:
        return len(self._in_flight)

    def apply(
        self,
        key: Hashable,
        local_change: Callable[[], Any],
        remote_call: Callable[[], Any],
        *,
        rollback: Callable[[Any], None],
        reconcile: Callable[[Any], None] | None = None,
        error_message: str = DEFAULT_ERROR_MESSAGE,
        queue: Hashable | None = None,
    ) -> asyncio.Task[MutationOutcome] | None:
        """Apply ``local_change`` now and settle it against ``remote_call`` later.

        ``local_change`` returns the baseline that ``rollback`` receives on
        failure. ``reconcile`` receives the server response on success.
        Mutations sharing a ``queue`` send their remote calls one at a time in
        the order they were applied.
        Returns the settling task, or None when ``key`` is already in flight.
        Must be called from a running event loop.
        """
        if key in self._in_flight:
            logger.debug("Ignoring mutation on %r while another is in flight", key)
            return None

        loop = asyncio.get_running_loop()
        baseline = local_change()
        self._in_flight.add(key)
        lock = self._acquire_queue(queue) if queue is not None else None

        task = loop.create_task(
            self._settle(key, baseline, remote_call, rollback, reconcile, error_message, lock, queue)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    async def call(self, func: Callable[..., Any], *args: Any) -> Any:
        """Run a blocking API call off the loop under the shared timeout.

        A timeout surfaces as a transport-level :class:`ApiHttpError`.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise ApiHttpError(
                status_code=0,
                message=f"Request timed out after {self._timeout_seconds}s",
            ) from exc

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Track a background coroutine, such as a refresh after a mutation."""
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def notify(self, message: str) -> None:
        if self._notify is not None:
            self._notify(message)
        else:
            logger.error("Unreported failure: %s", message)

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()

    async def _settle(
        self,
        key: Hashable,
        baseline: Any,
        remote_call: Callable[[], Any],
        rollback: Callable[[Any], None],
        reconcile: Callable[[Any], None] | None,
        error_message: str,
        lock: asyncio.Lock | None = None,
        queue: Hashable | None = None,
    ) -> MutationOutcome:
        try:
            try:
                if lock is not None:
                    # asyncio.Lock wakes waiters first in, first out
                    async with lock:
                        response = await self._remote(remote_call)
                else:
                    response = await self._remote(remote_call)
                rejection = explicit_failure(response)
                if rejection is not None:
                    raise RemoteRejection(rejection or error_message)
            except asyncio.TimeoutError:
                logger.warning("Mutation on %r timed out after %ss", key, self._timeout_seconds)
                return self._fail(baseline, rollback, error_message)
            except RemoteRejection as exc:
                logger.warning("Mutation on %r rejected by server: %s", key, exc)
                return self._fail(baseline, rollback, str(exc))
            except ApiHttpError as exc:
                logger.warning("Mutation on %r failed: %s", key, exc)
                return self._fail(baseline, rollback, exc.server_message or error_message)
            except AuthenticationError as exc:
                logger.warning("Mutation on %r needs a session: %s", key, exc)
                return self._fail(baseline, rollback, str(exc))
            except asyncio.CancelledError:
                logger.debug("Mutation on %r cancelled, rolling back", key)
                rollback(baseline)
                raise
            except Exception:
                logger.exception("Mutation on %r raised unexpectedly", key)
                self._fail(baseline, rollback, error_message)
                raise

            if reconcile is not None:
                reconcile(response)
            return MutationOutcome(success=True, response=response)
        finally:
            self._in_flight.discard(key)
            if lock is not None:
                self._release_queue(queue)

    def _acquire_queue(self, queue: Hashable) -> asyncio.Lock:
        self._queue_users[queue] = self._queue_users.get(queue, 0) + 1
        return self._queues.setdefault(queue, asyncio.Lock())

    def _release_queue(self, queue: Hashable) -> None:
        # the lock is dropped only once no mutation holds or awaits it
        remaining = self._queue_users.get(queue, 1) - 1
        if remaining > 0:
            self._queue_users[queue] = remaining
            return
        self._queue_users.pop(queue, None)
        self._queues.pop(queue, None)

    async def _remote(self, remote_call: Callable[[], Any]) -> Any:
        return await asyncio.wait_for(
            asyncio.to_thread(remote_call),
            timeout=self._timeout_seconds,
        )

    def _fail(self, baseline: Any, rollback: Callable[[Any], None], message: str) -> MutationOutcome:
        rollback(baseline)
        self.notify(message)
        return MutationOutcome(success=False, error=message)
