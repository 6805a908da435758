"""
Status polling for remote builds.

This module provides:
- JobCallbacks: progress/terminal listeners keyed by job id
- StatusPoller: drives one job from BUILDING to a terminal state
- PollerManager: the table of in-flight pollers, one task per job id
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from functools import partial
from typing import TYPE_CHECKING, Any

from ..config import PollingConfig
from ..errors import RegistryError, TransientPollError
from ..logging import PollLog, StructuredLogger, get_logger, timed
from .registry import JobRegistry
from .types import BuildJob, JobState

if TYPE_CHECKING:
    from ..client import BuildService

ProgressCallback = Callable[[str, float | None], Awaitable[Any] | Any]
TerminalCallback = Callable[[JobState, str | None], Awaitable[Any] | Any]


class JobCallbacks:
    """Listeners registered by the presentation layer, per job id.

    Listeners may be plain functions or coroutine functions. A listener that
    raises is logged and skipped; it never stops polling.
    """

    def __init__(self, logger: StructuredLogger | None = None) -> None:
        self._progress: dict[str, list[ProgressCallback]] = {}
        self._terminal: dict[str, list[TerminalCallback]] = {}
        self._logger = logger or get_logger()

    def on_progress(self, job_id: str, callback: ProgressCallback) -> Callable[[], None]:
        """Register a progress listener. Returns a function that unregisters it."""
        self._progress.setdefault(job_id, []).append(callback)
        return partial(self._discard, self._progress, job_id, callback)

    def on_terminal(self, job_id: str, callback: TerminalCallback) -> Callable[[], None]:
        """Register a terminal listener. Returns a function that unregisters it."""
        self._terminal.setdefault(job_id, []).append(callback)
        return partial(self._discard, self._terminal, job_id, callback)

    @staticmethod
    def _discard(table: dict[str, list], job_id: str, callback: Callable) -> None:
        listeners = table.get(job_id)
        if listeners and callback in listeners:
            listeners.remove(callback)
            if not listeners:
                del table[job_id]

    def clear(self, job_id: str) -> None:
        self._progress.pop(job_id, None)
        self._terminal.pop(job_id, None)

    async def emit_progress(self, job_id: str, progress: float | None) -> None:
        for callback in list(self._progress.get(job_id, ())):
            await self._invoke(callback, job_id, progress, job_id=job_id)

    async def emit_terminal(self, job_id: str, state: JobState, detail: str | None) -> None:
        for callback in list(self._terminal.get(job_id, ())):
            await self._invoke(callback, state, detail, job_id=job_id)

    async def _invoke(self, callback: Callable, *args: Any, job_id: str) -> None:
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            self._logger.log_error(exc, "Build callback raised", job_id=job_id)


class StatusPoller:
    """Polls one build until the service reports a terminal state.

    Queries are strictly sequential. Transient failures never end the loop;
    only ``completed``/``failed`` from the service, or the polling deadline,
    do. On a terminal state the registry entry is removed before listeners
    are told, and listeners are told once.

    A poller instance runs once.
    """

    def __init__(
        self,
        job: BuildJob,
        service: BuildService,
        registry: JobRegistry,
        *,
        callbacks: JobCallbacks | None = None,
        config: PollingConfig | None = None,
        logger: StructuredLogger | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.job = job
        self._service = service
        self._registry = registry
        self._callbacks = callbacks or JobCallbacks()
        self._config = config or PollingConfig()
        self._logger = logger or get_logger()
        self._clock = clock

        self.attempts = 0
        self._started = False
        self._terminal_fired = False

    @property
    def job_id(self) -> str:
        return self.job.job_id

    @property
    def _fields(self) -> dict[str, str]:
        return {"job_id": self.job.job_id, "owner_id": self.job.owner_id}

    @property
    def deadline(self) -> float | None:
        if self._config.max_poll_duration is None:
            return None
        return self.job.started_at + self._config.max_poll_duration

    def _next_error_delay(self, current: float) -> float:
        cfg = self._config
        if cfg.max_interval is None:
            return cfg.interval
        grown = max(current, cfg.interval) * cfg.backoff_factor
        return min(grown, cfg.max_interval)

    async def run(self) -> BuildJob:
        """Poll until terminal and return the final job record."""
        if self._started:
            raise RuntimeError(f"Poller for {self.job_id} has already run")
        self._started = True

        cfg = self._config
        self._logger.info("Polling started", initial_delay=cfg.initial_delay, **self._fields)
        await asyncio.sleep(cfg.initial_delay)

        delay = cfg.interval
        while not self.job.state.is_terminal:
            deadline = self.deadline
            if deadline is not None and self._clock() >= deadline:
                await self._finish(self.job.expire(
                    f"No final build status after {cfg.max_poll_duration:.0f}s; giving up"
                ))
                break

            self.attempts += 1
            poll = PollLog(job_id=self.job_id, attempt=self.attempts)
            try:
                with timed() as timer:
                    report = await self._service.fetch_status(self.job_id)
            except (TransientPollError, asyncio.TimeoutError) as exc:
                delay = self._next_error_delay(delay)
                poll.duration_ms = timer.elapsed_ms
                poll.error = str(exc)
                poll.next_delay = delay
                self._logger.log_poll(poll)
                await asyncio.sleep(delay)
                continue

            delay = cfg.interval
            poll.duration_ms = timer.elapsed_ms
            poll.found = report.found
            poll.state = report.state.value
            poll.progress = report.progress

            if report.found and report.state is JobState.COMPLETED:
                self._logger.log_poll(poll)
                await self._finish(self.job.complete(report.artifact_url or ""))
                break
            if report.found and report.state is JobState.FAILED:
                self._logger.log_poll(poll)
                await self._finish(self.job.fail(report.error_message or "APK build failed"))
                break

            poll.next_delay = delay
            self._logger.log_poll(poll)
            self.job = self.job.with_progress(report.progress)
            await self._callbacks.emit_progress(self.job_id, report.progress)
            await asyncio.sleep(delay)

        return self.job

    async def _finish(self, job: BuildJob) -> None:
        """Record a terminal state: registry first, then listeners, once."""
        self.job = job
        try:
            await self._registry.remove(job.owner_id, job.job_id)
            await self._registry.remove_meta(job.job_id)
        except RegistryError as exc:
            self._logger.log_error(exc, "Could not clear finished build from registry", **self._fields)

        if job.state is JobState.COMPLETED:
            self._logger.info("Build completed", artifact_url=job.artifact_url, **self._fields)
        else:
            self._logger.warning(f"Build {job.state.value}", error=job.error_message, **self._fields)

        if self._terminal_fired:
            return
        self._terminal_fired = True
        await self._callbacks.emit_terminal(job.job_id, job.state, job.detail)
        self._callbacks.clear(job.job_id)


class PollerManager:
    """Owns the in-flight pollers, keyed by job id.

    Created once per session and closed at logout/shutdown. Starting a job
    that is already being polled returns the running task instead of adding
    a second poller.

    Finished tasks move to a history capped at ``max_finished`` entries, so
    ``wait`` still returns the final job for recently finished builds while
    a long session does not accumulate every poller it ever ran.
    """

    def __init__(
        self,
        service: BuildService,
        registry: JobRegistry,
        *,
        callbacks: JobCallbacks | None = None,
        config: PollingConfig | None = None,
        logger: StructuredLogger | None = None,
        max_finished: int = 100,
    ) -> None:
        if max_finished < 0:
            raise ValueError("max_finished must be >= 0")
        self.service = service
        self.registry = registry
        self.callbacks = callbacks or JobCallbacks(logger)
        self.config = config or PollingConfig()
        self._logger = logger or get_logger()
        self.max_finished = max_finished
        self._tasks: dict[str, asyncio.Task[BuildJob]] = {}
        self._pollers: dict[str, StatusPoller] = {}
        self._finished: OrderedDict[str, asyncio.Task[BuildJob]] = OrderedDict()

    def start(self, job: BuildJob) -> asyncio.Task[BuildJob]:
        """Begin polling ``job`` in the background (fire-and-forget)."""
        existing = self._tasks.get(job.job_id)
        if existing is not None and not existing.done():
            return existing

        poller = StatusPoller(
            job,
            self.service,
            self.registry,
            callbacks=self.callbacks,
            config=self.config,
            logger=self._logger,
        )
        task = asyncio.create_task(poller.run(), name=f"build-poll:{job.job_id}")
        self._tasks[job.job_id] = task
        self._pollers[job.job_id] = poller
        task.add_done_callback(partial(self._on_done, job.job_id))
        return task

    def _on_done(self, job_id: str, task: asyncio.Task[BuildJob]) -> None:
        if self._tasks.get(job_id) is task:
            del self._tasks[job_id]
            self._pollers.pop(job_id, None)
            # Listeners added after the terminal notification would never fire.
            self.callbacks.clear(job_id)
            self._finished.pop(job_id, None)
            self._finished[job_id] = task
            while len(self._finished) > self.max_finished:
                self._finished.popitem(last=False)

        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.log_error(exc, "Poller stopped unexpectedly", job_id=job_id)

    def is_polling(self, job_id: str) -> bool:
        task = self._tasks.get(job_id)
        return task is not None and not task.done()

    def active_job_ids(self) -> list[str]:
        return [job_id for job_id, task in self._tasks.items() if not task.done()]

    def poller(self, job_id: str) -> StatusPoller | None:
        return self._pollers.get(job_id)

    async def wait(self, job_id: str) -> BuildJob | None:
        """Wait for a job's poller to finish. None if nothing is polling it."""
        task = self._tasks.get(job_id) or self._finished.get(job_id)
        if task is None:
            return None
        return await asyncio.shield(task)

    def is_finished(self, job_id: str) -> bool:
        """True if a poller for ``job_id`` ran to completion and is still in the history."""
        return job_id in self._finished and job_id not in self._tasks

    async def close(self) -> None:
        """Cancel every poller. Registry entries stay for the next session."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._pollers.clear()
        self._finished.clear()


__all__ = [
    "JobCallbacks",
    "StatusPoller",
    "PollerManager",
    "ProgressCallback",
    "TerminalCallback",
]
