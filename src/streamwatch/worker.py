"""
Base class for long-running background workers.

Provides:
- Lifecycle states (start/stop)
- Ownership and cancellation of background tasks
- Health reporting
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, List
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from .utils.logging import get_logger


class WorkerState(Enum):
    """Worker lifecycle states."""
    CREATED = "created"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


class WorkerError(Exception):
    """Base exception for worker lifecycle errors."""
    pass


class WorkerNotRunningError(WorkerError):
    """Raised when a running worker is required."""
    pass


@dataclass
class HealthStatus:
    """Health status information."""
    healthy: bool
    last_check: datetime
    details: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


class BaseWorker(ABC):
    """
    Abstract base class for background workers.

    Subclasses implement ``_start``/``_stop`` and register the tasks they
    spawn with ``_spawn`` so ``stop`` can cancel them.
    """

    def __init__(self, name: str):
        self.name = name
        self.logger = get_logger(f"streamwatch.{name}")
        self.state = WorkerState.CREATED
        self._tasks: List[asyncio.Task] = []
        self._failure: Optional[BaseException] = None

    @property
    def is_running(self) -> bool:
        return self.state == WorkerState.RUNNING

    @property
    def failure(self) -> Optional[BaseException]:
        """Exception that killed one of the worker's tasks, if any."""
        return self._failure

    async def start(self) -> None:
        """Start the worker and its background tasks."""
        if self.state == WorkerState.RUNNING:
            raise WorkerError(f"{self.name} already running")

        self.state = WorkerState.STARTING
        self.logger.info("starting_worker")
        try:
            await self._start()
        except Exception as e:
            self.state = WorkerState.FAILED
            self.logger.error("start_failed", error=str(e), exc_info=True)
            raise WorkerError(f"Failed to start {self.name}: {e}") from e
        self.state = WorkerState.RUNNING
        self.logger.info("worker_started")

    async def stop(self) -> None:
        """Cancel background tasks and stop."""
        if self.state not in (WorkerState.RUNNING, WorkerState.FAILED):
            self.logger.warning("stop_called_when_not_running", state=self.state.value)
            return

        self.state = WorkerState.STOPPING
        self.logger.info("stopping_worker")

        for task in self._tasks:
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._tasks.clear()

        await self._stop()
        self.state = WorkerState.STOPPED
        self.logger.info("worker_stopped")

    async def health_check(self) -> HealthStatus:
        """Report health; a worker whose task died is unhealthy."""
        if self._failure is not None:
            return HealthStatus(
                healthy=False,
                last_check=datetime.now(timezone.utc),
                error=str(self._failure),
            )
        return HealthStatus(
            healthy=self.is_running,
            last_check=datetime.now(timezone.utc),
            details=self._health_details(),
        )

    def _spawn(self, coro, name: Optional[str] = None) -> asyncio.Task:
        """Run ``coro`` as a task owned by this worker."""
        task = asyncio.create_task(coro, name=name or self.name)
        task.add_done_callback(self._on_task_done)
        self._tasks.append(task)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._failure = error
            self.state = WorkerState.FAILED
            self.logger.critical(
                "worker_task_died",
                task=task.get_name(),
                error=str(error),
                error_type=type(error).__name__,
            )

    @abstractmethod
    async def _start(self) -> None:
        """Worker-specific start logic."""
        pass

    async def _stop(self) -> None:
        """Worker-specific stop logic."""
        pass

    def _health_details(self) -> Dict[str, Any]:
        return {}


__all__ = [
    'BaseWorker',
    'WorkerState',
    'WorkerError',
    'WorkerNotRunningError',
    'HealthStatus',
]
