"""
Per-channel reconciliation agent.

Each agent owns one destination channel and processes snapshots strictly
one at a time in its own task. Producers hand snapshots over through a
single-slot queue, so a slow agent throttles its producer instead of
building a backlog of stale snapshots.
"""

import asyncio
import itertools
from datetime import timedelta
from typing import Any, Dict, Optional, Sequence

from ..models.stream import EntryBook, Snapshot, subset
from ..persistence.base import PersistenceAdapter, RateLimiter
from ..utils.config import SyncConfig
from ..utils.errors import ReloadRequired
from ..worker import BaseWorker, WorkerNotRunningError
from .reconciler import Clock, PassResult, Reconciler, utc_now
from .recovery import recover
from .writer import MessageWriter


_agent_ids = itertools.count()


class Agent(BaseWorker):
    """Keeps one channel's stream messages in sync with submitted snapshots."""

    def __init__(
        self,
        adapter: PersistenceAdapter,
        channel_id: str,
        filtered: bool = False,
        settings: Optional[SyncConfig] = None,
        clock: Clock = utc_now,
    ):
        self.agent_id = next(_agent_ids)
        super().__init__(f"agent.{self.agent_id}")
        self.logger = self.logger.bind(agent_id=self.agent_id, channel_id=channel_id)

        self.settings = settings or SyncConfig()
        self.adapter = adapter
        self.channel_id = channel_id
        self.filtered = filtered
        self.icons: Sequence[str] = self.settings.icon_urls

        self.limiter = RateLimiter(self.settings.rate_limit_delay)
        self.writer = MessageWriter(
            adapter, channel_id, self.icons, self.limiter, self.settings.rate_limit_delay
        )
        self.reconciler = Reconciler(
            self.writer,
            dwell=timedelta(seconds=self.settings.dwell_seconds),
            clock=clock,
            agent_id=self.agent_id,
        )

        self.live = EntryBook()
        self.expiring = EntryBook()
        self.needs_reload = True
        self.inbox: asyncio.Queue = asyncio.Queue(maxsize=1)

        self.passes = 0
        self.reloads = 0
        self.aborted = 0
        self.last_result: Optional[PassResult] = None

    def select(self, snapshot: Snapshot) -> Snapshot:
        """The part of a full snapshot this agent posts."""
        return subset(snapshot) if self.filtered else snapshot

    async def submit(self, snapshot: Snapshot) -> None:
        """
        Hand a snapshot to the agent.

        Waits while another snapshot is already pending.

        Raises:
            WorkerNotRunningError: the agent is not started or its task died
        """
        if self.failure is not None:
            raise WorkerNotRunningError(f"{self.name} died: {self.failure}") from self.failure
        if not self._tasks:
            raise WorkerNotRunningError(f"{self.name} is not running")
        worker = self._tasks[0]
        put = asyncio.ensure_future(self.inbox.put(snapshot))
        try:
            done, _ = await asyncio.wait({put, worker}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            put.cancel()
            raise
        if put not in done:
            put.cancel()
            raise WorkerNotRunningError(f"{self.name} died: {self.failure}") from self.failure

    async def _start(self) -> None:
        self._spawn(self._run(), name=self.name)

    async def _run(self) -> None:
        pending: Optional[Snapshot] = None
        while True:
            if self.needs_reload:
                await self.reload()
            if pending is None:
                pending = await self.inbox.get()
            if await self.process(pending):
                pending = None

    async def reload(self) -> None:
        """Replace both books with state read back from the channel."""
        self.live, self.expiring = await recover(
            self.adapter,
            self.channel_id,
            self.icons,
            self.limiter,
            limit=self.settings.history_limit,
            retry_delay=self.settings.rate_limit_delay,
        )
        self.needs_reload = False
        self.reloads += 1
        self.logger.info(
            "agent_loaded",
            live=len(self.live),
            expiring=len(self.expiring),
            filtered=self.filtered,
        )

    async def process(self, snapshot: Snapshot) -> bool:
        """
        Run one reconciliation pass.

        Returns False when the pass was aborted; the books are then stale
        and the agent reloads before its next pass.
        """
        try:
            result = await self.reconciler.reconcile(self.live, self.expiring, snapshot)
        except ReloadRequired as e:
            self.logger.error("pass_aborted", error=e.to_dict())
            self.needs_reload = True
            self.aborted += 1
            return False
        except Exception as e:
            self.logger.error("pass_failed", error=str(e), error_type=type(e).__name__, exc_info=True)
            self.needs_reload = True
            self.aborted += 1
            return False

        self.passes += 1
        self.last_result = result
        self.logger.debug("pass_ok", live=len(self.live), expiring=len(self.expiring))
        return True

    def _health_details(self) -> Dict[str, Any]:
        return {
            "channel_id": self.channel_id,
            "filtered": self.filtered,
            "live": len(self.live),
            "expiring": len(self.expiring),
            "passes": self.passes,
            "reloads": self.reloads,
            "aborted": self.aborted,
            "creates": self.writer.creates,
            "edits": self.writer.edits,
        }
