"""Poll scheduler - decides when to fetch a job snapshot and run a cycle.

Two states:

    Idle     no fetch outstanding; the regular interval timer is armed
    Polling  a fetch (and then the matching cycle) is in progress

The regular timer rearms itself before each poll, so ticks stay on a fixed
cadence regardless of how long a poll takes. On-demand triggers
(``request_poll_soon``) start a poll right away when Idle. While Polling they
arm a single short debounce timer instead, so any number of triggers during one
poll collapse into one follow-up poll. Only one fetch is ever in flight, which
is what keeps matching cycles from overlapping.

Everything runs on one asyncio event loop. The fetch is awaited; the matching
cycle (including launch commands) runs synchronously on the loop thread and
blocks it until done.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from .exceptions import FetchError
from .matcher import JobDescriptor, Matcher

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 60
DEFAULT_DEBOUNCE_SECONDS = 2

FetchJobs = Callable[[], Awaitable[Sequence[JobDescriptor]]]


class PollScheduler:
    """Timing state machine around fetch + Matcher.run_cycle.

    Args:
        fetch_jobs: Async callable returning the current job snapshot. Raises
            FetchError when the snapshot cannot be obtained.
        matcher: Matcher whose run_cycle is called with each snapshot.
        interval: Seconds between regular polls.
        debounce: Seconds to wait before a follow-up poll requested while a
            poll was in flight. Shorter than ``interval``.
        loop: Event loop to schedule on (defaults to the running loop at start()).
    """

    def __init__(
        self,
        fetch_jobs: FetchJobs,
        matcher: Matcher,
        interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        debounce: float = DEFAULT_DEBOUNCE_SECONDS,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self.fetch_jobs = fetch_jobs
        self.matcher = matcher
        self.interval = interval
        self.debounce = debounce
        self._loop = loop
        self._timer: asyncio.TimerHandle | None = None
        self._debounce_timer: asyncio.TimerHandle | None = None
        self._poll_task: asyncio.Task | None = None
        self._stopped = False
        self.polls_started = 0

    @property
    def polling(self) -> bool:
        return self._poll_task is not None

    @property
    def debounce_armed(self) -> bool:
        return self._debounce_timer is not None

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def start(self) -> None:
        """Poll immediately and arm the regular interval timer."""
        self._stopped = False
        logger.info("Poll scheduler starting (interval=%ss, debounce=%ss)",
                    self.interval, self.debounce)
        self._on_timer()

    async def stop(self) -> None:
        """Cancel pending timers and wait for any in-flight poll to finish."""
        self._stopped = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._debounce_timer is not None:
            self._debounce_timer.cancel()
            self._debounce_timer = None
        if self._poll_task is not None:
            await asyncio.shield(self._poll_task)
        logger.info("Poll scheduler stopped")

    def request_poll_soon(self) -> None:
        """On-demand trigger, called by the webhook listener."""
        logger.debug("Poll requested")
        self.poll_now()

    def poll_now(self) -> None:
        """Start a poll, or arm the debounce timer if one is already running."""
        if self._stopped:
            return
        if self._poll_task is not None:
            if self._debounce_timer is None:
                logger.debug("Poll in flight, follow-up poll in %ss", self.debounce)
                self._debounce_timer = self.loop.call_later(self.debounce, self._on_debounce)
            return

        self.polls_started += 1
        self._poll_task = self.loop.create_task(self._poll())

    def _on_timer(self) -> None:
        self._timer = self.loop.call_later(self.interval, self._on_timer)
        self.poll_now()

    def _on_debounce(self) -> None:
        self._debounce_timer = None
        self.poll_now()

    async def _poll(self) -> None:
        try:
            try:
                jobs = await self.fetch_jobs()
            except FetchError as e:
                logger.warning("Fetch failed, skipping cycle: %s", e)
                return
            logger.debug("Fetched %d eligible job(s)", len(jobs))
            self.matcher.run_cycle(jobs)
        except Exception:
            logger.exception("Poll cycle failed")
        finally:
            self._poll_task = None
