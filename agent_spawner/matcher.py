"""Match outstanding jobs to agent definitions and launch agents.

One call to ``Matcher.run_cycle`` is one scheduling cycle. Per-cycle
bookkeeping lives in AgentCycleState objects keyed by registry index; the
AgentDefinition records themselves are never touched.

Ordering is part of the contract: jobs are visited in snapshot order and, for
each job, agents are tried in registry order. The first agent that is not
failed, is under its spawn limit, and provides every required tag gets the job.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from .launcher import LaunchResult, invoke
from .registry import AgentRegistry

logger = logging.getLogger(__name__)

# Only command steps are run by agents; wait/block/trigger steps are not.
ELIGIBLE_JOB_TYPES = {"script"}
ELIGIBLE_JOB_STATES = {"scheduled", "running"}


@dataclass(frozen=True)
class JobDescriptor:
    """A job from the latest snapshot."""

    type: str
    state: str
    required_capabilities: frozenset[str] = frozenset()
    id: str | None = None

    @property
    def eligible(self) -> bool:
        return self.type in ELIGIBLE_JOB_TYPES and self.state in ELIGIBLE_JOB_STATES


@dataclass
class AgentCycleState:
    """Bookkeeping for one agent during one cycle."""

    jobs_selected: int = 0
    failed: bool = False


@dataclass
class CycleSummary:
    """What the last cycle did, for logging and inspection."""

    launches: int = 0
    matched: int = 0
    unmatched: int = 0
    skipped: int = 0
    states: list[AgentCycleState] = field(default_factory=list)


def job_from_dict(data: dict[str, Any]) -> JobDescriptor:
    """Build a JobDescriptor from one job object of the builds API.

    Raises:
        ValueError: if agent_query_rules is not a list of strings
    """
    rules = data.get("agent_query_rules")
    if rules is None:
        rules = []
    if not isinstance(rules, list) or not all(isinstance(r, str) for r in rules):
        raise ValueError(f"agent_query_rules must be a list of strings, got {rules!r}")
    return JobDescriptor(
        type=data.get("type") or "",
        state=data.get("state") or "",
        required_capabilities=frozenset(rules),
        id=data.get("id"),
    )


def extract_jobs(builds: Iterable[dict[str, Any]]) -> list[JobDescriptor]:
    """Flatten builds into the ordered list of eligible jobs.

    Build order is preserved, then job order within each build.
    """
    jobs = []
    for build in builds:
        for job_data in build.get("jobs") or []:
            job = job_from_dict(job_data)
            if job.eligible:
                jobs.append(job)
    return jobs


class Matcher:
    """Decides which agents to launch for a job snapshot.

    Args:
        registry: Agent definitions in declaration order.
        invoke: Callable that runs a launch command and returns a LaunchResult.
            Injectable for testing.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        invoke: Callable[[Any], LaunchResult] = invoke,
    ):
        self.registry = registry
        self.invoke = invoke
        self.last_cycle: CycleSummary | None = None

    def run_cycle(self, jobs: Sequence[JobDescriptor]) -> None:
        """Match every job in the snapshot, launching agents as needed."""
        states = [AgentCycleState() for _ in self.registry]
        summary = CycleSummary(states=states)
        logger.info("Cycle starting: %d job(s), %d agent(s)", len(jobs), len(self.registry))

        for job in jobs:
            # TODO: decide whether jobs without agent query rules should match
            # any agent; for now they are never matched.
            if not job.required_capabilities:
                logger.debug("Job %s has no agent query rules, skipping", job.id)
                summary.skipped += 1
                continue

            if self._match_job(job, states, summary):
                summary.matched += 1
            else:
                summary.unmatched += 1
                logger.debug("Job %s left unmatched (requires %s)",
                             job.id, sorted(job.required_capabilities))

        self.last_cycle = summary
        logger.info(
            "Cycle complete: %d launch(es), %d matched, %d unmatched, %d skipped",
            summary.launches, summary.matched, summary.unmatched, summary.skipped,
        )

    def _match_job(
        self,
        job: JobDescriptor,
        states: list[AgentCycleState],
        summary: CycleSummary,
    ) -> bool:
        """Credit the job to the first usable agent. Returns False if none is left."""
        for index, agent in enumerate(self.registry):
            state = states[index]
            if state.failed or state.jobs_selected >= agent.spawn_limit:
                continue
            if not agent.provides(job.required_capabilities):
                continue

            if state.jobs_selected > 0:
                # Already launched this cycle; that instance picks up the job.
                state.jobs_selected += 1
                logger.debug("Job %s credited to already-launched agent %s (%d/%d)",
                             job.id, agent.name, state.jobs_selected, agent.spawn_limit)
                return True

            summary.launches += 1
            result = self.invoke(agent.command)
            if result.ok:
                state.jobs_selected += 1
                logger.info("Agent %s launched for job %s", agent.name, job.id)
                return True

            state.failed = True
            logger.warning("Agent %s failed to launch (%s), trying next agent for job %s",
                           agent.name, result.outcome.value, job.id)
        return False
