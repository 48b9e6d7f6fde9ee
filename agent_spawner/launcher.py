"""Run an agent's launch command and classify how it exited."""

import logging
import signal
import subprocess
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

# sysexits.h EX_TEMPFAIL: the agent could not start right now but nothing is
# wrong with it. Counted as handled so the same job does not relaunch it.
EXIT_TEMPFAIL = 75

# Status the shell reports for a command it cannot find; reused when an argv
# command fails to start at all.
EXIT_NOT_FOUND = 127


class LaunchOutcome(Enum):
    SUCCESS = "success"
    TEMPORARY_FAILURE = "temporary_failure"
    FAILURE = "failure"
    KILLED = "killed"


@dataclass(frozen=True)
class LaunchResult:
    """Classified result of one launch command.

    ``code`` is set for FAILURE, ``signal`` for KILLED.
    """

    outcome: LaunchOutcome
    code: int | None = None
    signal: int | None = None

    @property
    def ok(self) -> bool:
        """True when the matcher should count the job as handled."""
        return self.outcome in (LaunchOutcome.SUCCESS, LaunchOutcome.TEMPORARY_FAILURE)


def classify(returncode: int) -> LaunchResult:
    """Map a subprocess return code to a LaunchResult.

    Negative return codes mean the child was terminated by that signal.
    """
    if returncode == 0:
        return LaunchResult(LaunchOutcome.SUCCESS)
    if returncode == EXIT_TEMPFAIL:
        return LaunchResult(LaunchOutcome.TEMPORARY_FAILURE)
    if returncode < 0:
        return LaunchResult(LaunchOutcome.KILLED, signal=-returncode)
    return LaunchResult(LaunchOutcome.FAILURE, code=returncode)


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return str(signum)


def invoke(command: str | tuple[str, ...] | list[str]) -> LaunchResult:
    """Run a launch command to completion and classify its exit status.

    Blocks until the command exits. There is no timeout: a command that hangs
    stalls the caller until it returns.

    Args:
        command: Shell string, or argv sequence exec'd without a shell.

    Returns:
        LaunchResult describing the exit.
    """
    shell = isinstance(command, str)
    argv = command if shell else list(command)

    logger.info("Launching agent: %s", command)
    try:
        completed = subprocess.run(argv, shell=shell, check=False)
    except OSError as e:
        logger.warning("Launch command could not be started: %s (%s)", command, e)
        return LaunchResult(LaunchOutcome.FAILURE, code=EXIT_NOT_FOUND)

    result = classify(completed.returncode)
    if result.outcome is LaunchOutcome.SUCCESS:
        logger.info("Launch command succeeded: %s", command)
    elif result.outcome is LaunchOutcome.TEMPORARY_FAILURE:
        logger.info("Launch command reported temporary failure (exit %d), treating as launched: %s",
                    EXIT_TEMPFAIL, command)
    elif result.outcome is LaunchOutcome.KILLED:
        logger.warning("Launch command killed by %s: %s", _signal_name(result.signal), command)
    else:
        logger.warning("Launch command failed with exit code %d: %s", result.code, command)
    return result
