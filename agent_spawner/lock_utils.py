"""Single-instance guard for the daemon using fcntl.flock."""

import fcntl
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator


def acquire_lock(path: Path | str) -> int | None:
    """Try to take an exclusive, non-blocking lock on a file.

    On success the holder's PID is written into the file so a second daemon
    can report who owns it.

    Returns:
        File descriptor if the lock was acquired, None if another process holds it.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = os.open(str(path), os.O_RDWR | os.O_CREAT, 0o644)
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
        os.close(fd)
        return None

    os.ftruncate(fd, 0)
    os.write(fd, f"{os.getpid()}\n".encode())
    return fd


def release_lock(fd: int) -> None:
    """Release a lock taken with acquire_lock."""
    try:
        fcntl.flock(fd, fcntl.LOCK_UN)
    except OSError:
        pass
    finally:
        os.close(fd)


def read_lock_owner(path: Path | str) -> int | None:
    """Return the PID recorded in a lock file, if any."""
    try:
        return int(Path(path).read_text().strip())
    except (OSError, ValueError):
        return None


@contextmanager
def locked_or_skip(path: Path | str) -> Generator[bool, None, None]:
    """Hold the lock for the duration of the block.

    Yields:
        True if the lock was acquired, False if another process holds it

    Example:
        with locked_or_skip('/run/agent-spawner.lock') as acquired:
            if not acquired:
                return
            ...
    """
    fd = acquire_lock(path)
    try:
        yield fd is not None
    finally:
        if fd is not None:
            release_lock(fd)
