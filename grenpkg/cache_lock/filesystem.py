import os
import shutil
import time
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

Clock = Callable[[], int]


def system_clock_ms() -> int:
    return time.time_ns() // 1_000_000


class LockFilesystem(Protocol):
    """Filesystem operations the lock driver relies on.

    Every method raises ``OSError`` on failure; ``FileExistsError`` and
    ``FileNotFoundError`` are the two cases the lock treats specially.
    """

    def create_marker(self, marker: Path) -> None:
        """Create the marker directory atomically; raise FileExistsError if it exists."""
        ...

    def last_accessed_ms(self, marker: Path) -> int:
        """Return the marker's last-access time in epoch milliseconds."""
        ...

    def touch(self, marker: Path) -> None:
        """Set the marker's access and modification times to now."""
        ...

    def remove(self, marker: Path) -> None: ...


class LocalFilesystem:
    """``LockFilesystem`` backed by the local OS."""

    def create_marker(self, marker: Path) -> None:
        # mkdir is atomic and fails with FileExistsError if another process won
        os.mkdir(marker)

    def last_accessed_ms(self, marker: Path) -> int:
        return os.stat(marker).st_atime_ns // 1_000_000

    def touch(self, marker: Path) -> None:
        os.utime(marker)

    def remove(self, marker: Path) -> None:
        shutil.rmtree(marker)
