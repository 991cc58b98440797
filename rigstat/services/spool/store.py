"""
Spool Store

Directory of one file per reading that has not been delivered yet.

Robustness Guarantees:
1. File presence is the only record of pending delivery (no manifest)
2. Files are written to a temp name then renamed into place
3. Same device + event time overwrites the same file (dedup key)
4. Temp files are never listed as entries
"""

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from ...common.exceptions import DeleteError, SpoolError, WriteError
from ...common.logging_setup import get_service_logger
from ..device.codec import Reading, encode

logger = get_service_logger("spool.store")


@dataclass(frozen=True)
class SpoolEntry:
    """Handle to a spool file; content is read lazily"""
    name: str
    path: Path

    def open(self) -> bytes:
        """
        Read the entry content.

        Raises:
            FileNotFoundError: entry was already delivered and removed
        """
        return self.path.read_bytes()


class SpoolStore:
    """
    Durable pending-delivery queue backed by a directory.

    Args:
        directory: Spool directory (created by ensure_directory)
        on_change: Called after every successful put, normally
            Sweeper.notify
    """

    def __init__(
        self,
        directory: str | Path,
        on_change: Callable[[], None] | None = None,
    ):
        self.directory = Path(directory)
        self.on_change = on_change

    def ensure_directory(self) -> None:
        """Create the spool directory if it doesn't exist."""
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SpoolError(f"cannot create spool directory {self.directory}: {e}") from e

    def entry(self, name: str) -> SpoolEntry:
        return SpoolEntry(name=name, path=self.directory / name)

    async def put(self, reading: Reading) -> SpoolEntry:
        """
        Persist a reading and notify the sweeper.

        Raises:
            WriteError: serialization or disk write failed
        """
        name = reading.spool_name
        try:
            content = encode(reading)
        except (TypeError, ValueError) as e:
            raise WriteError(f"cannot serialize {name}: {e}", name) from e

        try:
            await asyncio.to_thread(self._write, name, content)
        except OSError as e:
            raise WriteError(f"cannot write {name}: {e}", name) from e

        logger.debug(f"Spooled {name} ({len(content)} bytes)", extra={"entry": name})

        if self.on_change is not None:
            self.on_change()

        return self.entry(name)

    def _write(self, name: str, content: bytes) -> None:
        tmp_path = self.directory / f".{name}.tmp"
        with open(tmp_path, "wb") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.directory / name)

    def list(self) -> list[SpoolEntry]:
        """
        List pending entries in directory order.

        Raises:
            SpoolError: directory cannot be read
        """
        entries = []
        try:
            with os.scandir(self.directory) as it:
                for dirent in it:
                    if dirent.name.startswith("."):
                        continue
                    try:
                        if not dirent.is_file():
                            continue
                    except OSError:
                        # Removed between listing and stat
                        continue
                    entries.append(SpoolEntry(name=dirent.name, path=Path(dirent.path)))
        except OSError as e:
            raise SpoolError(f"cannot list {self.directory}: {e}") from e
        return entries

    def remove(self, name: str) -> None:
        """
        Remove a delivered entry.

        Raises:
            DeleteError: removal failed; `missing` is set when the file
                was already gone
        """
        try:
            (self.directory / name).unlink()
        except FileNotFoundError as e:
            raise DeleteError(f"{name} already removed", name, missing=True) from e
        except OSError as e:
            raise DeleteError(f"cannot remove {name}: {e}", name) from e

    def pending_count(self) -> int:
        try:
            return len(self.list())
        except SpoolError:
            return 0
