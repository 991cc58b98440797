"""
Device Poller

Polls the miner for `devs` telemetry on a fixed interval and spools
each reading. Polling has no durability requirement: a reading that
cannot be fetched or parsed is dropped and the next tick samples again.
"""

import asyncio
from typing import TYPE_CHECKING

from ...common.exceptions import ParseError, TransportError, WriteError
from ...common.logging_setup import get_service_logger
from ...common.scheduler import ScheduledLoop
from .codec import Reading, decode
from .miner_client import MinerClient

if TYPE_CHECKING:
    from ..spool.store import SpoolStore

logger = get_service_logger("device.poller")


class Poller:
    """
    Poll loop: sleep, query, decode, persist.

    Persisting runs in a background task so a slow disk never delays
    the next tick.
    """

    def __init__(
        self,
        client: MinerClient,
        store: "SpoolStore",
        device_id: str,
        interval_seconds: float,
    ):
        self.client = client
        self.store = store
        self.device_id = device_id
        self.interval_seconds = interval_seconds

        self._loop = ScheduledLoop(interval_seconds, self.poll_once, name="poll")
        self._pending_writes: set[asyncio.Task] = set()

        # Stats
        self.polls = 0
        self.readings_persisted = 0
        self.readings_dropped = 0
        self.last_event_time: int | None = None

    async def start(self) -> None:
        await self._loop.start()
        logger.info(
            f"Poller started for {self.client.host}:{self.client.port} "
            f"(every {self.interval_seconds}s, device: {self.device_id})"
        )

    async def stop(self) -> None:
        """Stop polling and wait for readings already being written."""
        await self._loop.stop()
        await self.flush()
        logger.info("Poller stopped")

    async def poll_once(self) -> Reading | None:
        """
        Run one poll cycle.

        Returns:
            The decoded reading (its write may still be in progress), or
            None when the reading was dropped
        """
        self.polls += 1

        try:
            raw = await self.client.devs()
        except TransportError as e:
            self.readings_dropped += 1
            logger.warning(
                f"Miner query failed: {e.message}",
                extra={"host": e.host, "port": e.port, "timed_out": e.timed_out},
            )
            return None

        try:
            reading = decode(raw, self.device_id)
        except ParseError as e:
            self.readings_dropped += 1
            logger.warning(f"Dropping reading: {e.message}", extra={"response_bytes": len(raw)})
            return None

        self.last_event_time = reading.event_time

        task = asyncio.create_task(self._persist(reading), name=f"persist-{reading.spool_name}")
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)
        return reading

    async def _persist(self, reading: Reading) -> None:
        try:
            await self.store.put(reading)
        except WriteError as e:
            self.readings_dropped += 1
            # No in-memory fallback: this reading is lost
            logger.error(
                f"READING LOST, failed writing {reading.spool_name}: {e.message}",
                extra={"entry": reading.spool_name},
            )
            return
        self.readings_persisted += 1

    async def flush(self) -> None:
        """Wait for in-progress writes."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    def get_status(self) -> dict:
        return {
            "running": self._loop.is_running,
            "polls": self.polls,
            "readings_persisted": self.readings_persisted,
            "readings_dropped": self.readings_dropped,
            "last_event_time": self.last_event_time,
            "skipped_ticks": self._loop.skipped_count,
        }
