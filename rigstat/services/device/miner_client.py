"""
Miner API Client

Async client for the cgminer-style JSON command API exposed by the
mining device over TCP.

Every query opens a fresh connection, writes one JSON command, then
reads until the device closes the socket or sends its NUL terminator.
Failures are raised as TransportError, never logged here.
"""

import asyncio
import json

from ...common.exceptions import TransportError
from ...common.logging_setup import get_service_logger

logger = get_service_logger("device.miner")

TERMINATOR = b"\x00"
READ_CHUNK = 4096


class MinerClient:
    """
    One-shot TCP client for the miner API.

    Handles:
    - Connection per query (no pooling, no retries)
    - Read deadline covering connect, write and read
    - Response size cap (oversize is an error, not a truncation)
    """

    def __init__(
        self,
        host: str,
        port: int,
        timeout: float = 10.0,
        max_response_bytes: int = 1024 * 1024,
    ):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.max_response_bytes = max_response_bytes

    async def query(self, command: str, parameter: str = "") -> str:
        """
        Send a command and return the raw response text.

        Args:
            command: API command (e.g. "devs", "summary", "pools")
            parameter: Command parameter, empty for most commands

        Returns:
            Response text with trailing NUL padding removed

        Raises:
            TransportError: connect/read failure, timeout or oversize response
        """
        request = json.dumps({"command": command, "parameter": parameter}).encode()

        try:
            raw = await asyncio.wait_for(self._exchange(request), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise TransportError(
                f"no complete response to '{command}' within {self.timeout}s",
                host=self.host,
                port=self.port,
                timed_out=True,
            )
        except OSError as e:
            raise TransportError(
                f"{command} failed: {e}",
                host=self.host,
                port=self.port,
            ) from e

        logger.debug(
            f"Received {len(raw)} bytes for '{command}'",
            extra={"command": command, "bytes": len(raw)},
        )
        # Anything after the first NUL is padding
        payload = raw.split(TERMINATOR, 1)[0]
        return payload.decode("utf-8", errors="replace").strip()

    async def devs(self) -> str:
        """Query per-device telemetry."""
        return await self.query("devs")

    async def _exchange(self, request: bytes) -> bytes:
        reader, writer = await asyncio.open_connection(self.host, self.port)
        try:
            writer.write(request)
            await writer.drain()

            buffer = bytearray()
            while True:
                chunk = await reader.read(READ_CHUNK)
                if not chunk:
                    break
                buffer.extend(chunk)
                if len(buffer) > self.max_response_bytes:
                    raise TransportError(
                        f"response exceeds {self.max_response_bytes} bytes",
                        host=self.host,
                        port=self.port,
                    )
                if TERMINATOR in chunk:
                    break
            return bytes(buffer)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass
