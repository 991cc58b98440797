"""
Agent Service

Owns and wires the components of the agent:
- Poller (miner -> spool)
- Sweeper (spool -> work queue -> collector)
- Optional health endpoint

Startup order: spool directory -> sweeper -> poller -> health server.
Shutdown order is the reverse; the in-flight upload gets a bounded
grace period and anything not delivered stays in the spool.
"""

import asyncio
import signal
from datetime import datetime, timezone

from aiohttp import web

from ..common.config import AgentConfig
from ..common.logging_setup import get_service_logger
from .device.miner_client import MinerClient
from .device.poller import Poller
from .spool.backoff import RetryBackoff
from .spool.store import SpoolStore
from .spool.sweeper import Sweeper
from .spool.uploader import Uploader

logger = get_service_logger("agent")


class AgentService:
    """
    Telemetry agent.

    Components can be injected for tests; by default they are built
    from the configuration.
    """

    def __init__(
        self,
        config: AgentConfig,
        client: MinerClient | None = None,
        uploader: Uploader | None = None,
    ):
        self.config = config

        self.client = client or MinerClient(
            host=config.miner_host,
            port=config.miner_port,
            timeout=config.query_timeout,
            max_response_bytes=config.max_response_bytes,
        )
        self.uploader = uploader or Uploader(
            collector_url=config.collector_url,
            server_password=config.server_password,
            timeout=config.upload_timeout,
        )

        self.store = SpoolStore(config.spool_dir)
        self.sweeper = Sweeper(
            store=self.store,
            uploader=self.uploader,
            backoff=RetryBackoff(config.retry_backoff_base, config.retry_backoff_cap),
            sweep_interval=config.sweep_interval,
            debounce=config.sweep_debounce,
        )
        # Every spooled reading triggers a (debounced) sweep
        self.store.on_change = self.sweeper.notify

        self.poller = Poller(
            client=self.client,
            store=self.store,
            device_id=config.device_name,
            interval_seconds=config.interval,
        )

        self._health_runner: web.AppRunner | None = None
        self._shutdown_event = asyncio.Event()
        self._is_running = False
        self._started_at: datetime | None = None

    async def start(self) -> None:
        """Start all components."""
        logger.info("Starting agent")

        self.store.ensure_directory()
        await self.sweeper.start()
        await self.poller.start()

        if self.config.health_port:
            await self._start_health_server()

        self._is_running = True
        self._started_at = datetime.now(timezone.utc)
        logger.info(
            f"Agent started (device: {self.config.device_name}, "
            f"miner: {self.config.miner_address}, collector: {self.config.collector_url})",
            extra={
                "device_name": self.config.device_name,
                "spool_dir": self.config.spool_dir,
                "pending": self.store.pending_count(),
            },
        )

    async def stop(self) -> None:
        """Stop polling, finish the in-flight upload, release resources."""
        logger.info("Stopping agent")
        self._is_running = False

        await self.poller.stop()
        await self.sweeper.stop(grace_period=self.config.shutdown_grace_period)
        await self.uploader.close()
        await self._stop_health_server()

        logger.info(
            f"Agent stopped ({self.store.pending_count()} readings pending in spool)"
        )

    async def run(self) -> None:
        """Start, wait for SIGINT/SIGTERM (or request_shutdown), then stop."""
        try:
            await self.start()
            self._setup_signal_handlers()
            await self._shutdown_event.wait()
        finally:
            await self.stop()

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    def _setup_signal_handlers(self) -> None:
        """Setup graceful shutdown signal handlers"""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._handle_shutdown)
            except NotImplementedError:
                # Windows doesn't support add_signal_handler
                signal.signal(sig, lambda s, f: self._handle_shutdown())

    def _handle_shutdown(self) -> None:
        """Handle shutdown signal"""
        logger.info("Received shutdown signal")
        self.request_shutdown()

    # ============================================
    # HEALTH
    # ============================================

    def get_status(self) -> dict:
        return {
            "status": "healthy" if self._is_running else "stopped",
            "service": "rigstat",
            "device_name": self.config.device_name,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "pending": self.store.pending_count(),
            "poller": self.poller.get_status(),
            "sweeper": self.sweeper.get_status(),
        }

    def create_health_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/health", self._health_handler)
        return app

    async def _start_health_server(self) -> None:
        """Start the health check HTTP server"""
        self._health_runner = web.AppRunner(self.create_health_app())
        await self._health_runner.setup()

        site = web.TCPSite(self._health_runner, "127.0.0.1", self.config.health_port)
        await site.start()

        logger.info(f"Health server started on port {self.config.health_port}")

    async def _stop_health_server(self) -> None:
        """Stop the health check HTTP server"""
        if self._health_runner:
            await self._health_runner.cleanup()
            self._health_runner = None

    async def _health_handler(self, request: web.Request) -> web.Response:
        """Handle health check requests"""
        status = self.get_status()
        return web.json_response(status, status=200 if self._is_running else 503)
