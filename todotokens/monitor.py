# -----------------------------------------------------------------------------
# Project: ToDo Tokens v0.1
# File:    monitor.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# monitor.py
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from todotokens.config import Config
from todotokens.wallet_client import check_for_signing_service

logger = logging.getLogger(__name__)

STATUS_MISSING = 0


class AvailabilityMonitor:
    """
    Polls the wallet on a fixed interval until it answers, then stops by itself.

    `service_missing` mirrors the last answer (True while the wallet is not running).
    `on_available` is awaited once when the wallet is found; waiters are released after it returns.
    """

    def __init__(self, check: Callable[[], Awaitable[int]] = check_for_signing_service,
                 interval: float = Config.AVAILABILITY_POLL_INTERVAL,
                 on_available: Optional[Callable[[int], Awaitable[None]]] = None):
        self.check = check
        self.interval = interval
        self.on_available = on_available

        self.service_missing = False
        self.last_status: Optional[int] = None
        self._available = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def available(self) -> bool:
        return self._available.is_set()

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task  # type: ignore[return-value]
        self._task = asyncio.create_task(self._run(), name="wallet-availability-monitor")
        return self._task

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            try:
                status = await self.check()
            except Exception as e:
                logger.error(f"Error checking for wallet: {e}")
                continue

            self.last_status = status
            if status == STATUS_MISSING:
                if not self.service_missing:
                    logger.warning("Wallet (Signing Service) not found. Please launch and unlock it.")
                self.service_missing = True
                continue

            self.service_missing = False
            if status < 0:
                logger.warning("Wallet answered with an unexpected network.")
            logger.info("Wallet (Signing Service) is available.")
            try:
                if self.on_available is not None:
                    await self.on_available(status)
            finally:
                # Waiters wake once the callback has settled, successful or not
                self._available.set()
            return

    async def wait_until_available(self, timeout: Optional[float] = None) -> bool:
        self.start()
        try:
            await asyncio.wait_for(self._available.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def stop(self):
        """
        Cancels the poll. A check in flight is discarded.
        An error the finished poll ended with (from `on_available`) is logged, not raised.
        """
        if self._task is None:
            return
        task, self._task = self._task, None
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("Availability monitor cancelled.")
        except Exception as e:
            logger.error(f"Availability monitor ended with an error: {e}")
