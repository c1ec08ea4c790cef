# -----------------------------------------------------------------------------
# Project: ToDo Tokens v0.1
# File:    manager.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# manager.py
'''
High-level service layer. Wires wallet client, catalog, orchestrator, verifier and
availability monitor together and gives callers (the CLI) a small interface.
'''

import logging
from typing import Any, List, Optional, Union

from todotokens.config import Config
from todotokens.catalog import RecordCatalog
from todotokens.chain_verifier import ChainVerifier
from todotokens.core_defs import Outpoint, Record
from todotokens.monitor import AvailabilityMonitor
from todotokens.orchestrator import TransactionOrchestrator, WorkflowResult
from todotokens.wallet_client import HttpWalletClient, SigningService, check_for_signing_service

logger = logging.getLogger(__name__)


class TodoManager:

    def __init__(self, signing_service: Optional[SigningService] = None,
                 verifier: Optional[ChainVerifier] = None,
                 monitor: Optional[AvailabilityMonitor] = None,
                 verify_evidence: bool = Config.VERIFY_EVIDENCE,
                 strict_evidence: bool = Config.STRICT_EVIDENCE):
        self.signing_service = signing_service or HttpWalletClient()
        self.catalog = RecordCatalog(self.signing_service)
        if verifier is None and verify_evidence:
            verifier = ChainVerifier()
        self.verifier = verifier
        self.orchestrator = TransactionOrchestrator(
            self.signing_service, self.catalog, verifier,
            verify_evidence=verify_evidence, strict_evidence=strict_evidence,
        )
        self.monitor = monitor or AvailabilityMonitor(check=check_for_signing_service)
        self.monitor.on_available = self._on_wallet_available

    async def _on_wallet_available(self, status: int):
        logger.info("Wallet found, loading tasks.")
        await self.catalog.discover()

    async def open(self) -> List[Record]:
        """
        First discovery. If the wallet is not ready yet, the availability monitor
        is started and retries discovery once the wallet answers.
        """
        records = await self.catalog.discover()
        if self.catalog.loading:
            self.monitor.start()
        return records

    async def wait_for_tasks(self, timeout: Optional[float] = None) -> bool:
        """
        Waits until the catalog has been loaded (wallet reachable).

        Raises:
            TodoTokenError: the discovery run after the wallet appeared failed for a
                reason other than the wallet not being ready.
        """
        if self.catalog.loading and not await self.monitor.wait_until_available(timeout):
            return False
        # on_available ran a discovery; loading is False unless that one hit the wallet too early
        if self.catalog.last_error is not None:
            raise self.catalog.last_error
        if self.catalog.loading:
            await self.catalog.discover()
        return not self.catalog.loading

    def list_tasks(self) -> List[Record]:
        return list(self.catalog)

    async def add_task(self, task: str, amount: Any = Config.DEFAULT_AMOUNT) -> WorkflowResult:
        return await self.orchestrator.create(task, amount)

    async def complete_task(self, task: Union[Record, Outpoint, str]) -> WorkflowResult:
        if isinstance(task, Record):
            return await self.orchestrator.redeem(task)
        return await self.orchestrator.redeem_by_identity(task)

    async def verify_task(self, task: Union[Record, Outpoint, str]) -> bool:
        record = task if isinstance(task, Record) else self.catalog.find(task)
        if record is None:
            raise KeyError(f"Task {task} not found")
        verifier = self.verifier or ChainVerifier()
        return await verifier.verify(record.evidence, True)

    async def close(self):
        await self.monitor.stop()
