# -----------------------------------------------------------------------------
# Project: ToDo Tokens v0.1
# File:    catalog.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# catalog.py
'''
In-memory list of the user's open task tokens, newest first.
Rebuilt from the wallet's "todo tokens" basket on each discovery pass.
'''

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from bsv.transaction.beef import Beef

from todotokens.config import Config
from todotokens import record_codec
from todotokens.chain_verifier import read_evidence
from todotokens.core_defs import Outpoint, Record, from_byte_list
from todotokens.encryption import EncryptionAdapter
from todotokens.errors import RecordDecodeError, VerificationError, is_service_unavailable
from todotokens.wallet_client import SigningService

logger = logging.getLogger(__name__)


@dataclass
class DiscoveryFailure:
    outpoint: str
    error: BaseException


class RecordCatalog:

    def __init__(self, signing_service: SigningService, encryption: Optional[EncryptionAdapter] = None,
                 basket: str = Config.BASKET, limit: int = Config.LIST_OUTPUTS_LIMIT):
        self.signing_service = signing_service
        self.encryption = encryption or EncryptionAdapter(signing_service)
        self.basket = basket
        self.limit = limit

        self.records: List[Record] = []
        self.loading = True
        self.last_error: Optional[BaseException] = None
        self.failures: List[DiscoveryFailure] = []

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(list(self.records))

    def find(self, identity: Union[Outpoint, str]) -> Optional[Record]:
        outpoint = Outpoint.parse(identity)
        return next((r for r in self.records if r.identity == outpoint), None)

    async def _decode_output(self, output: Dict[str, Any], beef: Optional[Beef], beef_bytes: bytes) -> Record:
        outpoint = Outpoint.parse(output["outpoint"])

        if output.get("lockingScript"):
            locking_script_hex = output["lockingScript"]
        else:
            if beef is None:
                raise RecordDecodeError(f"No transaction data returned for {outpoint}")
            found = beef.find_transaction(outpoint.txid)
            if found is None or found.tx_obj is None:
                raise RecordDecodeError(f"Transaction {outpoint.txid} missing in the returned BEEF")
            tx = found.tx_obj
            if outpoint.index >= len(tx.outputs):
                raise RecordDecodeError(f"Output {outpoint.index} missing in transaction {outpoint.txid}")
            locking_script_hex = tx.outputs[outpoint.index].locking_script.hex()

        ciphertext = record_codec.decode_ciphertext(locking_script_hex)
        task = await self.encryption.decrypt(ciphertext)

        return Record(
            identity=outpoint,
            plaintext_payload=task,
            value=int(output.get("satoshis") or 0),
            locking_script=locking_script_hex,
            evidence=beef_bytes,
        )

    async def _decode_or_none(self, output: Dict[str, Any], beef: Optional[Beef], beef_bytes: bytes,
                              failures: List[DiscoveryFailure]) -> Optional[Record]:
        try:
            return await self._decode_output(output, beef, beef_bytes)
        except Exception as e:
            if is_service_unavailable(e):
                raise
            logger.error(f"Error decrypting task {output.get('outpoint')}: {e}")
            failures.append(DiscoveryFailure(str(output.get("outpoint")), e))
            return None

    async def discover(self) -> List[Record]:
        """
        Loads all tokens from the basket, decrypting them concurrently.
        Tokens that fail to decode or decrypt are dropped (see `failures`).

        Wallet-not-ready errors are absorbed: the result is empty and `loading` stays True
        until a later discovery succeeds. Every other error propagates.
        """
        failures: List[DiscoveryFailure] = []
        try:
            listing = await self.signing_service.list_outputs(
                self.basket, include="entire transactions", limit=self.limit
            )

            beef_bytes = from_byte_list(listing.get("BEEF"))
            beef = None
            if beef_bytes:
                try:
                    beef, _ = read_evidence(beef_bytes)
                except VerificationError as e:
                    logger.error(f"Basket listing returned unreadable BEEF: {e}")

            outputs = listing.get("outputs") or []
            results = await asyncio.gather(
                *(self._decode_or_none(output, beef, beef_bytes, failures) for output in outputs)
            )
        except Exception as e:
            if is_service_unavailable(e):
                logger.info(f"Wallet not ready, tasks not loaded yet: {e}")
                self.loading = True
                return []
            logger.error(f"Failed to load ToDo tasks! Error: {e}")
            self.last_error = e
            self.loading = False
            raise

        decrypted = [record for record in results if record is not None]
        # The basket lists oldest first; newest tasks go to the top
        decrypted.reverse()

        self.records = decrypted
        self.failures = failures
        self.loading = False
        self.last_error = None
        logger.info(f"Loaded {len(decrypted)} of {len(outputs)} task tokens from basket '{self.basket}'.")
        return list(decrypted)

    def insert(self, record: Record):
        """Prepends a freshly created record without a rediscovery."""
        self.records = [record] + [r for r in self.records if r.identity != record.identity]

    def remove(self, record: Union[Record, Outpoint, str]) -> bool:
        identity = record.identity if isinstance(record, Record) else Outpoint.parse(record)
        before = len(self.records)
        self.records = [r for r in self.records if r.identity != identity]
        return len(self.records) != before
