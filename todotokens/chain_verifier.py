# -----------------------------------------------------------------------------
# Project: ToDo Tokens v0.1
# File:    chain_verifier.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# chain_verifier.py
'''
SPV check of evidence bundles (BEEF): structural validity of the bundle plus a
comparison of every merkle root in it with the block header at the same height.
Parsing, proof handling and the root checks are done by bsv-sdk; this module adds
the local header cache and the bundle formats the wallet hands out.
'''

import logging
from typing import Optional, Tuple, Union

from bsv import Transaction
from bsv.chaintracker import ChainTracker
from bsv.chaintrackers import WhatsOnChainTracker
from bsv.transaction.beef import BEEF_V1, BEEF_V2, Beef, parse_beef_ex

from todotokens.config import Config
from todotokens import blockchain_api
from todotokens.block_manager import BlockHeaderManager
from todotokens.errors import VerificationError

logger = logging.getLogger(__name__)


def read_evidence(data: Union[bytes, bytearray]) -> Tuple[Beef, Optional[Transaction]]:
    """
    Parses a BEEF V1, BEEF V2 or Atomic BEEF bundle into a V2 `Beef`.

    Returns the bundle and its subject transaction with inputs linked to their
    parents: the atomic subject if there is one, otherwise the last transaction.

    Raises:
        VerificationError: the bundle is unreadable.
    """
    try:
        beef, _, subject_tx = parse_beef_ex(bytes(data))
        if beef.version == BEEF_V1:
            # The SDK keeps only the last V1 transaction as a bare entry; rebuild with its ancestry
            if subject_tx is None:
                raise ValueError("BEEF V1 bundle without transactions")
            beef = Beef(version=BEEF_V2)
            beef.merge_transaction(subject_tx)
        elif subject_tx is None:
            last = next((btx for btx in reversed(list(beef.txs.values())) if btx.tx_obj is not None), None)
            if last is not None:
                subject_tx = beef.find_transaction_for_signing(last.txid).tx_obj
    except Exception as e:
        raise VerificationError(f"Unreadable evidence bundle: {e}") from e
    return beef, subject_tx


class CachedWhatsOnChainTracker(WhatsOnChainTracker):
    """Merkle roots from WhatsOnChain block headers, cached by height in a local JSON file."""

    def __init__(self, header_manager: Optional[BlockHeaderManager] = None):
        super().__init__(network=Config.ACTIVE_NETWORK_NAME)
        self.URL = Config.WOC_API_BASE_URL
        self.header_manager = header_manager or BlockHeaderManager(Config.BLOCK_HEADERS_FILE)

    async def merkle_root_for_height(self, height: int) -> Optional[str]:
        cached = self.header_manager.get_root(height)
        if cached:
            return cached

        logger.info(f"  Block header for height {height} NOT in cache. Fetching LIVE.")
        header = await blockchain_api.get_block_header_height(height)
        if not header or not header.get("merkleroot"):
            logger.error(f"  Could not fetch merkle root for block height {height}.")
            return None

        self.header_manager.put_root(height, header["merkleroot"])
        self.header_manager.save()
        return header["merkleroot"]

    async def is_valid_root_for_height(self, root: str, height: int) -> bool:
        expected = await self.merkle_root_for_height(height)
        if expected is None:
            return False
        if expected != root:
            logger.warning(f"  Merkle root mismatch at height {height}: evidence {root}, chain {expected}")
            return False
        return True


class ChainVerifier:

    def __init__(self, chain_tracker: Optional[ChainTracker] = None):
        self.chain_tracker = chain_tracker or CachedWhatsOnChainTracker()

    async def verify(self, evidence: Union[bytes, Beef], allow_txid_only: bool = True) -> bool:
        """
        Returns True if the bundle is structurally valid and all its merkle roots
        belong to the chain. Never raises for malformed evidence.
        """
        try:
            beef = evidence if isinstance(evidence, Beef) else read_evidence(evidence)[0]
        except VerificationError as e:
            logger.warning(f"Evidence could not be parsed: {e}")
            return False

        if not await beef.verify(self.chain_tracker, allow_txid_only):
            logger.warning(f"Evidence is not valid:\n{beef.to_log_string()}")
            return False

        logger.info(f"Evidence verified: {len(beef.txs)} transactions, {len(beef.bumps)} merkle proofs checked.")
        return True
