# -----------------------------------------------------------------------------
# Project: ToDo Tokens v0.1
# File:    pushdrop.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# pushdrop.py
'''
Locking and unlocking of data-carrying tokens ("push and drop" scripts).

lock():   asks the wallet for the owner's derived public key and places the
          data fields behind `<pubkey> OP_CHECKSIG`, dropped again before the check.
unlock(): returns an unlocker that signs one input of a spending transaction
          with the same derived key. The wallet does the ECDSA work.
'''

import logging
from typing import List, Optional, Union

from bsv import Script, Transaction
from bsv.constants import SIGHASH
from bsv.hash import sha256

from todotokens.config import Config
from todotokens import record_codec
from todotokens.errors import UnlockError
from todotokens.wallet_client import ProtocolID, SigningService

logger = logging.getLogger(__name__)

SIGNATURE_SCOPES = {
    "all": SIGHASH.ALL,
    "none": SIGHASH.NONE,
    "single": SIGHASH.SINGLE,
}


def sighash_flag(sign_outputs: str, anyone_can_pay: bool = False) -> int:
    if sign_outputs not in SIGNATURE_SCOPES:
        raise ValueError(f"Invalid signature scope '{sign_outputs}'. Use one of {sorted(SIGNATURE_SCOPES)}.")
    flag = int(SIGNATURE_SCOPES[sign_outputs]) | int(SIGHASH.FORKID)
    if anyone_can_pay:
        flag |= int(SIGHASH.ANYONECANPAY)
    return flag


class PushDropUnlocker:
    """Produces the unlocking script for exactly one record input."""

    def __init__(self, signing_service: SigningService, protocol_id: ProtocolID, key_id: str,
                 counterparty: str, sign_outputs: str, satoshis: int, locking_script: Script,
                 anyone_can_pay: bool = False):
        if satoshis is None or satoshis < 1:
            raise UnlockError(f"Cannot unlock a token without its committed value (got {satoshis}).")
        if record_codec.decode_script(locking_script) is None:
            raise UnlockError("Locking script is not a push-drop token script.")

        self.signing_service = signing_service
        self.protocol_id = protocol_id
        self.key_id = key_id
        self.counterparty = counterparty
        self.sighash = SIGHASH(sighash_flag(sign_outputs, anyone_can_pay))
        self.satoshis = satoshis
        self.locking_script = locking_script

    def estimate_length(self) -> int:
        return Config.UNLOCKING_SCRIPT_LENGTH

    def _check_committed_source(self, tx: Transaction, input_index: int):
        """Refuses to sign when the transaction says something else about the spent output."""
        tx_input = tx.inputs[input_index]
        committed_script = self.locking_script.hex()

        source_tx = getattr(tx_input, 'source_transaction', None)
        if source_tx is not None:
            if tx_input.source_output_index >= len(source_tx.outputs):
                raise UnlockError(f"Input {input_index} spends output {tx_input.source_output_index}, which does not exist in its source transaction.")
            source_output = source_tx.outputs[tx_input.source_output_index]
            if source_output.satoshis != self.satoshis:
                raise UnlockError(f"Value mismatch for input {input_index}: token holds {source_output.satoshis} satoshis, unlock expects {self.satoshis}.")
            if source_output.locking_script.hex() != committed_script:
                raise UnlockError(f"Locking script mismatch for input {input_index}.")

        known_satoshis = getattr(tx_input, 'satoshis', None)
        if known_satoshis is not None and known_satoshis != self.satoshis:
            raise UnlockError(f"Value mismatch for input {input_index}: input carries {known_satoshis} satoshis, unlock expects {self.satoshis}.")
        known_script = getattr(tx_input, 'locking_script', None)
        if known_script is not None and known_script.hex() != committed_script:
            raise UnlockError(f"Locking script mismatch for input {input_index}.")

    async def sign(self, tx: Transaction, input_index: int) -> Script:
        """
        Signs input `input_index` of `tx` and returns the unlocking script `<signature+sighash>`.

        Raises:
            UnlockError: index out of range, or value/script differ from what was committed.
        """
        if input_index < 0 or input_index >= len(tx.inputs):
            raise UnlockError(f"Input index {input_index} out of range [0, {len(tx.inputs)}).")

        self._check_committed_source(tx, input_index)

        # The preimage commits to the value and script of the spent output
        tx_input = tx.inputs[input_index]
        tx_input.satoshis = self.satoshis
        tx_input.locking_script = self.locking_script
        tx_input.sighash = self.sighash

        preimage = tx.preimage(input_index)
        # The wallet hashes once more, giving the double SHA-256 that OP_CHECKSIG expects
        signature = await self.signing_service.create_signature(
            sha256(preimage), self.protocol_id, self.key_id, self.counterparty
        )
        if not signature:
            raise UnlockError("Wallet returned an empty signature.")

        checksig_signature = bytes(signature) + int(self.sighash).to_bytes(1, 'little')
        logger.debug(f"Unlocking input {input_index} with sighash {hex(int(self.sighash))}, signature {checksig_signature.hex()}")
        return Script(record_codec.encode_push(checksig_signature).hex())


class PushDrop:

    def __init__(self, signing_service: SigningService):
        self.signing_service = signing_service

    async def lock(self, fields: List[bytes], protocol_id: ProtocolID, key_id: str,
                   counterparty: str = "self", for_self: bool = False) -> Script:
        """Locking script spendable only with the key derived for (protocol_id, key_id, counterparty)."""
        public_key_hex = await self.signing_service.get_public_key(protocol_id, key_id, counterparty, for_self)
        locking_script = record_codec.build_locking_script(bytes.fromhex(public_key_hex), fields)
        logger.debug(f"Locking script (Hex): {locking_script.hex()}")
        return locking_script

    def unlock(self, protocol_id: ProtocolID, key_id: str, counterparty: str,
               sign_outputs: str, satoshis: int, locking_script: Union[Script, str],
               anyone_can_pay: bool = False) -> PushDropUnlocker:
        if isinstance(locking_script, str):
            locking_script = Script(locking_script)
        return PushDropUnlocker(
            self.signing_service, protocol_id, key_id, counterparty,
            sign_outputs, satoshis, locking_script, anyone_can_pay
        )

    async def owns(self, locking_script: Union[Script, str], protocol_id: ProtocolID,
                   key_id: str, counterparty: str = "self") -> Optional[bool]:
        """True if the script is locked to our derived key, None if it is not a push-drop script."""
        decoded = record_codec.decode_script(locking_script)
        if decoded is None:
            return None
        public_key_hex = await self.signing_service.get_public_key(protocol_id, key_id, counterparty)
        return decoded.locking_public_key.hex() == public_key_hex.lower()
