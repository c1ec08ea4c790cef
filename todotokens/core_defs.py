# -----------------------------------------------------------------------------
# Project: ToDo Tokens v0.1
# File:    core_defs.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# core_defs.py
'''
Common definitions shared between the codec, the workflows and the catalog:
opcodes, the record types and small conversions for the wallet's JSON format.
'''

import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Union

logger = logging.getLogger(__name__)

# --- Opcodes used by record scripts ---
OP_0 = 0x00
OP_PUSHDATA1 = 0x4c
OP_PUSHDATA2 = 0x4d
OP_PUSHDATA4 = 0x4e
OP_1NEGATE = 0x4f
OP_1 = 0x51
OP_16 = 0x60
OP_DROP = 0x75
OP_2DROP = 0x6d
OP_CHECKSIG = 0xac


@dataclass(frozen=True)
class Outpoint:
    """Ledger position of a record: transaction id plus output index."""
    txid: str
    index: int

    def __str__(self) -> str:
        return f"{self.txid}.{self.index}"

    @classmethod
    def parse(cls, value: Union[str, "Outpoint"]) -> "Outpoint":
        if isinstance(value, Outpoint):
            return value
        txid, sep, index = value.rpartition(".")
        if not sep or len(txid) != 64:
            raise ValueError(f"Invalid outpoint '{value}'. Expected '<txid>.<index>'.")
        try:
            bytes.fromhex(txid)
            return cls(txid.lower(), int(index))
        except ValueError:
            raise ValueError(f"Invalid outpoint '{value}'. Expected '<txid>.<index>'.") from None


@dataclass(frozen=True)
class Record:
    """
    A task token. Immutable between creation and redemption.

    identity:           outpoint holding the token
    plaintext_payload:  the task text (only ever kept in memory)
    value:              satoshis locked in the token
    locking_script:     hex of the record locking script
    evidence:           BEEF bytes proving `identity`
    """
    identity: Outpoint
    plaintext_payload: str
    value: int
    locking_script: str
    evidence: bytes = field(repr=False, default=b"")

    @property
    def outpoint(self) -> str:
        return str(self.identity)


# --- Conversions for the wallet's JSON wire format (byte arrays as number lists) ---

def to_byte_list(data: Union[bytes, bytearray, Sequence[int]]) -> List[int]:
    return list(bytes(data))


def from_byte_list(data: Union[bytes, bytearray, Sequence[int], str, None]) -> bytes:
    """Accepts number lists (JSON), raw bytes or hex strings."""
    if data is None:
        return b""
    if isinstance(data, str):
        return bytes.fromhex(data)
    return bytes(data)


def truncate_description(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit]
    return text
