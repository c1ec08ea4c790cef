# -----------------------------------------------------------------------------
# Project: ToDo Tokens v0.1
# File:    record_codec.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# record_codec.py
'''
Byte layout of a task token locking script and its field list.

    <33 byte owner pubkey> OP_CHECKSIG <field 1> ... <field n> OP_2DROP ... [OP_DROP]

A ToDo record carries exactly two fields: the protocol namespace address
and the ciphertext of the task. Decoding is purely structural, it never
touches encryption. Scripts of other protocols decode to None.
'''

import logging
from typing import List, NamedTuple, Optional, Tuple, Union

from bsv import Script

from todotokens.config import Config
from todotokens import core_defs
from todotokens.errors import RecordDecodeError

logger = logging.getLogger(__name__)

RECORD_FIELD_COUNT = 2
PUBKEY_LENGTH = 33

NAMESPACE_MARKER: bytes = Config.TODO_PROTO_ADDR.encode('utf-8')

ScriptLike = Union[Script, str, bytes]


class PushDropFields(NamedTuple):
    locking_public_key: bytes
    fields: List[bytes]


# region --- Push data helpers ---

def encode_push(data: bytes) -> bytes:
    """Returns the push opcode(s) plus data for one field, minimally encoded."""
    length = len(data)
    if length == 0:
        return bytes([core_defs.OP_0])
    if length == 1 and 1 <= data[0] <= 16:
        return bytes([core_defs.OP_1 + data[0] - 1])
    if length == 1 and data[0] == 0x81:
        return bytes([core_defs.OP_1NEGATE])
    if length < 76:
        return bytes([length]) + data
    elif length <= 255:
        return bytes([core_defs.OP_PUSHDATA1]) + length.to_bytes(1, 'little') + data
    elif length <= 65535:
        return bytes([core_defs.OP_PUSHDATA2]) + length.to_bytes(2, 'little') + data
    elif length <= 4294967295:
        return bytes([core_defs.OP_PUSHDATA4]) + length.to_bytes(4, 'little') + data
    raise ValueError("Data push too large.")


def parse_chunks(script_bytes: bytes) -> List[Tuple[int, Optional[bytes]]]:
    """
    Splits raw script bytes into (opcode, data) chunks. Small-number opcodes are
    returned as data so that encode_push/parse_chunks round-trip.

    Raises:
        RecordDecodeError: if a push runs past the end of the script.
    """
    chunks: List[Tuple[int, Optional[bytes]]] = []
    current_index = 0

    while current_index < len(script_bytes):
        op = script_bytes[current_index]
        current_index += 1

        if 0x01 <= op <= 0x4b:
            data_length = op
        elif op == core_defs.OP_PUSHDATA1:
            data_length = int.from_bytes(script_bytes[current_index:current_index + 1], 'little')
            current_index += 1
        elif op == core_defs.OP_PUSHDATA2:
            data_length = int.from_bytes(script_bytes[current_index:current_index + 2], 'little')
            current_index += 2
        elif op == core_defs.OP_PUSHDATA4:
            data_length = int.from_bytes(script_bytes[current_index:current_index + 4], 'little')
            current_index += 4
        elif op == core_defs.OP_0:
            chunks.append((op, b""))
            continue
        elif core_defs.OP_1 <= op <= core_defs.OP_16:
            chunks.append((op, bytes([op - core_defs.OP_1 + 1])))
            continue
        elif op == core_defs.OP_1NEGATE:
            chunks.append((op, b"\x81"))
            continue
        else:
            chunks.append((op, None))
            continue

        data_push_end = current_index + data_length
        if current_index > len(script_bytes) or data_push_end > len(script_bytes):
            raise RecordDecodeError(f"Push of {data_length} bytes at offset {current_index} exceeds script length {len(script_bytes)}")
        chunks.append((op, script_bytes[current_index:data_push_end]))
        current_index = data_push_end

    return chunks


def _script_bytes(locking_script: ScriptLike) -> bytes:
    if isinstance(locking_script, Script):
        return bytes.fromhex(locking_script.hex())
    if isinstance(locking_script, str):
        return bytes.fromhex(locking_script)
    return bytes(locking_script)

# endregion


# region --- Locking script layout ---

def build_locking_script(public_key: bytes, fields: List[bytes]) -> Script:
    """Builds `<pubkey> OP_CHECKSIG <fields...> <drops>`."""
    if len(public_key) != PUBKEY_LENGTH:
        raise ValueError(f"Expected a {PUBKEY_LENGTH} byte compressed public key, got {len(public_key)} bytes.")

    script_bytes = encode_push(public_key) + bytes([core_defs.OP_CHECKSIG])
    for data in fields:
        script_bytes += encode_push(data)

    remaining = len(fields)
    while remaining > 1:
        script_bytes += bytes([core_defs.OP_2DROP])
        remaining -= 2
    if remaining == 1:
        script_bytes += bytes([core_defs.OP_DROP])

    return Script(script_bytes.hex())


def decode_script(locking_script: ScriptLike) -> Optional[PushDropFields]:
    """
    Structural decode of any pubkey-locked data script (any number of fields).
    Returns None if the script does not have that layout.
    """
    try:
        chunks = parse_chunks(_script_bytes(locking_script))
    except (RecordDecodeError, ValueError) as e:
        logger.debug(f"Script is not decodable: {e}")
        return None

    if len(chunks) < 3:
        return None
    pubkey_op, pubkey = chunks[0]
    if pubkey is None or len(pubkey) != PUBKEY_LENGTH or pubkey_op != PUBKEY_LENGTH:
        return None
    if chunks[1] != (core_defs.OP_CHECKSIG, None):
        return None

    fields: List[bytes] = []
    position = 2
    while position < len(chunks) and chunks[position][1] is not None:
        fields.append(chunks[position][1])  # type: ignore[arg-type]
        position += 1

    trailing = [op for op, data in chunks[position:]]
    expected = [core_defs.OP_2DROP] * (len(fields) // 2) + [core_defs.OP_DROP] * (len(fields) % 2)
    if not fields or trailing != expected:
        return None

    return PushDropFields(pubkey, fields)

# endregion


# region --- ToDo record fields ---

def is_protocol_marker(field: bytes) -> bool:
    return field == NAMESPACE_MARKER


def encode(ciphertext: bytes) -> List[bytes]:
    """Ordered field list of a record: [namespace marker, ciphertext]."""
    if not ciphertext:
        raise ValueError("Ciphertext must not be empty.")
    return [NAMESPACE_MARKER, bytes(ciphertext)]


def decode(locking_script: ScriptLike) -> Optional[List[bytes]]:
    """
    Returns [namespace marker, ciphertext] for a ToDo record script,
    None for anything else (other protocols, malformed scripts).
    """
    decoded = decode_script(locking_script)
    if decoded is None:
        return None
    if len(decoded.fields) != RECORD_FIELD_COUNT:
        logger.debug(f"Not a ToDo record: {len(decoded.fields)} fields instead of {RECORD_FIELD_COUNT}")
        return None
    if not is_protocol_marker(decoded.fields[0]):
        logger.debug("Not a ToDo record: namespace marker mismatch")
        return None
    return list(decoded.fields)


def decode_ciphertext(locking_script: ScriptLike) -> bytes:
    """Like decode(), but raises RecordDecodeError for unrecognized scripts."""
    fields = decode(locking_script)
    if fields is None:
        raise RecordDecodeError("Locking script is not a ToDo record")
    return fields[1]

# endregion
