# -----------------------------------------------------------------------------
# Project: ToDo Tokens v0.1
# File:    test_record_codec.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# test_record_codec.py

import pytest

from todotokens import core_defs, record_codec
from todotokens.errors import RecordDecodeError

PUBKEY = bytes.fromhex("02" + "ab" * 32)
CIPHERTEXT = bytes(range(40))


def _record_script():
    return record_codec.build_locking_script(PUBKEY, record_codec.encode(CIPHERTEXT))


def test_encode_puts_marker_first():
    fields = record_codec.encode(b"\x01\x02\x03")
    assert fields == [record_codec.NAMESPACE_MARKER, b"\x01\x02\x03"]
    assert record_codec.NAMESPACE_MARKER == b"1ToDoDtKreEzbHYKFjmoBuduFmSXXUGZG"


def test_encode_rejects_empty_ciphertext():
    with pytest.raises(ValueError):
        record_codec.encode(b"")


def test_locking_script_layout():
    script_bytes = bytes.fromhex(_record_script().hex())
    marker = record_codec.NAMESPACE_MARKER

    assert script_bytes[0] == 33
    assert script_bytes[1:34] == PUBKEY
    assert script_bytes[34] == core_defs.OP_CHECKSIG
    assert script_bytes[35] == len(marker)
    assert script_bytes[36:36 + len(marker)] == marker
    assert script_bytes[-1] == core_defs.OP_2DROP


def test_decode_returns_fields_of_record_script():
    assert record_codec.decode(_record_script()) == [record_codec.NAMESPACE_MARKER, CIPHERTEXT]
    # hex and bytes are accepted as well
    assert record_codec.decode(_record_script().hex()) == [record_codec.NAMESPACE_MARKER, CIPHERTEXT]
    assert record_codec.decode_ciphertext(bytes.fromhex(_record_script().hex())) == CIPHERTEXT


def test_decode_large_ciphertext_uses_pushdata():
    ciphertext = b"\x07" * 300
    script = record_codec.build_locking_script(PUBKEY, record_codec.encode(ciphertext))
    assert bytes.fromhex(script.hex())[35 + 1 + len(record_codec.NAMESPACE_MARKER)] == core_defs.OP_PUSHDATA2
    assert record_codec.decode_ciphertext(script) == ciphertext


def test_decode_rejects_foreign_marker():
    script = record_codec.build_locking_script(PUBKEY, [b"1SomeOtherProtocolAddress", CIPHERTEXT])
    assert record_codec.decode(script) is None
    with pytest.raises(RecordDecodeError):
        record_codec.decode_ciphertext(script)


def test_decode_rejects_wrong_field_count():
    script = record_codec.build_locking_script(
        PUBKEY, [record_codec.NAMESPACE_MARKER, CIPHERTEXT, b"signature"]
    )
    assert record_codec.decode_script(script).fields[2] == b"signature"
    assert record_codec.decode(script) is None


def test_decode_rejects_other_scripts():
    p2pkh = "76a914" + "11" * 20 + "88ac"
    assert record_codec.decode(p2pkh) is None
    assert record_codec.decode("") is None
    # push runs past the end
    assert record_codec.decode("21" + "02" * 10) is None


def test_decode_rejects_missing_drops():
    script_bytes = bytes.fromhex(_record_script().hex())[:-1]
    assert record_codec.decode(script_bytes) is None


def test_parse_chunks_overrun_raises():
    with pytest.raises(RecordDecodeError):
        record_codec.parse_chunks(bytes([0x4c, 10, 1, 2]))


def test_small_number_fields_survive():
    script = record_codec.build_locking_script(PUBKEY, [b"\x05", b""])
    assert record_codec.decode_script(script).fields == [b"\x05", b""]


def test_build_requires_compressed_key():
    with pytest.raises(ValueError):
        record_codec.build_locking_script(b"\x04" * 65, [b"x"])


def test_outpoint_parse():
    txid = "AB" * 32
    outpoint = core_defs.Outpoint.parse(f"{txid}.3")
    assert outpoint == core_defs.Outpoint("ab" * 32, 3)
    assert str(outpoint) == f"{'ab' * 32}.3"
    for bad in ["", "abc.1", f"{txid}", f"{'zz' * 32}.0", f"{txid}.x"]:
        with pytest.raises(ValueError):
            core_defs.Outpoint.parse(bad)


def test_truncate_description():
    assert core_defs.truncate_description("x" * 200, 128) == "x" * 128
    assert core_defs.truncate_description("short", 128) == "short"
