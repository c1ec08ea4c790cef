# -----------------------------------------------------------------------------
# Project: ToDo Tokens v0.1
# File:    test_orchestrator.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# test_orchestrator.py

import asyncio
from dataclasses import replace

import pytest

from todotokens import record_codec
from todotokens.catalog import RecordCatalog
from todotokens.chain_verifier import ChainVerifier, read_evidence
from todotokens.errors import ErrorKind, ValidationError, WorkflowError
from todotokens.orchestrator import TransactionOrchestrator, WorkflowState, validate_new_task

from .fakes import FakeChainTracker, FakeSigningService

S = WorkflowState


def _setup(verify_evidence=True, strict_evidence=False, roots=None):
    wallet = FakeSigningService()
    catalog = RecordCatalog(wallet)
    tracker = FakeChainTracker(wallet.chain_roots if roots is None else roots)
    orchestrator = TransactionOrchestrator(
        wallet, catalog, ChainVerifier(tracker),
        verify_evidence=verify_evidence, strict_evidence=strict_evidence,
    )
    return wallet, catalog, orchestrator


# region --- validation ---

@pytest.mark.parametrize("task, amount, message", [
    ("", 1000, 'Enter a task to complete!'),
    (None, 1000, 'Enter a task to complete!'),
    ("Buy milk", None, 'Enter an amount for the new task!'),
    ("Buy milk", "", 'Enter an amount for the new task!'),
    ("Buy milk", "abc", 'Enter an amount for the new task!'),
    ("Buy milk", 0, 'Enter an amount for the new task!'),
    ("Buy milk", float("nan"), 'Enter an amount for the new task!'),
    ("Buy milk", -5, 'The amount must be more than 1 satoshis!'),
    ("Buy milk", 0.5, 'The amount must be more than 1 satoshis!'),
    ("Buy milk", 1.5, 'The amount must be a whole number of satoshis!'),
])
def test_validate_new_task_rejects(task, amount, message):
    with pytest.raises(ValidationError) as excinfo:
        validate_new_task(task, amount)
    assert excinfo.value.message == message
    assert excinfo.value.kind is ErrorKind.VALIDATION


def test_validate_new_task_accepts():
    assert validate_new_task("Buy milk", 1000) == ("Buy milk", 1000)
    assert validate_new_task("Buy milk", "1000") == ("Buy milk", 1000)
    assert validate_new_task("Buy milk", 1) == ("Buy milk", 1)


def test_create_invalid_input_never_calls_wallet():
    wallet, catalog, orchestrator = _setup()
    with pytest.raises(ValidationError):
        asyncio.run(orchestrator.create("Buy milk", 0))
    with pytest.raises(ValidationError):
        asyncio.run(orchestrator.create("", 1000))
    assert wallet.calls == []
    assert len(catalog) == 0

# endregion


# region --- create ---

def test_create_buy_milk():
    wallet, catalog, orchestrator = _setup()
    result = asyncio.run(orchestrator.create("Buy milk", 1000))

    assert result.state is S.COMMITTED
    assert result.history == [S.IDLE, S.ASSEMBLING, S.FINALIZING, S.COMMITTED]
    record = result.record
    assert record.plaintext_payload == "Buy milk"
    assert record.value == 1000
    assert record.identity.txid == result.txid
    assert record.identity.index == 0
    assert list(catalog) == [record]

    # The script carries the ciphertext, never the plain text
    fields = record_codec.decode(record.locking_script)
    assert fields[0] == record_codec.NAMESPACE_MARKER
    assert b"Buy milk" not in bytes.fromhex(record.locking_script)

    # Evidence proves the new transaction
    _, subject = read_evidence(record.evidence)
    assert subject.txid() == result.txid
    assert wallet.calls == ["encrypt", "getPublicKey", "createAction"]


def test_created_task_is_found_by_discovery():
    wallet, catalog, orchestrator = _setup()
    created = asyncio.run(orchestrator.create("Buy milk", 1000)).record

    fresh = RecordCatalog(wallet)
    discovered = asyncio.run(fresh.discover())
    assert [(r.identity, r.plaintext_payload, r.value) for r in discovered] == [
        (created.identity, "Buy milk", 1000)
    ]


def test_create_keeps_wallet_message():
    wallet, catalog, orchestrator = _setup()
    wallet.fail_create = "Insufficient funds in the available inputs to cover the cost of the required outputs"

    with pytest.raises(WorkflowError) as excinfo:
        asyncio.run(orchestrator.create("Buy milk", 1000))

    error = excinfo.value
    assert error.message == wallet.fail_create
    assert error.cause_kind is ErrorKind.SIGNING_SERVICE
    assert error.result.state is S.FAILED
    assert error.result.history[-1] is S.FAILED
    assert len(catalog) == 0


def test_identities_are_unique():
    wallet, catalog, orchestrator = _setup()

    async def create_many():
        return [await orchestrator.create(f"Task {i}", 100) for i in range(5)]

    results = asyncio.run(create_many())
    assert len({r.record.identity for r in results}) == 5

# endregion


# region --- redeem ---

def test_redeem_returns_satoshis():
    wallet, catalog, orchestrator = _setup()
    record = asyncio.run(orchestrator.create("Buy milk", 1000)).record
    wallet.calls.clear()

    result = asyncio.run(orchestrator.redeem(record))

    assert result.state is S.COMMITTED
    assert result.history == [S.IDLE, S.ASSEMBLING, S.AWAITING_SIGNATURE, S.FINALIZING, S.COMMITTED]
    assert result.evidence_valid is True
    assert result.warnings == []
    assert result.txid
    assert record.identity in wallet.spent
    assert len(catalog) == 0
    assert wallet.calls[-2:] == ["createSignature", "signAction"]

    assert asyncio.run(RecordCatalog(wallet).discover()) == []


def test_redeem_discovered_record():
    wallet, catalog, orchestrator = _setup()
    asyncio.run(orchestrator.create("Buy milk", 1000))
    asyncio.run(orchestrator.create("Walk the dog", 2000))

    asyncio.run(catalog.discover())
    result = asyncio.run(orchestrator.redeem_by_identity(catalog.records[1].outpoint))

    assert result.state is S.COMMITTED
    assert result.record.plaintext_payload == "Buy milk"
    assert [r.plaintext_payload for r in catalog] == ["Walk the dog"]


def test_redeem_twice_is_refused():
    wallet, catalog, orchestrator = _setup()
    record = asyncio.run(orchestrator.create("Buy milk", 1000)).record
    asyncio.run(orchestrator.redeem(record))
    wallet.calls.clear()

    with pytest.raises(WorkflowError):
        asyncio.run(orchestrator.redeem(record))
    assert wallet.calls == []


def test_concurrent_redeem_of_same_task():
    wallet, catalog, orchestrator = _setup()
    record = asyncio.run(orchestrator.create("Buy milk", 1000)).record

    async def both():
        return await asyncio.gather(orchestrator.redeem(record), orchestrator.redeem(record),
                                    return_exceptions=True)

    outcomes = asyncio.run(both())
    committed = [o for o in outcomes if not isinstance(o, BaseException)]
    refused = [o for o in outcomes if isinstance(o, WorkflowError)]
    assert len(committed) == 1
    assert len(refused) == 1


def test_redeem_with_unverifiable_evidence_warns():
    wallet, catalog, orchestrator = _setup(roots={})
    record = asyncio.run(orchestrator.create("Buy milk", 1000)).record

    result = asyncio.run(orchestrator.redeem(record))

    assert result.state is S.COMMITTED
    assert result.evidence_valid is False
    assert len(result.warnings) == 1
    assert "not valid" in result.warnings[0]


def test_strict_evidence_aborts_before_wallet_transaction():
    wallet, catalog, orchestrator = _setup(roots={}, strict_evidence=True)
    record = asyncio.run(orchestrator.create("Buy milk", 1000)).record
    wallet.calls.clear()

    with pytest.raises(WorkflowError) as excinfo:
        asyncio.run(orchestrator.redeem(record))

    assert excinfo.value.cause_kind is ErrorKind.VERIFICATION
    assert excinfo.value.result.evidence_valid is False
    assert "createAction" not in wallet.calls
    assert list(catalog) == [record]


def test_redeem_without_verification():
    wallet, catalog, orchestrator = _setup(roots={}, verify_evidence=False)
    record = asyncio.run(orchestrator.create("Buy milk", 1000)).record

    result = asyncio.run(orchestrator.redeem(record))
    assert result.state is S.COMMITTED
    assert result.evidence_valid is None


def test_redeem_with_wrong_value_is_refused():
    wallet, catalog, orchestrator = _setup()
    record = asyncio.run(orchestrator.create("Buy milk", 1000)).record
    tampered = replace(record, value=999)

    with pytest.raises(WorkflowError) as excinfo:
        asyncio.run(orchestrator.redeem(tampered))

    assert excinfo.value.cause_kind is ErrorKind.UNLOCK
    assert excinfo.value.result.history[-2] is S.AWAITING_SIGNATURE
    assert "signAction" not in wallet.calls
    assert record.identity not in wallet.spent

    # The original record is still redeemable
    assert asyncio.run(orchestrator.redeem(record)).state is S.COMMITTED


def test_redeem_foreign_token_is_refused():
    wallet, catalog, orchestrator = _setup()
    record = asyncio.run(orchestrator.create("Buy milk", 1000)).record

    other_wallet = FakeSigningService()
    other = TransactionOrchestrator(other_wallet, verify_evidence=False)
    with pytest.raises(WorkflowError) as excinfo:
        asyncio.run(other.redeem(record))
    assert excinfo.value.cause_kind is ErrorKind.UNLOCK
    assert "createAction" not in other_wallet.calls


def test_redeem_unknown_identity():
    wallet, catalog, orchestrator = _setup()
    with pytest.raises(WorkflowError):
        asyncio.run(orchestrator.redeem_by_identity("ab" * 32 + ".0"))

# endregion
