# -----------------------------------------------------------------------------
# Project: ToDo Tokens v0.1
# File:    orchestrator.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# orchestrator.py
'''
Create and redeem workflows for task tokens.

Create:  validate -> encrypt task -> lock -> createAction (wallet builds, signs, broadcasts)
Redeem:  [verify evidence] -> createAction with the token as input (wallet returns a
         signable transaction) -> sign our input -> signAction (wallet finalizes)

The wallet does not know the token's unlocking rule, so the redeem path is split:
the wallet supplies fee, change and broadcast, we supply the one unlocking script.
'''

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Set, Tuple, Union

from bsv import Transaction

from todotokens.config import Config
from todotokens import record_codec
from todotokens.catalog import RecordCatalog
from todotokens.chain_verifier import ChainVerifier, read_evidence
from todotokens.core_defs import Outpoint, Record, from_byte_list, truncate_description
from todotokens.encryption import EncryptionAdapter
from todotokens.errors import (
    TodoTokenError, UnlockError, ValidationError, VerificationError, WorkflowError
)
from todotokens.pushdrop import PushDrop
from todotokens.wallet_client import SigningService

logger = logging.getLogger(__name__)


class WorkflowState(Enum):
    IDLE = "idle"
    ASSEMBLING = "assembling"
    AWAITING_SIGNATURE = "awaitingSignature"
    FINALIZING = "finalizing"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass
class WorkflowResult:
    action: str
    state: WorkflowState = WorkflowState.IDLE
    history: List[WorkflowState] = field(default_factory=lambda: [WorkflowState.IDLE])
    record: Optional[Record] = None
    txid: Optional[str] = None
    evidence_valid: Optional[bool] = None
    warnings: List[str] = field(default_factory=list)
    error: Optional[BaseException] = None

    def advance(self, state: WorkflowState):
        logger.debug(f"[{self.action}] {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)


def validate_new_task(task: Optional[str], amount: Any) -> Tuple[str, int]:
    """
    Checks the user's input before anything async happens.

    Raises:
        ValidationError: empty task, missing/non-numeric amount, amount below 1.
    """
    if task is None or task == '':
        raise ValidationError('Enter a task to complete!')

    if isinstance(amount, bool) or amount is None:
        raise ValidationError('Enter an amount for the new task!')
    if isinstance(amount, str):
        try:
            amount = float(amount.strip())
        except ValueError:
            raise ValidationError('Enter an amount for the new task!') from None
    if not isinstance(amount, (int, float)) or (isinstance(amount, float) and math.isnan(amount)) or amount == 0:
        raise ValidationError('Enter an amount for the new task!')
    if amount < 1:
        raise ValidationError('The amount must be more than 1 satoshis!')
    if isinstance(amount, float) and not amount.is_integer():
        raise ValidationError('The amount must be a whole number of satoshis!')

    return task, int(amount)


class TransactionOrchestrator:

    def __init__(self, signing_service: SigningService, catalog: Optional[RecordCatalog] = None,
                 verifier: Optional[ChainVerifier] = None,
                 verify_evidence: bool = Config.VERIFY_EVIDENCE,
                 strict_evidence: bool = Config.STRICT_EVIDENCE):
        self.signing_service = signing_service
        self.encryption = EncryptionAdapter(signing_service)
        self.pushdrop = PushDrop(signing_service)
        self.catalog = catalog
        self.verifier = verifier
        self.verify_evidence = verify_evidence
        self.strict_evidence = strict_evidence

        self.protocol_id = Config.PROTOCOL_ID
        self.key_id = Config.KEY_ID
        self.counterparty = Config.COUNTERPARTY

        self._in_flight: Set[Outpoint] = set()
        self._redeemed: Set[Outpoint] = set()

    # region --- Create ---

    async def create(self, task: str, amount: Any = Config.DEFAULT_AMOUNT) -> WorkflowResult:
        """
        Creates a new task token.

        Raises:
            ValidationError: before any wallet call, nothing changed.
            WorkflowError:   a wallet step failed; message of the wallet kept verbatim.
        """
        task, satoshis = validate_new_task(task, amount)
        result = WorkflowResult(action="create")

        try:
            result.advance(WorkflowState.ASSEMBLING)
            encrypted_task = await self.encryption.encrypt(task)
            locking_script = await self.pushdrop.lock(
                record_codec.encode(encrypted_task), self.protocol_id, self.key_id, self.counterparty
            )

            result.advance(WorkflowState.FINALIZING)
            new_token = await self.signing_service.create_action(
                description=truncate_description(f"Create a TODO task: {task}", Config.MAX_DESCRIPTION_LENGTH),
                outputs=[{
                    "lockingScript": locking_script.hex(),
                    "satoshis": satoshis,
                    "basket": Config.BASKET,
                    "outputDescription": Config.OUTPUT_DESCRIPTION,
                }],
                options={
                    "randomizeOutputs": False,
                    "acceptDelayedBroadcast": Config.ACCEPT_DELAYED_BROADCAST,
                },
            )

            txid = new_token.get("txid")
            if not txid:
                raise WorkflowError("Wallet did not return a txid for the new task")

            # Single output, outputs not randomized: the token is output 0
            record = Record(
                identity=Outpoint(txid, 0),
                plaintext_payload=task,
                value=satoshis,
                locking_script=locking_script.hex(),
                evidence=from_byte_list(new_token.get("tx")),
            )
        except Exception as e:
            self._fail(result, e)
            raise self._as_workflow_error(e, result) from e

        result.record = record
        result.txid = txid
        result.advance(WorkflowState.COMMITTED)
        if self.catalog is not None:
            self.catalog.insert(record)
        logger.info(f"Task successfully created: {record.outpoint} ({satoshis} satoshis)")
        return result

    # endregion

    # region --- Redeem ---

    async def _check_evidence(self, record: Record, result: WorkflowResult):
        if not self.verify_evidence or self.verifier is None:
            return
        try:
            ok = await self.verifier.verify(record.evidence, True)
        except Exception as e:
            logger.error(f"Evidence verification for {record.outpoint} could not run: {e}")
            ok = False

        result.evidence_valid = ok
        if ok:
            return
        message = f"The existing BEEF for task {record.outpoint} is not valid!"
        if self.strict_evidence:
            raise VerificationError(message)
        logger.warning(f"{message} Continuing, the wallet validates again before broadcast.")
        result.warnings.append(message)

    @staticmethod
    def _input_beef(record: Record) -> bytes:
        """Evidence as plain BEEF (atomic wrappers removed)."""
        try:
            beef, _ = read_evidence(record.evidence)
        except VerificationError as e:
            raise WorkflowError(f"Evidence for task {record.outpoint} is unreadable: {e.message}", e) from e
        return beef.to_binary()

    @staticmethod
    def _find_input_index(tx: Transaction, identity: Outpoint) -> int:
        for index, tx_input in enumerate(tx.inputs):
            if tx_input.source_txid == identity.txid and tx_input.source_output_index == identity.index:
                return index
        raise UnlockError(f"Signable transaction does not spend {identity}")

    async def redeem(self, record: Record) -> WorkflowResult:
        """
        Completes a task: spends its token and returns the satoshis to the wallet.

        Raises:
            WorkflowError: any step failed; the record stays in the catalog.
        """
        identity = record.identity
        if identity in self._redeemed:
            raise WorkflowError(f"Task {identity} has already been completed")
        if identity in self._in_flight:
            raise WorkflowError(f"Task {identity} is already being completed")

        result = WorkflowResult(action="redeem", record=record)
        self._in_flight.add(identity)
        try:
            result.advance(WorkflowState.ASSEMBLING)
            # Refuse before touching the wallet's transaction state
            unlocker = self.pushdrop.unlock(
                self.protocol_id, self.key_id, self.counterparty, 'all',
                record.value, record.locking_script
            )
            if await self.pushdrop.owns(record.locking_script, self.protocol_id, self.key_id, self.counterparty) is False:
                raise UnlockError(f"Task {identity} is not locked to this wallet's todo key")

            await self._check_evidence(record, result)

            description = truncate_description(
                f'Complete a TODO task: "{record.plaintext_payload}"', Config.MAX_DESCRIPTION_LENGTH
            )
            action = await self.signing_service.create_action(
                description=description,
                input_beef=self._input_beef(record),
                inputs=[{
                    "inputDescription": Config.INPUT_DESCRIPTION,
                    "outpoint": str(identity),
                    "unlockingScriptLength": unlocker.estimate_length(),
                }],
                options={"randomizeOutputs": False},
            )

            signable = action.get("signableTransaction")
            if not signable:
                raise WorkflowError("Failed to create signable transaction")
            result.advance(WorkflowState.AWAITING_SIGNATURE)

            _, partial_tx = read_evidence(from_byte_list(signable["tx"]))
            if partial_tx is None:
                raise WorkflowError("Signable transaction is empty")
            input_index = self._find_input_index(partial_tx, identity)

            unlocking_script = await unlocker.sign(partial_tx, input_index)

            result.advance(WorkflowState.FINALIZING)
            sign_result = await self.signing_service.sign_action(
                reference=signable["reference"],
                spends={input_index: {"unlockingScript": unlocking_script.hex()}},
            )
            logger.info(f"Sign result: {sign_result}")
            result.txid = sign_result.get("txid")
        except Exception as e:
            self._fail(result, e)
            raise self._as_workflow_error(e, result) from e
        finally:
            self._in_flight.discard(identity)

        self._redeemed.add(identity)
        result.advance(WorkflowState.COMMITTED)
        if self.catalog is not None:
            self.catalog.remove(record)
        logger.info(f"Task complete: {identity}, {record.value} satoshis returned to the wallet.")
        return result

    async def redeem_by_identity(self, identity: Union[Outpoint, str]) -> WorkflowResult:
        if self.catalog is None:
            raise WorkflowError("No catalog to look up the task in")
        record = self.catalog.find(identity)
        if record is None:
            raise WorkflowError(f"Task {identity} not found")
        return await self.redeem(record)

    # endregion

    @staticmethod
    def _fail(result: WorkflowResult, error: BaseException):
        result.error = error
        result.advance(WorkflowState.FAILED)
        logger.error(f"[{result.action}] failed: {error}")

    @staticmethod
    def _as_workflow_error(error: BaseException, result: WorkflowResult) -> WorkflowError:
        if isinstance(error, WorkflowError):
            error.result = result
            return error
        message = error.message if isinstance(error, TodoTokenError) else str(error)
        return WorkflowError(message, error, result)
