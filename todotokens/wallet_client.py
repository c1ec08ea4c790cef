# -----------------------------------------------------------------------------
# Project: ToDo Tokens v0.1
# File:    wallet_client.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# wallet_client.py
'''
Access to the wallet (Signing Service): key custody, encryption, transaction
assembly, signing and broadcast all happen there.

SigningService is the capability interface the core depends on. HttpWalletClient
talks to a locally running wallet over its HTTP JSON interface:
    POST {base_url}/{call}   body: JSON args   answer: JSON result
Byte arrays travel as JSON lists of numbers.
'''

import abc
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from todotokens.config import Config
from todotokens.core_defs import from_byte_list, to_byte_list
from todotokens.errors import NO_IDENTITY_CODE, ServiceUnavailableError, SigningServiceError

logger = logging.getLogger(__name__)

ProtocolID = Tuple[int, str]


class SigningService(abc.ABC):
    """The wallet operations used by the task token core."""

    @abc.abstractmethod
    async def encrypt(self, plaintext: bytes, protocol_id: ProtocolID, key_id: str,
                      counterparty: str = "self") -> bytes: ...

    @abc.abstractmethod
    async def decrypt(self, ciphertext: bytes, protocol_id: ProtocolID, key_id: str,
                      counterparty: str = "self") -> bytes: ...

    @abc.abstractmethod
    async def get_public_key(self, protocol_id: ProtocolID, key_id: str,
                             counterparty: str = "self", for_self: bool = False) -> str:
        """Hex of the derived (compressed) public key."""

    @abc.abstractmethod
    async def create_signature(self, data: bytes, protocol_id: ProtocolID, key_id: str,
                               counterparty: str = "self") -> bytes:
        """DER signature over SHA-256(data) with the derived private key."""

    @abc.abstractmethod
    async def create_action(self, description: str,
                            outputs: Optional[List[Dict[str, Any]]] = None,
                            inputs: Optional[List[Dict[str, Any]]] = None,
                            input_beef: Optional[bytes] = None,
                            options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Returns the wallet's answer unchanged, e.g.
        {"txid": ..., "tx": [...]} or {"signableTransaction": {"tx": [...], "reference": ...}}
        """

    @abc.abstractmethod
    async def sign_action(self, reference: str, spends: Dict[int, Dict[str, Any]],
                          options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]: ...

    @abc.abstractmethod
    async def list_outputs(self, basket: str, include: Optional[str] = None,
                           limit: Optional[int] = None) -> Dict[str, Any]:
        """{"totalOutputs": n, "outputs": [{"outpoint": ..., "satoshis": ...}, ...], "BEEF": [...]}"""

    @abc.abstractmethod
    async def get_network(self) -> str: ...


def _protocol_arg(protocol_id: ProtocolID) -> List[Any]:
    return [protocol_id[0], protocol_id[1]]


# --- consistent error logging with aiohttp ---
async def _log_aiohttp_error(response: aiohttp.ClientResponse, context: str) -> Tuple[str, Optional[str]]:
    """Logs detailed error information from a wallet response and returns (message, code)."""
    code = None
    try:
        error_data = await response.json(content_type=None)
        if isinstance(error_data, dict):
            code = error_data.get('code')
            error_message = error_data.get('message') or error_data.get('description') or str(error_data)
        else:
            error_message = str(error_data)
    except Exception:
        error_message = await response.text()

    if code == NO_IDENTITY_CODE:
        logger.info(f"Wallet call {context}: no identity configured yet ({code})")
    else:
        logger.error(f"Wallet request failed for {context}: Status {response.status}, Code {code}, Error: {error_message}")
    return error_message, code


class HttpWalletClient(SigningService):
    """
    Signing Service reached through the wallet's local HTTP JSON interface.
    One aiohttp session per call, like the chain API helpers.
    """

    def __init__(self, base_url: Optional[str] = None, originator: Optional[str] = None,
                 timeout: Optional[float] = None):
        self.base_url = (base_url or Config.WALLET_BASE_URL).rstrip('/')
        self.originator = originator if originator is not None else Config.WALLET_ORIGINATOR
        self.timeout = timeout if timeout is not None else Config.TIMEOUT_CONNECT

    async def api(self, call: str, args: Dict[str, Any]) -> Dict[str, Any]:
        """
        Central function for a wallet call.

        Raises:
            ServiceUnavailableError: wallet unreachable, timed out, or no identity configured.
            SigningServiceError:     any other error answer; message kept verbatim.
        """
        url = f"{self.base_url}/{call}"
        headers = {'Accept': 'application/json', 'Content-Type': 'application/json'}
        if self.originator:
            headers['Originator'] = self.originator

        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, json=args, headers=headers) as response:
                    if Config.VERBOSE:
                        logger.info(f"Wallet call {call}: HTTP Status Code {response.status}")
                    if response.status == 200:
                        return await response.json(content_type=None)

                    message, code = await _log_aiohttp_error(response, call)
                    if code == NO_IDENTITY_CODE:
                        raise ServiceUnavailableError(message, code=code, call=call)
                    raise SigningServiceError(message, code=code, call=call)

        except aiohttp.ClientConnectorError as e:
            logger.debug(f"Connection Error: Failed to connect to wallet at {url}: {e}")
            raise ServiceUnavailableError(f"Wallet not reachable at {self.base_url}: {e}", call=call) from e
        except asyncio.TimeoutError as e:
            logger.error(f"Timeout Error: Wallet call {call} timed out after {self.timeout} seconds.")
            raise ServiceUnavailableError(f"Wallet call {call} timed out", call=call) from e
        except aiohttp.ClientError as e:
            logger.error(f"Request failed: A network client error occurred during wallet call {call}. Error: {e}")
            raise SigningServiceError(str(e), call=call) from e

    async def encrypt(self, plaintext: bytes, protocol_id: ProtocolID, key_id: str,
                      counterparty: str = "self") -> bytes:
        result = await self.api("encrypt", {
            "plaintext": to_byte_list(plaintext),
            "protocolID": _protocol_arg(protocol_id),
            "keyID": key_id,
            "counterparty": counterparty,
        })
        return from_byte_list(result["ciphertext"])

    async def decrypt(self, ciphertext: bytes, protocol_id: ProtocolID, key_id: str,
                      counterparty: str = "self") -> bytes:
        result = await self.api("decrypt", {
            "ciphertext": to_byte_list(ciphertext),
            "protocolID": _protocol_arg(protocol_id),
            "keyID": key_id,
            "counterparty": counterparty,
        })
        return from_byte_list(result["plaintext"])

    async def get_public_key(self, protocol_id: ProtocolID, key_id: str,
                             counterparty: str = "self", for_self: bool = False) -> str:
        result = await self.api("getPublicKey", {
            "protocolID": _protocol_arg(protocol_id),
            "keyID": key_id,
            "counterparty": counterparty,
            "forSelf": for_self,
        })
        return result["publicKey"]

    async def create_signature(self, data: bytes, protocol_id: ProtocolID, key_id: str,
                               counterparty: str = "self") -> bytes:
        result = await self.api("createSignature", {
            "data": to_byte_list(data),
            "protocolID": _protocol_arg(protocol_id),
            "keyID": key_id,
            "counterparty": counterparty,
        })
        return from_byte_list(result["signature"])

    async def create_action(self, description: str,
                            outputs: Optional[List[Dict[str, Any]]] = None,
                            inputs: Optional[List[Dict[str, Any]]] = None,
                            input_beef: Optional[bytes] = None,
                            options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        args: Dict[str, Any] = {"description": description}
        if outputs is not None:
            args["outputs"] = outputs
        if inputs is not None:
            args["inputs"] = inputs
        if input_beef is not None:
            args["inputBEEF"] = to_byte_list(input_beef)
        if options is not None:
            args["options"] = options
        return await self.api("createAction", args)

    async def sign_action(self, reference: str, spends: Dict[int, Dict[str, Any]],
                          options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        args: Dict[str, Any] = {
            "reference": reference,
            "spends": {str(index): spend for index, spend in spends.items()},
        }
        if options is not None:
            args["options"] = options
        return await self.api("signAction", args)

    async def list_outputs(self, basket: str, include: Optional[str] = None,
                           limit: Optional[int] = None) -> Dict[str, Any]:
        args: Dict[str, Any] = {"basket": basket}
        if include is not None:
            args["include"] = include
        if limit is not None:
            args["limit"] = limit
        return await self.api("listOutputs", args)

    async def get_network(self) -> str:
        result = await self.api("getNetwork", {})
        return result["network"]


async def check_for_signing_service(client: Optional[SigningService] = None) -> int:
    """
    Reachability check.

    Returns:
        1  wallet answered with mainnet/testnet
        -1 wallet answered with something else
        0  wallet not reachable (or any other failure)
    """
    checker = client or HttpWalletClient(originator=Config.CHECK_ORIGINATOR)
    try:
        network = await checker.get_network()
    except Exception as e:
        logger.debug(f"Wallet reachability check failed: {e}")
        return 0
    if network in ('mainnet', 'testnet'):
        return 1
    return -1
