# -----------------------------------------------------------------------------
# Project: ToDo Tokens v0.1
# File:    encryption.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# encryption.py
'''
Task text encryption under the fixed "todo list" protocol and key "1".
The same pair must be used for decryption later, otherwise the wallet derives
a different key and decryption fails. The cryptography itself runs in the wallet.
'''

import logging

from todotokens.config import Config
from todotokens.errors import DecryptError, SigningServiceError, is_service_unavailable
from todotokens.wallet_client import ProtocolID, SigningService

logger = logging.getLogger(__name__)


class EncryptionAdapter:

    def __init__(self, signing_service: SigningService,
                 protocol_id: ProtocolID = Config.PROTOCOL_ID,
                 key_id: str = Config.KEY_ID,
                 counterparty: str = Config.COUNTERPARTY):
        self.signing_service = signing_service
        self.protocol_id = protocol_id
        self.key_id = key_id
        self.counterparty = counterparty

    async def encrypt_bytes(self, plaintext: bytes) -> bytes:
        return await self.signing_service.encrypt(plaintext, self.protocol_id, self.key_id, self.counterparty)

    async def decrypt_bytes(self, ciphertext: bytes) -> bytes:
        """
        Raises:
            DecryptError: the wallet refused (wrong key context, tampered ciphertext).
            ServiceUnavailableError: passed through unchanged.
        """
        try:
            return await self.signing_service.decrypt(ciphertext, self.protocol_id, self.key_id, self.counterparty)
        except SigningServiceError as e:
            if is_service_unavailable(e):
                raise
            raise DecryptError(e.message) from e

    async def encrypt(self, text: str) -> bytes:
        return await self.encrypt_bytes(text.encode('utf-8'))

    async def decrypt(self, ciphertext: bytes) -> str:
        plaintext = await self.decrypt_bytes(ciphertext)
        try:
            return plaintext.decode('utf-8')
        except UnicodeDecodeError as e:
            raise DecryptError(f"Decrypted task is not valid UTF-8: {e}") from e
