# -----------------------------------------------------------------------------
# Project: ToDo Tokens v0.1
# File:    config.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# todotokens/config.py
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 't', 'yes')


class Config:
    """
    Central Configuration.
    Paths are resolved relative to THIS file, not the current working directory.
    No secrets live here: all key material stays inside the wallet (Signing Service).
    """

    # --- PATH SETUP ---
    # todotokens/config.py -> project root is two levels up
    BASE_DIR = Path(__file__).resolve().parent.parent

    # Path to .env (flexible location)
    ENV_PATH = Path(os.getenv("TODO_ENV_PATH", str(BASE_DIR / "local_config" / ".env")))

    if ENV_PATH.exists():
        load_dotenv(ENV_PATH)

    # Path for outputs (Logs, header cache)
    OUTPUT_DIR = Path(os.getenv("TODO_OUTPUT_DIR", str(BASE_DIR / "output")))

    # --- Protocol Identifiers ---
    # Namespace address of the ToDo protocol. Every record carries it as its first field.
    TODO_PROTO_ADDR = "1ToDoDtKreEzbHYKFjmoBuduFmSXXUGZG"
    PROTOCOL_ID = (0, "todo list")
    KEY_ID = "1"
    COUNTERPARTY = "self"
    BASKET = "todo tokens"

    ACTIVE_NETWORK_NAME = os.getenv("NETWORK", "main").lower()

    if ACTIVE_NETWORK_NAME == "test":
        NETWORK_PREFIX = "TESTNET_"
    elif ACTIVE_NETWORK_NAME == "main":
        NETWORK_PREFIX = "MAINNET_"
    else:
        raise ValueError(f"Invalid NETWORK '{ACTIVE_NETWORK_NAME}' specified. Use 'test' or 'main'.")

    NETWORK_API_ENDPOINTS = {
        "main": "https://api.whatsonchain.com/v1/bsv/main",
        "test": "https://api.whatsonchain.com/v1/bsv/test"
    }

    WOC_API_BASE_URL: str = os.getenv(f"{NETWORK_PREFIX}WOC_API_BASE_URL") or NETWORK_API_ENDPOINTS[ACTIVE_NETWORK_NAME]

    # --- Wallet (Signing Service) ---
    WALLET_BASE_URL: str = os.getenv("WALLET_BASE_URL", "http://localhost:3321")
    WALLET_ORIGINATOR: Optional[str] = os.getenv("WALLET_ORIGINATOR", "localhost")
    # The reachability check identifies itself differently from the app
    CHECK_ORIGINATOR = "non-admin.com"

    # --- File Paths ---
    LOG_FILE = str(OUTPUT_DIR / f"application_{ACTIVE_NETWORK_NAME}.log")
    BLOCK_HEADERS_FILE = str(OUTPUT_DIR / f"block_roots_{ACTIVE_NETWORK_NAME}.json")

    # --- Task Token Defaults ---
    DEFAULT_AMOUNT = int(os.getenv("DEFAULT_AMOUNT", 1000))
    # DER signature (max 72 bytes) plus one sighash byte
    UNLOCKING_SCRIPT_LENGTH = 73
    MAX_DESCRIPTION_LENGTH = 128
    OUTPUT_DESCRIPTION = "New ToDo list item"
    INPUT_DESCRIPTION = "Complete a ToDo list item"
    LIST_OUTPUTS_LIMIT = int(os.getenv("LIST_OUTPUTS_LIMIT", 1000))

    # --- Control Behavior ---
    VERIFY_EVIDENCE = _env_flag("VERIFY_EVIDENCE", "True")
    STRICT_EVIDENCE = _env_flag("STRICT_EVIDENCE", "False")
    ACCEPT_DELAYED_BROADCAST = _env_flag("ACCEPT_DELAYED_BROADCAST", "False")
    AVAILABILITY_POLL_INTERVAL = float(os.getenv("AVAILABILITY_POLL_INTERVAL", 1.0))
    TIMEOUT_CONNECT = float(os.getenv("TIMEOUT_CONNECT", 10.0))
    VERBOSE = _env_flag("VERBOSE", "False")

    @classmethod
    def ensure_dirs(cls):
        """Creates the output directory (logs, header cache) if missing."""
        os.makedirs(cls.OUTPUT_DIR, exist_ok=True)
