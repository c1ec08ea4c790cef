# -----------------------------------------------------------------------------
# Project: ToDo Tokens v0.1
# File:    blockchain_api.py
# (c)      2025-2026 Wolfgang Lohmann
# License: MIT
# -----------------------------------------------------------------------------

# blockchain_api.py
'''
Block header lookups on WhatsOnChain, used to check merkle roots of evidence bundles.
'''

from typing import Dict, Any, Optional
import logging
import asyncio

import aiohttp

from todotokens.config import Config

logger = logging.getLogger(__name__)


async def _log_aiohttp_error(response: aiohttp.ClientResponse, context: str):
    """Logs detailed error information from an aiohttp response."""
    try:
        error_data = await response.json(content_type=None)
        error_message = error_data.get('message', str(error_data)) if isinstance(error_data, dict) else str(error_data)
    except Exception:
        error_message = await response.text()
    logger.error(f"Request failed for {context}: Status {response.status}, Error: {error_message}")


async def api_call(url: str) -> Optional[Any]:
    """
    Central function for a GET call to WhatsOnChain.
    Handles timeouts and basic error logging; returns None on any failure.
    """
    timeout = aiohttp.ClientTimeout(total=Config.TIMEOUT_CONNECT)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as response:
                if response.status == 200:
                    return await response.json(content_type=None)
                if response.status == 404:
                    logger.info(f"Not found on WhatsOnChain: {url}")
                    return None
                await _log_aiohttp_error(response, f"api_call to {url}")
                return None
    except aiohttp.ClientConnectorError as e:
        logger.error(f"Connection Error: Failed to connect to {url}: {e}")
        return None
    except asyncio.TimeoutError:
        logger.error(f"Timeout Error: Request to {url} timed out after {Config.TIMEOUT_CONNECT} seconds.")
        return None
    except aiohttp.ClientError as e:
        logger.error(f"ClientError for {url}: {e}")
        return None


async def get_block_header_height(height: int) -> Optional[Dict[str, Any]]:
    """Get block header information (incl. merkleroot) by block height from WhatsOnChain."""
    url = f"{Config.WOC_API_BASE_URL}/block/height/{height}"
    data = await api_call(url)

    if isinstance(data, dict) and "height" in data:
        return data
    elif isinstance(data, list) and len(data) > 0 and "height" in data[0]:
        return data[0]  # fallback for compatibility
    elif data is not None:
        logger.warning(f"Unexpected response format for {url}: {data}")
    return None
