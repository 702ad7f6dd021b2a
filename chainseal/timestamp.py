#!/usr/bin/env python3
"""
Timestamping authority client.
Requests signatures over block digests from the external authority.
"""

import logging
from typing import Optional

import httpx

from .exceptions import TimestampError

logger = logging.getLogger(__name__)

DEFAULT_TSA_URL = "http://itislabs.ru/ts"
DEFAULT_TIMEOUT = 30.0


class TimestampClient:
    """
    Async client for the timestamping authority.

    `GET {base_url}?digest=<hex>` returns JSON whose
    `timeStampToken.signature` field holds the hex signature.
    `GET {base_url}/public` returns the authority's hex DER public key.

    An instance is an awaitable signer: `await client(digest)`.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_TSA_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _get(self, url: str, **kwargs) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.get(url, **kwargs)
        except httpx.TimeoutException as e:
            raise TimestampError(f"Timestamp request to {url} timed out") from e
        except httpx.HTTPError as e:
            raise TimestampError(f"Timestamp request to {url} failed: {e}") from e

        logger.debug("[TSA] %s -> %d, %d bytes", url, response.status_code, len(response.content))
        if not response.is_success:
            raise TimestampError(f"Timestamp authority returned HTTP {response.status_code}")
        return response

    async def request_signature(self, digest: str) -> str:
        """
        Ask the authority to sign `digest`.

        Args:
            digest: Hex SHA-256 digest of the block's signing fields

        Returns:
            Hex-encoded signature

        Raises:
            TimestampError: On transport failure, timeout, non-2xx status or a
                response without a signature
        """
        logger.info("[TSA] Requesting signature for digest %s...", digest[:16])
        response = await self._get(
            self.base_url,
            params={"digest": digest},
            headers={"content-type": "application/json"}
        )

        try:
            body = response.json()
        except ValueError as e:
            raise TimestampError("Timestamp authority returned a non-JSON body") from e

        token = body.get("timeStampToken") if isinstance(body, dict) else None
        signature = token.get("signature") if isinstance(token, dict) else None
        if not isinstance(signature, str) or not signature:
            raise TimestampError("Timestamp authority response has no timeStampToken.signature")

        logger.info("[TSA] Signed %s...", digest[:5])
        return signature

    async def fetch_public_key(self) -> str:
        """Fetch the authority's hex-encoded DER public key."""
        response = await self._get(f"{self.base_url}/public")
        key = response.text.strip()
        if not key:
            raise TimestampError("Timestamp authority returned an empty public key")
        return key

    async def __call__(self, digest: str) -> str:
        return await self.request_signature(digest)
