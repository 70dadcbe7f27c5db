"""
Base HTTP adapter partagé par les providers externes.
Gère la session aiohttp, les timeouts et la conversion des erreurs.
"""

import asyncio
from abc import abstractmethod
from typing import Optional, Dict, Any

import aiohttp
import structlog

from .interfaces import (
    ISourceAdapter, LookupResult, RawPayload,
    SourceAdapterError, SourceRateLimitError
)

logger = structlog.get_logger(__name__)


class HTTPSourceAdapter(ISourceAdapter):
    """
    Adapter HTTP générique.

    Les sous-classes implémentent `_lookup_payload` et retournent None
    quand le provider ne connaît pas le produit.
    """

    def __init__(self, timeout: float = 10.0, user_agent: str = "TranspareEats/1.0"):
        self._timeout = timeout
        self.user_agent = user_agent
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def timeout(self) -> Optional[float]:
        return self._timeout

    async def _get_session(self) -> aiohttp.ClientSession:
        """Obtient ou crée une session HTTP."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "application/json",
                }
            )
        return self._session

    async def close(self):
        """Ferme la session HTTP."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def lookup(self, barcode: str) -> LookupResult:
        try:
            payload = await self._lookup_payload(barcode)
        except SourceAdapterError as e:
            logger.warning(
                "Source adapter transient error",
                provider=self.provider_name,
                barcode=barcode,
                error=str(e),
                error_type=type(e).__name__
            )
            return LookupResult.transient_error(self.provider_name, str(e))
        except (KeyError, TypeError, ValueError, AttributeError, IndexError) as e:
            logger.warning(
                "Source adapter transient error",
                provider=self.provider_name,
                barcode=barcode,
                error=f"Malformed response: {e}",
                error_type="MalformedResponse"
            )
            return LookupResult.transient_error(self.provider_name, f"Malformed response: {e}")

        if payload is None:
            logger.info("Product not found by provider", provider=self.provider_name, barcode=barcode)
            return LookupResult.not_found(self.provider_name)

        logger.info("Product found by provider", provider=self.provider_name, barcode=barcode)
        return LookupResult.found(self.provider_name, payload)

    @abstractmethod
    async def _lookup_payload(self, barcode: str) -> Optional[RawPayload]:
        pass

    async def _fetch_json(
        self,
        url: str,
        barcode: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Optional[Dict[str, Any]]:
        """
        GET a JSON document.

        Returns None on 404; every other failure is a SourceAdapterError.
        """
        try:
            session = await self._get_session()
            async with session.get(url, params=params, headers=headers) as response:
                if response.status == 404:
                    return None

                if response.status == 429:
                    raise SourceRateLimitError(
                        "Rate limit exceeded",
                        provider=self.provider_name,
                        barcode=barcode
                    )

                if response.status != 200:
                    raise SourceAdapterError(
                        f"HTTP {response.status}: {response.reason}",
                        provider=self.provider_name,
                        barcode=barcode
                    )

                data = await response.json(content_type=None)
                if not isinstance(data, dict):
                    raise SourceAdapterError(
                        "Unexpected response body",
                        provider=self.provider_name,
                        barcode=barcode
                    )
                return data

        except aiohttp.ClientError as e:
            raise SourceAdapterError(
                f"Network error: {str(e)}",
                provider=self.provider_name,
                barcode=barcode,
                original_error=e
            ) from e
        except asyncio.TimeoutError as e:
            raise SourceAdapterError(
                "Request timeout",
                provider=self.provider_name,
                barcode=barcode,
                original_error=e
            ) from e
        except ValueError as e:
            raise SourceAdapterError(
                f"Invalid JSON: {str(e)}",
                provider=self.provider_name,
                barcode=barcode,
                original_error=e
            ) from e
