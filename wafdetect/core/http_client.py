"""
HTTP Client for wafdetect
Wrapper around httpx with a shared connection pool, capped redirects and
size-limited body capture
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import time
import urllib.parse
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import httpx

from .errors import BodyReadError, InvalidTargetError, ProbeTimeoutError, TransportError
from .model import MAX_BODY_SIZE


def _charset(response: httpx.Response) -> str:
    """Declared charset if Python knows it, utf-8 otherwise."""
    charset = response.charset_encoding
    if charset:
        try:
            return codecs.lookup(charset).name
        except LookupError:
            pass
    return "utf-8"


@dataclass
class FetchedResponse:
    """Response captured by HTTPClient.fetch."""

    status_code: int
    headers: httpx.Headers
    body: str
    body_length: int
    url: str
    elapsed: float
    truncated: bool = False
    redirect_history: List[str] = field(default_factory=list)


class HTTPClient:
    """Async HTTP client used by every probe of a scan run."""

    def __init__(self,
                 timeout: float = 10.0,
                 user_agent: str = "waf-detector/1.0",
                 proxy: Optional[str] = None,
                 max_redirects: int = 3,
                 max_body_size: int = MAX_BODY_SIZE,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 logger: Optional[logging.Logger] = None):

        self.timeout = timeout
        self.user_agent = user_agent
        self.proxy = proxy
        self.max_redirects = max_redirects
        self.max_body_size = max_body_size
        self.logger = logger or logging.getLogger(__name__)

        # Certificate validity is not what we are probing
        self.session_config = {
            "timeout": httpx.Timeout(timeout),
            "verify": False,
            "follow_redirects": False,  # Handle redirects manually
            "limits": httpx.Limits(max_connections=100, max_keepalive_connections=100, keepalive_expiry=90.0),
            "headers": {"User-Agent": user_agent},
        }
        if transport is not None:
            self.session_config["transport"] = transport
        elif proxy:
            self.session_config["proxy"] = proxy

        self._session: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "HTTPClient":
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _ensure_session(self) -> httpx.AsyncClient:
        if self._session is None:
            self._session = httpx.AsyncClient(**self.session_config)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            await self._session.aclose()
            self._session = None

    async def fetch(self,
                    url: str,
                    params: Optional[Dict[str, str]] = None,
                    headers: Optional[Dict[str, str]] = None) -> FetchedResponse:
        """GET a URL, following at most `max_redirects` hops.

        `timeout` bounds the whole exchange, every hop and the body read
        included. Raises TransportError, ProbeTimeoutError,
        InvalidTargetError or BodyReadError.
        """
        try:
            return await asyncio.wait_for(self._fetch(url, params, headers), self.timeout)
        except asyncio.TimeoutError as e:
            raise ProbeTimeoutError(url, message=f"Request exceeded {self.timeout:g}s") from e

    async def _fetch(self,
                     url: str,
                     params: Optional[Dict[str, str]],
                     headers: Optional[Dict[str, str]]) -> FetchedResponse:
        session = self._ensure_session()
        start_time = time.perf_counter()
        redirect_history: List[str] = []

        try:
            request = session.build_request("GET", url, params=params, headers=headers)
        except (httpx.InvalidURL, ValueError) as e:
            raise InvalidTargetError(url, cause=e) from e

        response = await self._send(session, request, url)
        try:
            while response.is_redirect and len(redirect_history) < self.max_redirects:
                location = response.headers.get("location")
                if not location:
                    break
                current_url = str(response.url)
                redirect_history.append(current_url)
                await response.aclose()

                next_url = urllib.parse.urljoin(current_url, location)
                try:
                    request = session.build_request("GET", next_url, headers=headers)
                except (httpx.InvalidURL, ValueError) as e:
                    raise InvalidTargetError(next_url, cause=e) from e
                response = await self._send(session, request, url)

            if response.is_redirect:
                self.logger.debug(f"Redirect cap reached for {url}, keeping last response")

            body, truncated = await self._read_body(response, url)
        finally:
            await response.aclose()

        return FetchedResponse(
            status_code=response.status_code,
            headers=response.headers,
            body=body.decode(_charset(response), errors="replace"),
            body_length=len(body),
            url=str(response.url),
            elapsed=time.perf_counter() - start_time,
            truncated=truncated,
            redirect_history=redirect_history,
        )

    async def _send(self, session: httpx.AsyncClient, request: httpx.Request, url: str) -> httpx.Response:
        try:
            return await session.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise ProbeTimeoutError(url, cause=e) from e
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise InvalidTargetError(url, cause=e) from e
        except httpx.TransportError as e:
            raise TransportError(url, cause=e) from e

    async def _read_body(self, response: httpx.Response, url: str):
        """Read at most `max_body_size` bytes; the remainder is dropped."""
        chunks = bytearray()
        truncated = False
        try:
            async for chunk in response.aiter_bytes():
                remaining = self.max_body_size - len(chunks)
                if len(chunk) > remaining:
                    chunks.extend(chunk[:remaining])
                    truncated = True
                    break
                chunks.extend(chunk)
        except httpx.TimeoutException as e:
            raise ProbeTimeoutError(url, cause=e, status_code=response.status_code, headers=response.headers) from e
        except httpx.HTTPError as e:
            raise BodyReadError(url, cause=e, status_code=response.status_code, headers=response.headers) from e
        return bytes(chunks), truncated
