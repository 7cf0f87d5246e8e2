"""
Prober for wafdetect
Sends the fixed probe battery against one target and captures each response
"""

from __future__ import annotations

import asyncio
import logging
import time
import urllib.parse
from typing import Awaitable, Dict, List, Optional, Tuple

import httpx

from .errors import BodyReadError, InvalidTargetError, ProbeTimeoutError, ScanCancelledError, WAFDetectError
from .http_client import HTTPClient
from .model import ProbeResult, ProbeSet, ProbeType


SQLI_PARAMS = {
    "id": "1' OR '1'='1",
    "test": "' UNION SELECT NULL--",
}

XSS_PARAMS = {
    "q": "<script>alert(1)</script>",
    "search": "<img src=x onerror=alert(1)>",
}

MALFORMED_HEADERS = {
    "X-Forwarded-For": "127.0.0.1' OR '1'='1",
    "User-Agent": "../../../etc/passwd",
    "Referer": "javascript:alert(1)",
    "Cookie": "session=<script>alert(1)</script>",
}

# probe type -> (query params, extra headers)
PROBE_REQUESTS: Dict[ProbeType, Tuple[Optional[Dict[str, str]], Optional[Dict[str, str]]]] = {
    ProbeType.NORMAL: (None, None),
    ProbeType.SQLI: (SQLI_PARAMS, None),
    ProbeType.XSS: (XSS_PARAMS, None),
    ProbeType.MALFORMED: (None, MALFORMED_HEADERS),
}


def normalize_target(target: str) -> str:
    """Normalize target URL format, defaulting to https when no scheme is given."""
    target = (target or "").strip()
    if not target:
        raise InvalidTargetError(target, "Empty target")

    if "://" not in target:
        target = f"https://{target}"
    elif not target.lower().startswith(("http://", "https://")):
        raise InvalidTargetError(target, "Unsupported URL scheme")

    try:
        parsed = urllib.parse.urlparse(target)
        port = parsed.port
    except ValueError as e:
        raise InvalidTargetError(target, cause=e) from e

    if not parsed.hostname:
        raise InvalidTargetError(target, "Missing host")

    # Remove default ports
    scheme = parsed.scheme.lower()
    if (port == 80 and scheme == "http") or (port == 443 and scheme == "https"):
        netloc = parsed.hostname if ":" not in parsed.hostname else f"[{parsed.hostname}]"
    else:
        netloc = parsed.netloc

    normalized = urllib.parse.urlunparse((
        scheme,
        netloc,
        parsed.path.rstrip("/") or "/",
        parsed.params,
        parsed.query,
        "",
    ))

    try:
        httpx.URL(normalized)
    except httpx.InvalidURL as e:
        raise InvalidTargetError(target, cause=e) from e

    return normalized


class Prober:
    """Issues the four probes for a target over a shared HTTPClient."""

    def __init__(self, client: HTTPClient, logger: Optional[logging.Logger] = None):
        self.client = client
        self.logger = logger or logging.getLogger(__name__)

    async def scan(self, target: str, cancel_event: Optional[asyncio.Event] = None) -> ProbeSet:
        """Probe a target; raises InvalidTargetError or ScanCancelledError."""
        url = normalize_target(target)
        if cancel_event is not None and cancel_event.is_set():
            raise ScanCancelledError(url)

        probe_types = ProbeType.ordered()
        results: List[ProbeResult] = await self._until_cancelled(
            asyncio.gather(*(self.probe(url, probe_type) for probe_type in probe_types)),
            cancel_event,
            url,
        )
        return dict(zip(probe_types, results))

    async def probe(self, url: str, probe_type: ProbeType) -> ProbeResult:
        """Run a single probe. Request failures are recorded, never raised."""
        params, headers = PROBE_REQUESTS[probe_type]
        start_time = time.perf_counter()

        try:
            fetched = await self.client.fetch(url, params=params, headers=headers)
        except (BodyReadError, ProbeTimeoutError) as e:
            result = ProbeResult(
                probe_type=probe_type,
                status_code=e.status_code,
                headers=e.headers if e.headers is not None else httpx.Headers(),
                duration=time.perf_counter() - start_time,
                error=e,
                url=url,
            )
        except WAFDetectError as e:
            result = ProbeResult(
                probe_type=probe_type,
                duration=time.perf_counter() - start_time,
                error=e,
                url=url,
            )
        else:
            result = ProbeResult(
                probe_type=probe_type,
                status_code=fetched.status_code,
                headers=fetched.headers,
                body=fetched.body,
                body_length=fetched.body_length,
                duration=fetched.elapsed,
                url=fetched.url,
                truncated=fetched.truncated,
            )

        if result.error is not None:
            self.logger.debug(f"{probe_type.value} probe for {url} failed: {result.error}")
        else:
            self.logger.debug(
                f"{probe_type.value} probe for {url}: status={result.status_code}, "
                f"length={result.body_length}, duration={result.duration:.3f}s"
            )
        return result

    async def _until_cancelled(self, work: Awaitable, cancel_event: Optional[asyncio.Event], url: str):
        """Await `work`, aborting it as soon as `cancel_event` is set."""
        if cancel_event is None:
            return await work

        work_task = asyncio.ensure_future(work)
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({work_task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (work_task, waiter):
                if not task.done():
                    task.cancel()

        if work_task in done:
            return work_task.result()

        await asyncio.gather(work_task, return_exceptions=True)
        raise ScanCancelledError(url)
