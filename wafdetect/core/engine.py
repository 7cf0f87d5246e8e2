"""
wafdetect Scan Engine
Main orchestrator: fans targets out to a fixed pool of async workers
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..signatures.loader import load_signatures
from ..signatures.registry import SignatureRegistry
from .config import ScanConfig
from .detector import Detector
from .errors import WAFDetectError
from .heuristic import BehaviorHeuristic
from .http_client import HTTPClient
from .model import ScanResult
from .prober import Prober


ResultCallback = Callable[[ScanResult], None]


class ScanEngine:
    """Runs the prober and detector over a list of targets."""

    def __init__(self,
                 config: Optional[ScanConfig] = None,
                 logger: Optional[logging.Logger] = None,
                 prober: Optional[Prober] = None,
                 detector: Optional[Detector] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):

        self.config = config or ScanConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.transport = transport
        self.prober = prober
        self.detector = detector or self.build_detector()

        # Statistics
        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        self.results: List[ScanResult] = []

    def build_detector(self) -> Detector:
        """Create the detector from the configured signature sets and thresholds."""
        signatures = load_signatures(
            self.config.signature_files,
            logger=self.logger,
            min_indicators=self.config.min_indicators,
            discount=self.config.single_indicator_discount,
        )
        registry = SignatureRegistry(signatures, acceptance_floor=self.config.acceptance_floor)
        heuristic = BehaviorHeuristic(threshold=self.config.block_threshold)
        self.logger.debug(f"Detector ready with {len(registry)} signatures")
        return Detector(registry, heuristic, logger=self.logger)

    def create_client(self) -> HTTPClient:
        return HTTPClient(
            timeout=self.config.timeout,
            user_agent=self.config.user_agent,
            proxy=self.config.proxy,
            max_redirects=self.config.max_redirects,
            max_body_size=self.config.max_body_size,
            transport=self.transport,
            logger=self.logger,
        )

    async def scan_target(self,
                          target: str,
                          cancel_event: Optional[asyncio.Event] = None,
                          prober: Optional[Prober] = None) -> ScanResult:
        """Probe and classify one target. Never raises for per-target failures."""
        prober = prober or self.prober
        if prober is None:
            async with self.create_client() as client:
                return await self.scan_target(target, cancel_event, Prober(client, self.logger))

        start_time = time.perf_counter()
        try:
            probes = await prober.scan(target, cancel_event)
            detection = self.detector.detect(probes)
        except WAFDetectError as e:
            self.logger.warning(f"Scan of {target} failed: {e}")
            return ScanResult.from_error(target, e, time.perf_counter() - start_time)
        except Exception as e:
            self.logger.error(f"Unexpected error scanning {target}: {e}")
            return ScanResult.from_error(target, e, time.perf_counter() - start_time)

        result = ScanResult.from_detection(target, detection, time.perf_counter() - start_time)
        if result.waf_found:
            self.logger.debug(f"{target}: {result.waf_name} ({result.details})")
        else:
            self.logger.debug(f"{target}: {result.details}")
        return result

    async def _worker(self,
                      worker_id: int,
                      queue: "asyncio.Queue[str]",
                      results: List[ScanResult],
                      lock: asyncio.Lock,
                      cancel_event: asyncio.Event,
                      prober: Prober,
                      on_result: Optional[ResultCallback]) -> None:
        while not cancel_event.is_set():
            try:
                target = queue.get_nowait()
            except asyncio.QueueEmpty:
                break

            result = await self.scan_target(target, cancel_event, prober)
            async with lock:
                results.append(result)
                if on_result is not None:
                    try:
                        on_result(result)
                    except Exception as e:
                        self.logger.error(f"Result callback failed for {result.url}: {e}")
            queue.task_done()

        self.logger.debug(f"Worker {worker_id} finished")

    async def run(self,
                  targets: List[str],
                  cancel_event: Optional[asyncio.Event] = None,
                  on_result: Optional[ResultCallback] = None) -> List[ScanResult]:
        """Scan every target with `config.threads` workers.

        Results arrive in completion order. If `cancel_event` is set, workers
        stop picking up new targets and the records collected so far are
        returned.
        """
        cancel_event = cancel_event or asyncio.Event()
        queue: "asyncio.Queue[str]" = asyncio.Queue()
        for target in targets:
            queue.put_nowait(target)

        results: List[ScanResult] = []
        lock = asyncio.Lock()

        self.start_time = datetime.now()
        self.end_time = None
        self.logger.info(f"Scanning {len(targets)} targets with {self.config.threads} workers")

        client: Optional[HTTPClient] = None
        prober = self.prober
        if prober is None:
            client = self.create_client()
            prober = Prober(client, self.logger)

        try:
            workers = [
                asyncio.create_task(
                    self._worker(i, queue, results, lock, cancel_event, prober, on_result)
                )
                for i in range(self.config.threads)
            ]
            await asyncio.gather(*workers)
        finally:
            if client is not None:
                await client.close()
            self.end_time = datetime.now()
            self.results = results

        if cancel_event.is_set():
            self.logger.warning(f"Scan cancelled after {len(results)}/{len(targets)} targets")
        else:
            self.logger.info(f"Scan completed: {len(results)} targets scanned")

        return results

    def get_scan_stats(self) -> Dict[str, Any]:
        """Get scan statistics."""
        duration = None
        if self.start_time and self.end_time:
            duration = (self.end_time - self.start_time).total_seconds()

        return {
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_seconds": duration,
            "targets_scanned": len(self.results),
            "wafs_detected": sum(1 for r in self.results if r.waf_found),
            "errors": sum(1 for r in self.results if r.error),
            "threads": self.config.threads,
        }
