"""Guard Nomad Backend - Source adapters and their fallback chain.

Every adapter answers ``fetch(location)`` with a well-shaped SourceResult.
The order in which it degrades is an explicit list of strategies:

  1. fresh adapter cache
  2. live upstream call (rate-limited, timed out)
  3. secondary generation path, marked synthesized
  4. static location-agnostic records
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from guardnomad.cache import ResponseCache
from guardnomad.errors import RateLimited, SourceError, UpstreamUnavailable
from guardnomad.models import Location, SourceResult, SourceStatus
from guardnomad.rate_limit import RateLimiter

logger = logging.getLogger("guardnomad.fallback")


def _always(result: SourceResult) -> bool:
    return True


def _has_records(result: SourceResult) -> bool:
    return result.recordCount > 0


@dataclass
class Strategy:
    name: str
    status: SourceStatus
    call: Callable[[], Awaitable[Optional[SourceResult]]]
    accept: Callable[[SourceResult], bool] = _always


class FallbackChain:
    """Evaluate strategies in order and return the first accepted result."""

    def __init__(self, source: str, strategies: list[Strategy]):
        self.source = source
        self.strategies = strategies

    async def run(self) -> SourceResult:
        for strategy in self.strategies:
            try:
                result = await strategy.call()
            except SourceError as e:
                logger.warning(f"{self.source}: {strategy.name} failed ({type(e).__name__}: {e})")
                continue
            except Exception as e:
                logger.warning(f"{self.source}: {strategy.name} raised unexpectedly: {e!r}")
                continue

            if result is None:
                continue
            if not strategy.accept(result):
                logger.info(f"{self.source}: {strategy.name} returned nothing usable")
                continue
            if result.status != strategy.status:
                result = result.model_copy(update={"status": strategy.status})
            logger.debug(f"{self.source}: served from {strategy.name}")
            return result

        logger.error(f"{self.source}: every strategy failed, returning empty static result")
        return SourceResult(source=self.source, status=SourceStatus.STATIC)


class SourceAdapter:
    """Base class for one upstream capability.

    Subclasses implement ``_fetch_live`` and ``_static``, and optionally
    ``_synthesize`` for a secondary generation path.
    """

    name = "source"
    # live tier needs a city or country to query with
    requires_place = False

    def __init__(self, cache: ResponseCache, rate_limiter: RateLimiter,
                 cache_ttl: float, timeout_sec: float = 15.0):
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.cache_ttl = cache_ttl
        self.timeout_sec = timeout_sec

    # ── hooks ──

    def cache_key(self, location: Location) -> str:
        return f"{self.name}:{location.bucket_key() or 'unknown'}"

    def available(self) -> bool:
        return True

    async def _fetch_live(self, location: Location) -> SourceResult:
        raise NotImplementedError

    async def _synthesize(self, location: Location) -> Optional[SourceResult]:
        return None

    def _static(self, location: Location) -> SourceResult:
        return SourceResult(source=self.name, status=SourceStatus.STATIC)

    # ── chain ──

    async def _from_cache(self, location: Location) -> Optional[SourceResult]:
        cached = self.cache.get(self.cache_key(location))
        if cached is not None:
            logger.info(f"{self.name}: cache hit for {self.cache_key(location)}")
        return cached

    async def _live(self, location: Location) -> SourceResult:
        if not self.available():
            raise UpstreamUnavailable(self.name, "upstream not configured or suspended")
        if self.requires_place and not location.label:
            raise UpstreamUnavailable(self.name, "no city or country to search for")
        if not self.rate_limiter.try_acquire(self.name):
            raise RateLimited(self.name, "local request budget exhausted")
        try:
            result = await asyncio.wait_for(self._fetch_live(location), timeout=self.timeout_sec)
        except asyncio.TimeoutError as e:
            raise UpstreamUnavailable(self.name, f"timed out after {self.timeout_sec}s") from e
        if result.recordCount > 0:
            self.cache.set(self.cache_key(location), result.model_copy(update={"status": SourceStatus.CACHED}),
                           ttl=self.cache_ttl)
        return result

    async def _static_async(self, location: Location) -> SourceResult:
        return self._static(location)

    def build_chain(self, location: Location) -> FallbackChain:
        return FallbackChain(self.name, [
            Strategy("cache", SourceStatus.CACHED, lambda: self._from_cache(location)),
            Strategy("live", SourceStatus.LIVE, lambda: self._live(location), _has_records),
            Strategy("secondary", SourceStatus.SYNTHESIZED, lambda: self._synthesize(location), _has_records),
            Strategy("static", SourceStatus.STATIC, lambda: self._static_async(location)),
        ])

    async def fetch(self, location: Location) -> SourceResult:
        return await self.build_chain(location).run()
