"""
End-to-end fill reconstruction for one market slug:
resolve tokens -> fetch fills -> price -> group -> summarize.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .core.gamma_client import GammaClient
from .core.models import MarketGroup, ProcessedFill, RawFillEvent, SummaryRow, TokenOutcomes
from .database.db import Database
from .exceptions import CacheMissError, MarketNotFoundError
from .ingestion.fill_fetcher import FillFetcher
from .processing.aggregator import summarize
from .processing.pair_matcher import BinaryPairMatcher, bucket_by_token
from .processing.price_engine import DEFAULT_TIMEZONE, process_market_fills

logger = logging.getLogger(__name__)


class PipelineStatus(str, Enum):
    OK = "ok"
    # Tokens resolved, but not a single priceable fill
    EMPTY = "empty"


@dataclass
class PipelineResult:
    """Everything produced for one market"""
    status: PipelineStatus
    market_slug: str
    token_outcomes: TokenOutcomes
    processed_fills: List[ProcessedFill] = field(default_factory=list)
    groups: List[MarketGroup] = field(default_factory=list)
    summary: List[SummaryRow] = field(default_factory=list)
    failed_tokens: List[str] = field(default_factory=list)
    from_cache: bool = False

    @property
    def is_empty(self) -> bool:
        return self.status == PipelineStatus.EMPTY

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "market_slug": self.market_slug,
            "token_outcomes": self.token_outcomes,
            "failed_tokens": self.failed_tokens,
            "summary": [row.to_dict() for row in self.summary],
            "groups": [g.to_dict() for g in self.groups],
            "fills": [f.to_dict() for f in self.processed_fills],
        }


class MarketFillsPipeline:
    """
    Orchestrates fetching and aggregation for a market.

    The cache is optional; without one every run fetches from the network.
    """

    def __init__(
        self,
        gamma: GammaClient,
        fetcher: FillFetcher,
        matcher: Optional[BinaryPairMatcher] = None,
        cache: Optional[Database] = None,
        tz_name: str = DEFAULT_TIMEZONE,
    ):
        self.gamma = gamma
        self.fetcher = fetcher
        self.matcher = matcher or BinaryPairMatcher()
        self.cache = cache
        self.tz_name = tz_name

    async def _load_or_fetch(
        self,
        market_slug: str,
        use_cache: bool,
        skip_fetch: bool,
    ):
        if use_cache and self.cache is not None:
            cached = await self.cache.load_fills(market_slug)
            if cached is not None:
                return cached.token_fills, cached.token_outcomes, [], True

        if skip_fetch:
            raise CacheMissError(
                f"No cached fills data found for {market_slug}. Run without --skip-fetch first."
            )

        token_outcomes = await self.gamma.get_token_outcomes(market_slug)
        if not token_outcomes:
            raise MarketNotFoundError(f'No outcome tokens found for "{market_slug}"')

        logger.info(f"Tokens found: {len(token_outcomes)}")
        for token_id, outcome in token_outcomes.items():
            logger.info(f"  {outcome}: {token_id[:16]}...")

        token_fills = await self.fetcher.fetch_many(list(token_outcomes))
        failed = list(self.fetcher.failed_tokens)

        # Partial results are not cached so a retry refetches the failed tokens
        if self.cache is not None and not failed:
            await self.cache.save_fills(market_slug, token_fills, token_outcomes)

        return token_fills, token_outcomes, failed, False

    async def run(
        self,
        market_slug: str,
        use_cache: bool = True,
        skip_fetch: bool = False,
    ) -> PipelineResult:
        """
        Build processed fills, market groups and summary rows for a slug.

        Raises:
            MarketNotFoundError: the slug resolves to no tokens
            CacheMissError: skip_fetch without cached data
        """
        token_fills, token_outcomes, failed, from_cache = await self._load_or_fetch(
            market_slug, use_cache, skip_fetch
        )

        processed = self.process(token_fills, token_outcomes)

        result = PipelineResult(
            status=PipelineStatus.OK,
            market_slug=market_slug,
            token_outcomes=token_outcomes,
            failed_tokens=failed,
            from_cache=from_cache,
        )

        if not processed:
            logger.warning(f"No fills found for {market_slug}")
            result.status = PipelineStatus.EMPTY
            return result

        result.processed_fills = processed
        result.groups = self.matcher.group(bucket_by_token(processed))
        result.summary = summarize(result.groups)
        return result

    def process(
        self,
        token_fills: Dict[str, List[RawFillEvent]],
        token_outcomes: TokenOutcomes,
    ) -> List[ProcessedFill]:
        return process_market_fills(token_fills, token_outcomes, self.tz_name)
