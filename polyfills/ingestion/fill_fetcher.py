"""
Fill fetcher for reconstructing the complete fill history of outcome tokens.
Pages through the subgraph per token and runs several tokens concurrently.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from ..core.models import RawFillEvent
from ..core.subgraph_client import SubgraphClient
from ..exceptions import RateLimitError

logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    """Pacing and rate-limit behavior for paginated fetches"""
    # Pause between consecutive pages of one token
    page_delay: float = 0.1

    # Cool-down before re-issuing a rate-limited page
    rate_limit_cooldown: float = 60.0

    # None retries forever
    max_rate_limit_retries: Optional[int] = None

    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    def allows_retry(self, attempts: int) -> bool:
        """Whether another retry is allowed after `attempts` consecutive rate limits"""
        if self.max_rate_limit_retries is None:
            return True
        return attempts <= self.max_rate_limit_retries


class FillFetcher:
    """
    Fetch every OrderFilled event for a set of outcome tokens.

    Supports:
    - Exhaustive skip/first pagination per token (newest first)
    - Rate-limit cool-down that re-issues the same page
    - Bounded concurrency across tokens with per-token failure isolation
    """

    def __init__(
        self,
        client: SubgraphClient,
        page_size: int = 1000,
        max_concurrent: int = 5,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """
        Initialize the fill fetcher.

        Args:
            client: Subgraph client
            page_size: Events requested per page
            max_concurrent: Default ceiling on tokens fetched at once
            retry_policy: Pacing/rate-limit policy (defaults if not provided)
        """
        self.client = client
        self.page_size = page_size
        self.max_concurrent = max_concurrent
        self.retry_policy = retry_policy or RetryPolicy()

        # Tokens whose last fetch failed
        self.failed_tokens: List[str] = []

        # Tracking
        self._total_fetched = 0
        self._rate_limit_hits = 0

    async def _fetch_page(self, token_id: str, skip: int) -> List[RawFillEvent]:
        """Fetch one page, sleeping and retrying the same offset on rate limits"""
        policy = self.retry_policy
        attempts = 0

        while True:
            try:
                return await self.client.get_fills_page(
                    token_id, first=self.page_size, skip=skip
                )
            except RateLimitError:
                attempts += 1
                self._rate_limit_hits += 1
                if not policy.allows_retry(attempts):
                    logger.error(
                        f"Rate limit retries exhausted for token {token_id[:16]}... at skip={skip}"
                    )
                    raise

                logger.warning(
                    f"Rate limited on subgraph. Waiting {policy.rate_limit_cooldown:.0f}s..."
                )
                await policy.sleep(policy.rate_limit_cooldown)

    async def fetch_all(self, token_id: str) -> List[RawFillEvent]:
        """
        Fetch the complete fill history for one token.

        Args:
            token_id: Outcome token ID

        Returns:
            All fill events, in the feed's order (timestamp descending)

        Raises:
            SubgraphError: any non rate-limit failure
        """
        all_fills: List[RawFillEvent] = []
        skip = 0

        logger.info(f"Fetching fills for token {token_id[:16]}...")

        while True:
            fills = await self._fetch_page(token_id, skip)

            if not fills:
                break

            all_fills.extend(fills)
            logger.debug(f"  Fetched {len(fills)} fills (total: {len(all_fills)})")

            if len(fills) < self.page_size:
                # Last page
                break

            skip += self.page_size

            await self.retry_policy.sleep(self.retry_policy.page_delay)

        self._total_fetched += len(all_fills)
        logger.info(f"Total fills for token {token_id[:16]}: {len(all_fills)}")
        return all_fills

    async def fetch_many(
        self,
        token_ids: Iterable[str],
        max_concurrent: Optional[int] = None,
    ) -> Dict[str, List[RawFillEvent]]:
        """
        Fetch fills for several tokens, at most `max_concurrent` at a time.

        A token that fails maps to an empty list and is added to
        `failed_tokens`; the batch always completes.

        Args:
            token_ids: Outcome token IDs
            max_concurrent: Concurrency ceiling (defaults to the instance setting)

        Returns:
            Dict of token_id -> fill events, in the order token_ids were given
        """
        token_ids = list(token_ids)
        limit = max_concurrent or self.max_concurrent
        semaphore = asyncio.Semaphore(limit)
        self.failed_tokens = []

        logger.info(f"Fetching fills for {len(token_ids)} tokens (max {limit} concurrent)")

        async def fetch_one(token_id: str) -> Tuple[str, List[RawFillEvent], bool]:
            async with semaphore:
                try:
                    return token_id, await self.fetch_all(token_id), True
                except Exception as e:
                    logger.error(f"Error fetching fills for token {token_id}: {e}")
                    return token_id, [], False

        results = await asyncio.gather(*(fetch_one(tid) for tid in token_ids))

        token_fills: Dict[str, List[RawFillEvent]] = {}
        for token_id, fills, ok in results:
            token_fills[token_id] = fills
            if not ok:
                self.failed_tokens.append(token_id)

        if self.failed_tokens:
            logger.warning(
                f"{len(self.failed_tokens)}/{len(token_ids)} tokens failed and were left empty"
            )

        return token_fills

    def get_stats(self) -> dict:
        """Get fetcher statistics"""
        return {
            "total_fetched": self._total_fetched,
            "rate_limit_hits": self._rate_limit_hits,
            "failed_tokens": list(self.failed_tokens),
        }
