"""
Polymarket Gamma API client - resolves a market or event slug to its
outcome tokens.
"""

import asyncio
import json
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional

import aiohttp
from loguru import logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .models import TokenOutcomes
from ..exceptions import GammaError, MarketNotFoundError


class TransientGammaError(GammaError):
    """Network error, 5xx or 429 from the Gamma API - retried"""


class GammaClient:
    """
    Gamma API client for market metadata.

    Uses:
    - /events/slug/{slug} for event pages (several markets per event)
    - /markets paging as a fallback for standalone market slugs
    """

    GAMMA_BASE_URL = "https://gamma-api.polymarket.com"

    MARKETS_PAGE_SIZE = 100
    MAX_MARKET_PAGES = 50

    def __init__(
        self,
        url: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        max_retries: int = 5,
        retry_delay: float = 1.0,
        request_timeout: float = 30.0,
    ):
        self.url = (url or self.GAMMA_BASE_URL).rstrip('/')
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.request_timeout = request_timeout
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout),
                headers={
                    'Accept': 'application/json',
                    'User-Agent': 'Polyfills/1.0'
                }
            )
            self._owns_session = True
        return self._session

    async def close(self):
        """Close the session if we own it"""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    # ==================== REST API Methods ====================

    async def _request(self, path: str, params: Optional[dict] = None) -> Any:
        """GET with exponential backoff on transient failures"""
        data = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_delay, max=30),
            retry=retry_if_exception_type(TransientGammaError),
            reraise=True,
        ):
            with attempt:
                data = await self._request_once(path, params)
        return data

    async def _request_once(self, path: str, params: Optional[dict] = None) -> Any:
        session = await self._get_session()
        url = f"{self.url}{path}"

        try:
            async with session.get(url, params=params) as response:
                if response.status == 404:
                    raise MarketNotFoundError(f"Not found: {path}")

                if response.status == 429:
                    retry_after = parse_retry_after(response.headers.get('Retry-After'))
                    logger.warning(f"Gamma rate limited, waiting {retry_after}s")
                    if retry_after:
                        await asyncio.sleep(retry_after)
                    raise TransientGammaError("Rate limited", status=429)

                if response.status >= 500:
                    raise TransientGammaError(f"Gamma API error {response.status}", status=response.status)

                if response.status >= 400:
                    raise GammaError(f"Gamma API error {response.status}", status=response.status)

                return await response.json()

        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
            logger.warning(f"Gamma request to {path} failed: {e}")
            raise TransientGammaError(str(e)) from e

    async def get_event_by_slug(self, slug: str) -> dict:
        """Fetch an event (a group of markets) by its slug"""
        logger.info(f"Fetching event: {slug}")
        return await self._request(f"/events/slug/{slug}")

    async def get_markets(
        self,
        closed: Optional[bool] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[dict]:
        """Fetch one page of markets"""
        params: Dict[str, Any] = {'limit': limit, 'offset': offset}
        if closed is not None:
            params['closed'] = str(closed).lower()

        data = await self._request("/markets", params=params)
        return data if isinstance(data, list) else []

    async def get_market_by_slug(self, slug: str) -> dict:
        """
        Resolve a slug to market data.

        Event slugs are tried first; the event is returned as a combined
        pseudo-market holding its `markets`. On 404 the public market list is
        scanned page by page.

        Raises:
            MarketNotFoundError: nothing matches the slug
        """
        try:
            event = await self.get_event_by_slug(slug)
            markets = event.get('markets') or []
            logger.info(f"Found event: {event.get('title')} ({len(markets)} markets)")
            return {
                'id': event.get('id'),
                'slug': event.get('slug'),
                'question': event.get('title'),
                'description': event.get('description'),
                'closed': all(m.get('closed', False) for m in markets),
                'markets': markets,
            }
        except MarketNotFoundError:
            logger.info(f"Not found as event, searching markets: {slug}")

        offset = 0
        for _ in range(self.MAX_MARKET_PAGES):
            markets = await self.get_markets(limit=self.MARKETS_PAGE_SIZE, offset=offset)
            if not markets:
                break

            for market in markets:
                if market.get('slug') == slug:
                    logger.info(f"Found market: {market.get('question')}")
                    return market

            offset += self.MARKETS_PAGE_SIZE

        raise MarketNotFoundError(f'Market or event with slug "{slug}" not found')

    async def get_token_outcomes(self, slug: str) -> TokenOutcomes:
        """Slug -> {token_id: "<question> - <outcome>"}"""
        market = await self.get_market_by_slug(slug)
        token_outcomes = extract_token_outcomes(market)
        if not token_outcomes:
            raise MarketNotFoundError(f'No outcome tokens found for "{slug}"')
        return token_outcomes


def parse_retry_after(value: Optional[str]) -> int:
    """Seconds to wait from a Retry-After header: delta-seconds or an HTTP-date"""
    if not value:
        return 0
    try:
        return max(int(value), 0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return 0
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(int((when - datetime.now(timezone.utc)).total_seconds()), 0)


def _parse_json_list(value: Any) -> List[Any]:
    """clobTokenIds / outcomes arrive as JSON-encoded strings or plain lists"""
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def extract_token_outcomes(market: dict) -> TokenOutcomes:
    """
    Map every outcome token in market data to a human label.

    Handles combined events (nested `markets`), the `clobTokenIds` /
    `outcomes` pair, and the legacy `tokens` list.
    """
    token_outcomes: TokenOutcomes = {}

    nested = market.get('markets')
    if isinstance(nested, list):
        for child in nested:
            token_outcomes.update(extract_token_outcomes(child))
        return token_outcomes

    if market.get('clobTokenIds') and market.get('outcomes'):
        token_ids = _parse_json_list(market['clobTokenIds'])
        outcomes = _parse_json_list(market['outcomes'])
        if not token_ids:
            logger.error(f"Could not parse clobTokenIds for market {market.get('question')}")

        for i, token_id in enumerate(token_ids):
            outcome = outcomes[i] if i < len(outcomes) else 'UNKNOWN'
            token_outcomes[str(token_id)] = f"{market.get('question')} - {outcome}"

    for token in market.get('tokens') or []:
        token_id = token.get('token_id')
        if token_id:
            token_outcomes[str(token_id)] = token.get('outcome') or 'UNKNOWN'

    return token_outcomes
