"""
Client for the Polymarket orderbook subgraph (GraphQL).

Returns raw OrderFilled events for a single outcome token, one page at a
time. Pagination, pacing and rate-limit handling live in the ingestion
layer; this client only classifies failures.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from .models import RawFillEvent
from ..exceptions import RateLimitError, SubgraphError

logger = logging.getLogger(__name__)


FILLS_QUERY = """
query GetSingleTokenFills($tokenId: String!, $first: Int!, $skip: Int!) {
  orderFilledEvents(
    where: {
      or: [
        { makerAssetId: $tokenId }
        { takerAssetId: $tokenId }
      ]
    }
    orderBy: timestamp
    orderDirection: desc
    first: $first
    skip: $skip
  ) {
    id
    transactionHash
    timestamp
    orderHash
    maker
    taker
    makerAssetId
    takerAssetId
    makerAmountFilled
    takerAmountFilled
    fee
  }
}
"""


def is_rate_limit_message(message: Optional[str]) -> bool:
    """True if an error message from the feed looks like a rate limit"""
    return bool(message) and "rate limit" in message.lower()


class SubgraphClient:
    """
    GraphQL client for the orderbook subgraph.

    Endpoint:
    - Goldsky-hosted orderbook subgraph (orderFilledEvents entity)
    """

    SUBGRAPH_URL = (
        "https://api.goldsky.com/api/public/project_cl6mb8i9h0003e201j6li0diw"
        "/subgraphs/orderbook-subgraph/0.0.1/gn"
    )

    def __init__(
        self,
        url: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        request_timeout: float = 30.0,
    ):
        """
        Initialize the subgraph client.

        Args:
            url: Subgraph endpoint (defaults to the public orderbook subgraph)
            session: Optional aiohttp session (created if not provided)
            request_timeout: Total timeout per HTTP call, in seconds
        """
        self.url = url or self.SUBGRAPH_URL
        self.request_timeout = request_timeout
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create an aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout),
                headers={"Accept": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def close(self):
        """Close the session if we own it"""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "SubgraphClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _post(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST a GraphQL query and return its `data` object.

        Raises:
            RateLimitError: HTTP 429 or a rate-limit message in the response
            SubgraphError: any other HTTP or GraphQL failure
        """
        session = await self._get_session()

        try:
            async with session.post(
                self.url, json={"query": query, "variables": variables}
            ) as response:
                if response.status == 429:
                    raise RateLimitError("Subgraph rate limit (HTTP 429)", status=429)

                if response.status >= 400:
                    text = await response.text()
                    if is_rate_limit_message(text):
                        raise RateLimitError(
                            f"Subgraph rate limit: {text[:200]}", status=response.status
                        )
                    raise SubgraphError(
                        f"Subgraph error {response.status}: {text[:200]}",
                        status=response.status,
                    )

                try:
                    payload = await response.json(content_type=None)
                except ValueError as e:
                    # Gateway pages and plain-text throttling replies
                    text = await response.text()
                    if is_rate_limit_message(text):
                        raise RateLimitError(
                            f"Subgraph rate limit: {text[:200]}", status=response.status
                        ) from e
                    raise SubgraphError(
                        f"Invalid subgraph response: {text[:200]}", status=response.status
                    ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SubgraphError(f"Subgraph request failed: {e}") from e

        if not isinstance(payload, dict):
            raise SubgraphError("Unexpected subgraph payload")

        errors = payload.get("errors")
        if errors:
            if not isinstance(errors, list):
                errors = [errors]
            message = "; ".join(
                str(err.get("message", err) if isinstance(err, dict) else err)
                for err in errors
            )
            if is_rate_limit_message(message):
                raise RateLimitError(f"Subgraph rate limit: {message}")
            raise SubgraphError(f"GraphQL error: {message}")

        return payload.get("data") or {}

    async def get_fills_page(
        self,
        token_id: str,
        first: int = 1000,
        skip: int = 0,
    ) -> List[RawFillEvent]:
        """
        Fetch one page of fills where the token is either asset leg.

        Args:
            token_id: Outcome token ID
            first: Page size
            skip: Offset into the timestamp-descending result set

        Returns:
            List of RawFillEvent, newest first
        """
        data = await self._post(
            FILLS_QUERY, {"tokenId": token_id, "first": first, "skip": skip}
        )

        items = data.get("orderFilledEvents") or []
        logger.debug(f"Page skip={skip} for token {token_id[:16]}...: {len(items)} fills")
        return [RawFillEvent.from_dict(item) for item in items]
