"""
Price, amount and side inference for raw order fills.

A fill only names two asset ids and two raw amounts. One of the assets is
normally the USDC collateral (asset id "0"); the other is the outcome token.
Both amounts use 6 implied decimals, so for a token/USDC fill:

- maker gives the token, taker gives USDC  -> SELL, price = taker / maker
- taker gives the token, maker gives USDC  -> BUY,  price = maker / taker

Token-for-token fills have no USDC leg and cannot be priced.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional

import pytz

from ..core.models import ProcessedFill, RawFillEvent, TokenOutcomes, TradeSide

QUOTE_ASSET_ID = "0"
DECIMALS = 1_000_000

DEFAULT_TIMEZONE = "America/Los_Angeles"


def round_half_up(value: float, places: int) -> float:
    """Round to `places` decimals with halves going up (0.125 -> 0.13)"""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def derive_price(fill: RawFillEvent, token_id: str) -> Optional[float]:
    """
    Fill price in USDC per token, or None for token-for-token fills.
    """
    maker_amount = float(fill.maker_amount_filled)
    taker_amount = float(fill.taker_amount_filled)

    if fill.maker_asset_id == token_id and fill.taker_asset_id == QUOTE_ASSET_ID:
        if maker_amount == 0:
            return 0.0
        return (taker_amount / DECIMALS) / (maker_amount / DECIMALS)

    if fill.taker_asset_id == token_id and fill.maker_asset_id == QUOTE_ASSET_ID:
        if taker_amount == 0:
            return 0.0
        return (maker_amount / DECIMALS) / (taker_amount / DECIMALS)

    return None


def derive_amount(fill: RawFillEvent, token_id: str) -> float:
    """Number of outcome tokens that changed hands"""
    if fill.maker_asset_id == token_id:
        return float(fill.maker_amount_filled) / DECIMALS
    if fill.taker_asset_id == token_id:
        return float(fill.taker_amount_filled) / DECIMALS
    return 0.0


def derive_side(fill: RawFillEvent, token_id: str) -> TradeSide:
    """BUY when the taker received the token, SELL when the maker gave it up"""
    if fill.taker_asset_id == token_id:
        return TradeSide.BUY
    if fill.maker_asset_id == token_id:
        return TradeSide.SELL
    return TradeSide.UNKNOWN


def format_timestamp(timestamp: int, tz_name: str = DEFAULT_TIMEZONE) -> str:
    """Unix seconds -> 'YYYY-MM-DD HH:MM:SS PST' (or PDT)"""
    tz = pytz.timezone(tz_name)
    return datetime.fromtimestamp(int(timestamp), tz).strftime("%Y-%m-%d %H:%M:%S %Z")


def process_fills(
    fills: Iterable[RawFillEvent],
    token_id: str,
    outcome: str = "UNKNOWN",
    tz_name: str = DEFAULT_TIMEZONE,
) -> List[ProcessedFill]:
    """
    Price and side every fill against one token.

    Token-for-token fills are skipped. Price is rounded to 6 decimals and
    amount to 2.
    """
    processed: List[ProcessedFill] = []

    for fill in fills:
        price = derive_price(fill, token_id)
        if price is None:
            continue

        timestamp = int(fill.timestamp)
        processed.append(
            ProcessedFill(
                outcome=outcome,
                token_id=token_id,
                timestamp_unix=timestamp,
                timestamp_pst=format_timestamp(timestamp, tz_name),
                price=round_half_up(price, 6),
                amount=round_half_up(derive_amount(fill, token_id), 2),
                side=derive_side(fill, token_id),
                transaction_hash=fill.transaction_hash,
                order_hash=fill.order_hash,
                maker=fill.maker,
                taker=fill.taker,
                fee=fill.fee,
            )
        )

    return processed


def process_market_fills(
    token_fills: Dict[str, List[RawFillEvent]],
    token_outcomes: TokenOutcomes,
    tz_name: str = DEFAULT_TIMEZONE,
) -> List[ProcessedFill]:
    """
    Process fills for every token of a market into one list, newest first.

    The sort is stable: fills sharing a timestamp keep the order in which
    their tokens appear in `token_fills`.
    """
    all_processed: List[ProcessedFill] = []

    for token_id, fills in token_fills.items():
        outcome = token_outcomes.get(token_id) or "UNKNOWN"
        all_processed.extend(process_fills(fills, token_id, outcome, tz_name))

    all_processed.sort(key=lambda f: f.timestamp_unix, reverse=True)
    return all_processed
