"""
Data model for order fills, processed fills and market groups.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, List, Optional


class TradeSide(str, Enum):
    """Trade direction from the perspective of one outcome token"""
    BUY = "BUY"
    SELL = "SELL"
    UNKNOWN = "UNKNOWN"


# token id -> "<market question> - <outcome name>"
TokenOutcomes = Dict[str, str]


@dataclass(frozen=True)
class RawFillEvent:
    """One OrderFilled event as returned by the orderbook subgraph"""
    id: str
    transaction_hash: str
    order_hash: str
    maker: str
    taker: str
    maker_asset_id: str
    taker_asset_id: str
    maker_amount_filled: str  # integer string, 6 implied decimals
    taker_amount_filled: str  # integer string, 6 implied decimals
    timestamp: str  # unix seconds
    fee: str = "0"

    @classmethod
    def from_dict(cls, data: dict) -> "RawFillEvent":
        """Build from the subgraph's camelCase payload"""
        return cls(
            id=str(data.get("id") or ""),
            transaction_hash=data.get("transactionHash") or "",
            order_hash=data.get("orderHash") or "",
            maker=data.get("maker") or "",
            taker=data.get("taker") or "",
            maker_asset_id=str(data.get("makerAssetId") or ""),
            taker_asset_id=str(data.get("takerAssetId") or ""),
            maker_amount_filled=str(data.get("makerAmountFilled") or "0"),
            taker_amount_filled=str(data.get("takerAmountFilled") or "0"),
            timestamp=str(data.get("timestamp") or "0"),
            fee=str(data.get("fee") or "0"),
        )

    def to_dict(self) -> dict:
        """Inverse of from_dict, used when caching raw events"""
        return {
            "id": self.id,
            "transactionHash": self.transaction_hash,
            "orderHash": self.order_hash,
            "maker": self.maker,
            "taker": self.taker,
            "makerAssetId": self.maker_asset_id,
            "takerAssetId": self.taker_asset_id,
            "makerAmountFilled": self.maker_amount_filled,
            "takerAmountFilled": self.taker_amount_filled,
            "timestamp": self.timestamp,
            "fee": self.fee,
        }


@dataclass
class ProcessedFill:
    """A fill priced and sided against a single outcome token"""
    outcome: str
    token_id: str
    timestamp_unix: int
    timestamp_pst: str
    price: float
    amount: float
    side: TradeSide
    transaction_hash: str
    order_hash: str
    maker: str
    taker: str
    fee: str

    # Only set for fills inside a binary market group
    net_action: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["side"] = self.side.value
        if self.net_action is None:
            data.pop("net_action")
        return data


@dataclass
class MarketGroup:
    """Fills for one outcome, or for a merged pair of complementary outcomes"""
    base_name: str
    is_binary: bool
    fills: List[ProcessedFill] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        """Market name for reports: the base question for pairs, the full label otherwise"""
        if self.is_binary or not self.fills:
            return self.base_name
        return self.fills[0].outcome

    def to_dict(self) -> dict:
        return {
            "base_name": self.base_name,
            "is_binary": self.is_binary,
            "fills": [f.to_dict() for f in self.fills],
        }


@dataclass
class SummaryRow:
    """Per-group statistics, corrected for double-emitted fills"""
    market: str
    total_fills: float
    total_volume: float
    avg_volume: float
    min_price: float
    max_price: float
    avg_price: float
    current_price: float
    earliest_fill: str
    latest_fill: str
    is_binary: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class OutcomeStats:
    """Raw (uncorrected) statistics for a single outcome label"""
    outcome: str
    fills: int
    total_volume: float
    avg_price: float
    current_price: float
    min_price: float
    max_price: float
