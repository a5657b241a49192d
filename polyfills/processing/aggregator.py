"""
Summary statistics for market groups.

The subgraph emits two OrderFilled events for every matched trade, one per
order. Fill counts and volumes are therefore halved in the summary; prices
are ratios and are used as-is.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..core.models import MarketGroup, OutcomeStats, ProcessedFill, SummaryRow, TradeSide
from .price_engine import round_half_up

logger = logging.getLogger(__name__)

# Raw events per logical trade
EVENTS_PER_TRADE = 2


def summarize_group(group: MarketGroup) -> Optional[SummaryRow]:
    """Summary row for one group, or None if it has no fills"""
    fills = group.fills
    if not fills:
        return None

    prices = [f.price for f in fills]
    total_volume = sum(f.amount for f in fills) / EVENTS_PER_TRADE
    total_fills = len(fills) / EVENTS_PER_TRADE

    return SummaryRow(
        market=group.display_name,
        total_fills=total_fills,
        total_volume=round_half_up(total_volume, 2),
        avg_volume=round_half_up(total_volume / total_fills, 2),
        min_price=round_half_up(min(prices), 6),
        max_price=round_half_up(max(prices), 6),
        avg_price=round_half_up(sum(prices) / len(prices), 6),
        current_price=round_half_up(fills[0].price, 6),
        earliest_fill=fills[-1].timestamp_pst,
        latest_fill=fills[0].timestamp_pst,
        is_binary=group.is_binary,
    )


def summarize(groups: Iterable[MarketGroup]) -> List[SummaryRow]:
    """
    One row per non-empty group, busiest first.

    Groups are ordered by raw fill count, descending. Groups with the same
    count keep their input order.
    """
    ordered = sorted(groups, key=lambda g: len(g.fills), reverse=True)
    rows = []
    for group in ordered:
        row = summarize_group(group)
        if row is not None:
            rows.append(row)
    return rows


@dataclass
class FillStatistics:
    """Overview of a processed fill list, without duplicate correction"""
    total_fills: int
    by_outcome: List[OutcomeStats] = field(default_factory=list)
    buys: int = 0
    sells: int = 0
    earliest: Optional[str] = None
    latest: Optional[str] = None


def outcome_statistics(processed_fills: List[ProcessedFill]) -> FillStatistics:
    """
    Per-outcome statistics for a newest-first fill list.

    Outcomes are listed in the order they first appear.
    """
    by_outcome: Dict[str, List[ProcessedFill]] = {}
    for fill in processed_fills:
        by_outcome.setdefault(fill.outcome, []).append(fill)

    outcome_stats = []
    for outcome, fills in by_outcome.items():
        prices = [f.price for f in fills]
        outcome_stats.append(
            OutcomeStats(
                outcome=outcome,
                fills=len(fills),
                total_volume=round_half_up(sum(f.amount for f in fills), 2),
                avg_price=sum(prices) / len(prices),
                current_price=fills[0].price,
                min_price=min(prices),
                max_price=max(prices),
            )
        )

    return FillStatistics(
        total_fills=len(processed_fills),
        by_outcome=outcome_stats,
        buys=sum(1 for f in processed_fills if f.side == TradeSide.BUY),
        sells=sum(1 for f in processed_fills if f.side == TradeSide.SELL),
        earliest=processed_fills[-1].timestamp_pst if processed_fills else None,
        latest=processed_fills[0].timestamp_pst if processed_fills else None,
    )


def log_statistics(stats: FillStatistics, log: Optional[logging.Logger] = None):
    """Write a fill statistics report to the log"""
    log = log or logger

    if stats.total_fills == 0:
        log.info("No fills to analyze!")
        return

    log.info("=" * 60)
    log.info("FILLS STATISTICS")
    log.info("=" * 60)
    log.info(f"Total Fills: {stats.total_fills}")

    log.info("By Outcome:")
    for o in stats.by_outcome:
        log.info(f"  {o.outcome}:")
        log.info(f"    Fills: {o.fills}")
        log.info(f"    Total Volume: {o.total_volume:.2f}")
        log.info(f"    Avg Price: ${o.avg_price:.4f}")
        log.info(f"    Current Price: ${o.current_price:.4f}")
        log.info(f"    Min Price: ${o.min_price:.4f}")
        log.info(f"    Max Price: ${o.max_price:.4f}")

    log.info("By Side:")
    log.info(f"  BUY: {stats.buys}")
    log.info(f"  SELL: {stats.sells}")

    log.info("Time Range:")
    log.info(f"  Earliest: {stats.earliest}")
    log.info(f"  Latest: {stats.latest}")
    log.info("=" * 60)
