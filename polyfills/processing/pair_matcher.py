"""
Binary market matching.

Outcome labels look like "<market question> - <outcome name>". Two labels
with the same question and different outcome names (Over/Under, Yes/No,
Cowboys/Raiders) are complementary tokens of one market and are merged into
a single group. Every fill in a merged group gets a net action: the outcome
the trade actually bets on, since selling one side of a binary market is
equivalent to buying the other.
"""

import logging
from dataclasses import replace
from enum import Enum
from typing import Dict, Iterable, List, Tuple

from ..core.models import MarketGroup, ProcessedFill, TradeSide

logger = logging.getLogger(__name__)

OUTCOME_SEPARATOR = " - "

# (outcome label, token id) -> fills
FillsByOutcomeToken = Dict[Tuple[str, str], List[ProcessedFill]]


class PairingPolicy(str, Enum):
    """How to treat questions that have more than two outcome labels"""
    # First unmatched label pairs with the first later label sharing its
    # question; in a 3-way market the third label stands alone.
    GREEDY = "greedy"
    # Pair only when exactly two labels share a question.
    STRICT = "strict"


def split_outcome(label: str) -> Tuple[str, str]:
    """Split a label on its last separator into (base name, outcome suffix)"""
    base, sep, suffix = label.rpartition(OUTCOME_SEPARATOR)
    if not sep:
        return "", label
    return base, suffix


def _sort_newest_first(fills: List[ProcessedFill]) -> List[ProcessedFill]:
    return sorted(fills, key=lambda f: f.timestamp_unix, reverse=True)


def bucket_by_token(fills: Iterable[ProcessedFill]) -> FillsByOutcomeToken:
    """Group a flat fill list by (outcome, token_id), keeping first-seen order"""
    buckets: FillsByOutcomeToken = {}
    for fill in fills:
        buckets.setdefault((fill.outcome, fill.token_id), []).append(fill)
    return buckets


def assign_net_actions(fills: List[ProcessedFill]) -> List[ProcessedFill]:
    """
    Copy fills with `net_action` set.

    BUY keeps the fill's own outcome; SELL flips to the opposite outcome.
    The opposite is only known when exactly two outcome suffixes are present,
    otherwise SELL also keeps its own outcome.
    """
    suffixes: List[str] = []
    for fill in fills:
        suffix = split_outcome(fill.outcome)[1]
        if suffix not in suffixes:
            suffixes.append(suffix)

    opposites: Dict[str, str] = {}
    if len(suffixes) == 2:
        opposites = {suffixes[0]: suffixes[1], suffixes[1]: suffixes[0]}

    result = []
    for fill in fills:
        own = split_outcome(fill.outcome)[1]
        if fill.side == TradeSide.SELL:
            net_action = opposites.get(own, own)
        else:
            net_action = own
        result.append(replace(fill, net_action=net_action))
    return result


class BinaryPairMatcher:
    """
    Groups per-token fills into market groups.

    Labels are visited in the order they first appear in the input, so
    results are deterministic for a given input ordering.
    """

    def __init__(self, policy: PairingPolicy = PairingPolicy.GREEDY):
        self.policy = PairingPolicy(policy)

    def group(self, fills_by_outcome_token: FillsByOutcomeToken) -> List[MarketGroup]:
        """
        Build market groups.

        Args:
            fills_by_outcome_token: Fills keyed by (outcome label, token id)

        Returns:
            Binary groups for matched pairs and standalone groups for the rest,
            in the order their first label appeared
        """
        # Step 1: label -> fills across all of its tokens
        fills_by_label: Dict[str, List[ProcessedFill]] = {}
        for (label, _token_id), fills in fills_by_outcome_token.items():
            fills_by_label.setdefault(label, []).extend(fills)

        labels = list(fills_by_label)
        partners = self._find_pairs(labels)

        groups: List[MarketGroup] = []
        processed = set()

        for label in labels:
            if label in processed:
                continue

            partner = partners.get(label)
            if partner is not None:
                merged = _sort_newest_first(fills_by_label[label] + fills_by_label[partner])
                groups.append(
                    MarketGroup(
                        base_name=split_outcome(label)[0],
                        is_binary=True,
                        fills=assign_net_actions(merged),
                    )
                )
                processed.update((label, partner))
            else:
                groups.append(
                    MarketGroup(
                        base_name=label,
                        is_binary=False,
                        fills=_sort_newest_first(fills_by_label[label]),
                    )
                )
                processed.add(label)

        binary_count = sum(1 for g in groups if g.is_binary)
        logger.info(
            f"Grouped {len(labels)} outcomes into {len(groups)} markets "
            f"({binary_count} binary, policy={self.policy.value})"
        )
        return groups

    def _find_pairs(self, labels: List[str]) -> Dict[str, str]:
        """Map each paired label to its partner (both directions)"""
        if self.policy == PairingPolicy.STRICT:
            return self._strict_pairs(labels)
        return self._greedy_pairs(labels)

    @staticmethod
    def _can_pair(label1: str, label2: str) -> bool:
        base1, suffix1 = split_outcome(label1)
        base2, suffix2 = split_outcome(label2)
        return (
            base1 != ""
            and base1 == base2
            and suffix1 != ""
            and suffix2 != ""
            and suffix1 != suffix2
        )

    def _greedy_pairs(self, labels: List[str]) -> Dict[str, str]:
        partners: Dict[str, str] = {}
        for i, label1 in enumerate(labels):
            if label1 in partners:
                continue
            for label2 in labels[i + 1:]:
                if label2 in partners:
                    continue
                if self._can_pair(label1, label2):
                    partners[label1] = label2
                    partners[label2] = label1
                    break
        return partners

    def _strict_pairs(self, labels: List[str]) -> Dict[str, str]:
        by_base: Dict[str, List[str]] = {}
        for label in labels:
            by_base.setdefault(split_outcome(label)[0], []).append(label)

        partners: Dict[str, str] = {}
        for base, members in by_base.items():
            if len(members) == 2 and self._can_pair(*members):
                partners[members[0]] = members[1]
                partners[members[1]] = members[0]
            elif len(members) > 2 and base:
                logger.warning(
                    f"Not pairing {len(members)} outcomes sharing '{base}' (strict pairing)"
                )
        return partners
