"""Weighted optimization score and tiered recommendations."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Mapping

from .findings import ImpactTier, OptimizationOpportunity

IMPACT_PENALTIES: Mapping[ImpactTier, int] = {
    ImpactTier.HIGH: 15,
    ImpactTier.MEDIUM: 8,
    ImpactTier.LOW: 3,
}

# Lower bounds, checked in order.
SCORE_TIERS = (
    (90, "Excellent"),
    (75, "Good"),
    (60, "Fair"),
)
LOWEST_TIER = "Needs Improvement"

RECOMMENDATION_TEMPLATES: Mapping[ImpactTier, str] = {
    ImpactTier.HIGH: "Address {count} high-impact optimization(s) first for the largest performance gains.",
    ImpactTier.MEDIUM: "Review {count} medium-impact optimization(s) to further improve responsiveness.",
    ImpactTier.LOW: "Consider {count} low-impact optimization(s) during routine maintenance.",
}
NO_OPPORTUNITIES_MESSAGE = "System is well optimized. No optimization opportunities were found."


@dataclass
class OptimizationScore:
    overall: int
    deductions: int
    opportunity_count: int
    category: str

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


def score_category(score: int) -> str:
    """Return the tier label for ``score``."""

    for lower_bound, label in SCORE_TIERS:
        if score >= lower_bound:
            return label
    return LOWEST_TIER


def compute_score(opportunities: Iterable[OptimizationOpportunity]) -> OptimizationScore:
    """Start at 100 and subtract the impact penalty of every opportunity, floored at 0."""

    items = list(opportunities)
    deductions = sum(IMPACT_PENALTIES[ImpactTier(item.impact)] for item in items)
    overall = max(0, 100 - deductions)
    return OptimizationScore(
        overall=overall,
        deductions=deductions,
        opportunity_count=len(items),
        category=score_category(overall),
    )


def count_by_impact(opportunities: Iterable[OptimizationOpportunity]) -> Dict[ImpactTier, int]:
    counts = {tier: 0 for tier in ImpactTier}
    for item in opportunities:
        counts[ImpactTier(item.impact)] += 1
    return counts


def build_recommendations(opportunities: Iterable[OptimizationOpportunity]) -> List[str]:
    """One sentence per non-empty impact tier, or a single positive message."""

    counts = count_by_impact(opportunities)
    recommendations = [
        RECOMMENDATION_TEMPLATES[tier].format(count=counts[tier])
        for tier in ImpactTier
        if counts[tier]
    ]
    return recommendations or [NO_OPPORTUNITIES_MESSAGE]


__all__ = [
    "IMPACT_PENALTIES",
    "NO_OPPORTUNITIES_MESSAGE",
    "OptimizationScore",
    "build_recommendations",
    "compute_score",
    "count_by_impact",
    "score_category",
]
