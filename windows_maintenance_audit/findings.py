"""Data models for system optimization findings."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping


class ImpactTier(str, Enum):
    """How much an optimization is expected to matter."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


@dataclass
class OptimizationOpportunity:
    """A single detected optimization action.

    ``estimated_savings`` is advisory free text and is never measured.
    """

    category: str
    type: str
    description: str
    impact: ImpactTier
    estimated_savings: str
    target: str

    def key(self) -> str:
        """Stable identifier used to order and compare opportunities."""

        return f"{self.category}:{self.type}:{self.target}"

    def to_dict(self) -> Dict[str, str]:
        return {
            "category": self.category,
            "type": self.type,
            "description": self.description,
            "impact": self.impact.value,
            "estimated_savings": self.estimated_savings,
            "target": self.target,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "OptimizationOpportunity":
        return cls(
            category=str(data["category"]),
            type=str(data["type"]),
            description=str(data["description"]),
            impact=ImpactTier(str(data["impact"])),
            estimated_savings=str(data.get("estimated_savings") or ""),
            target=str(data.get("target") or ""),
        )


__all__ = ["ImpactTier", "OptimizationOpportunity"]
