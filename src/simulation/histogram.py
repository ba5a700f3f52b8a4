"""
Distribution accumulators for analytics queries.

Samples are kept raw and summarized with numpy on demand.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

import numpy as np


class _Histogram(ABC):
    """Shared sample storage and summary statistics."""

    PERCENTILES = (50, 90, 99)

    def __init__(self) -> None:
        self.samples: list[float] = []

    def add(self, value: float) -> None:
        self.samples.append(float(value))

    def count(self) -> int:
        return len(self.samples)

    def percentile(self, p: float) -> Optional[float]:
        """Return the p-th percentile, or None with no samples."""
        if not self.samples:
            return None
        return float(np.percentile(self.samples, p))

    def mean(self) -> Optional[float]:
        if not self.samples:
            return None
        return float(np.mean(self.samples))

    def max(self) -> Optional[float]:
        if not self.samples:
            return None
        return float(np.max(self.samples))

    def get_summary(self) -> dict[str, Any]:
        """Summary statistics as a dictionary."""
        if not self.samples:
            return {"count": 0}

        summary: dict[str, Any] = {
            "count": self.count(),
            "mean": self.mean(),
            "min": float(np.min(self.samples)),
            "max": self.max(),
        }
        for p in self.PERCENTILES:
            summary[f"p{p}"] = self.percentile(p)
        return summary

    @abstractmethod
    def _format(self, value: float) -> str:
        """Render one sample for describe()."""
        pass

    def describe(self) -> str:
        """One-line human-readable summary."""
        if not self.samples:
            return "no data yet"

        parts = [f"{self.count()} count"]
        for p in self.PERCENTILES:
            parts.append(f"{p}%ile {self._format(self.percentile(p))}")
        parts.append(f"max {self._format(self.max())}")
        return ", ".join(parts)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.describe()})"


class DurationHistogram(_Histogram):
    """Distribution of durations in seconds."""

    def _format(self, value: float) -> str:
        return f"{value:.1f}s"


class PercentageHistogram(_Histogram):
    """Distribution of fractions in [0, 1]."""

    def _format(self, value: float) -> str:
        return f"{value:.1%}"
