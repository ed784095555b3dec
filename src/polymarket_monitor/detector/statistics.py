"""Descriptive statistics and z-score outlier tests over numeric samples."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

DEFAULT_OUTLIER_THRESHOLD = 2.0


class StatisticalAnalyzerError(Exception):
    """Raised for invalid statistical queries (e.g. percentile out of range)."""


@dataclass(frozen=True)
class OutlierResult:
    """Outcome of a z-score test of one value against a sample.

    ``z_score`` is ``inf`` when the sample has zero spread and the value
    differs from it.
    """

    is_outlier: bool
    value: float
    mean: float
    std_dev: float
    z_score: float
    threshold: float

    def to_dict(self) -> dict[str, float | bool | str]:
        return {
            "isOutlier": self.is_outlier,
            "value": self.value,
            "mean": self.mean,
            "stdDev": self.std_dev,
            # JSON has no infinity literal.
            "stdDeviations": self.z_score if math.isfinite(self.z_score) else "Infinity",
            "threshold": self.threshold,
        }


def _as_array(dataset: Sequence[float]) -> np.ndarray:
    return np.asarray(dataset, dtype=np.float64)


class StatisticalAnalyzer:
    """Stateless numeric helpers used by the volume monitor."""

    @staticmethod
    def mean(dataset: Sequence[float]) -> float:
        if len(dataset) == 0:
            return 0.0
        return float(np.mean(_as_array(dataset)))

    @staticmethod
    def std_dev(dataset: Sequence[float]) -> float:
        """Population standard deviation (divides by N)."""
        if len(dataset) == 0:
            return 0.0
        return float(np.std(_as_array(dataset), ddof=0))

    @staticmethod
    def median(dataset: Sequence[float]) -> float:
        if len(dataset) == 0:
            return 0.0
        return float(np.median(_as_array(dataset)))

    @staticmethod
    def percentile(dataset: Sequence[float], percentile: float) -> float:
        """Percentile with linear interpolation between order statistics.

        Raises:
            StatisticalAnalyzerError: If ``percentile`` is outside 0..100.
        """
        if percentile < 0 or percentile > 100:
            raise StatisticalAnalyzerError(f"Percentile must be between 0 and 100, got {percentile}")
        if len(dataset) == 0:
            return 0.0
        return float(np.percentile(_as_array(dataset), percentile, method="linear"))

    def detect_outlier(
        self,
        value: float,
        dataset: Sequence[float],
        threshold: float = DEFAULT_OUTLIER_THRESHOLD,
    ) -> OutlierResult:
        """Test ``value`` against the sample using ``|value - mean| / std > threshold``."""
        value = float(value)
        if len(dataset) == 0:
            return OutlierResult(
                is_outlier=False,
                value=value,
                mean=0.0,
                std_dev=0.0,
                z_score=0.0,
                threshold=threshold,
            )

        mean = self.mean(dataset)
        std_dev = self.std_dev(dataset)

        if std_dev == 0:
            differs = value != mean
            return OutlierResult(
                is_outlier=differs,
                value=value,
                mean=mean,
                std_dev=0.0,
                z_score=math.inf if differs else 0.0,
                threshold=threshold,
            )

        z_score = abs(value - mean) / std_dev
        return OutlierResult(
            is_outlier=z_score > threshold,
            value=value,
            mean=mean,
            std_dev=std_dev,
            z_score=z_score,
            threshold=threshold,
        )

    def find_outliers(
        self,
        dataset: Sequence[float],
        threshold: float = DEFAULT_OUTLIER_THRESHOLD,
    ) -> list[float]:
        """All sample members whose z-score exceeds ``threshold``."""
        std_dev = self.std_dev(dataset)
        if std_dev == 0:
            return []
        mean = self.mean(dataset)
        return [float(v) for v in dataset if abs(float(v) - mean) / std_dev > threshold]
