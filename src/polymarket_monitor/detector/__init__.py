"""Detection layer - Statistical tests over market activity."""

from polymarket_monitor.detector.statistics import (
    OutlierResult,
    StatisticalAnalyzer,
    StatisticalAnalyzerError,
)

__all__ = [
    "OutlierResult",
    "StatisticalAnalyzer",
    "StatisticalAnalyzerError",
]
