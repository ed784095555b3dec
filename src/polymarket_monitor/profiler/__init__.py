"""Profiling layer - Trader P&L and holder analysis."""

from polymarket_monitor.profiler.models import (
    EnrichedDistribution,
    EnrichedHolder,
    HolderDistribution,
    HolderInfo,
    PnLResult,
    SidePnLAnalysis,
    TraderPnLSummary,
)
from polymarket_monitor.profiler.smart_money import SmartMoneyAnalyzer, concentration
from polymarket_monitor.profiler.trader_intel import TraderIntelligence

__all__ = [
    "EnrichedDistribution",
    "EnrichedHolder",
    "HolderDistribution",
    "HolderInfo",
    "PnLResult",
    "SidePnLAnalysis",
    "SmartMoneyAnalyzer",
    "TraderIntelligence",
    "TraderPnLSummary",
    "concentration",
]
