"""Monitor layer - Polling monitors that turn upstream data into alerts."""

from polymarket_monitor.monitor.account import AccountActivityMonitor
from polymarket_monitor.monitor.base import BaseMonitor, Monitor, resolve_tracked_market, slugify
from polymarket_monitor.monitor.market import MarketProbabilityMonitor
from polymarket_monitor.monitor.smart_money import SmartMoneyMonitor
from polymarket_monitor.monitor.trade import TradeActivityMonitor
from polymarket_monitor.monitor.volume import VolumeOutlierMonitor

__all__ = [
    "AccountActivityMonitor",
    "BaseMonitor",
    "MarketProbabilityMonitor",
    "Monitor",
    "SmartMoneyMonitor",
    "TradeActivityMonitor",
    "VolumeOutlierMonitor",
    "resolve_tracked_market",
    "slugify",
]
