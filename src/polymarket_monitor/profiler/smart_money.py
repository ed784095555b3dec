"""Side-aggregated holder P&L and concentration analysis.

Analysis runs in two steps: ``analyze_holder_distribution`` builds an
immutable distribution, then ``enrich_distribution`` produces a second
structure carrying P&L. Re-running enrichment always yields fresh values
and never accumulates into the first step's objects.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from polymarket_monitor.ingestor.data_client import MAX_HOLDERS_LIMIT, DataApiClient
from polymarket_monitor.ingestor.models import Holder
from polymarket_monitor.profiler.models import (
    EnrichedDistribution,
    EnrichedHolder,
    HolderDistribution,
    HolderInfo,
    SidePnLAnalysis,
)
from polymarket_monitor.profiler.trader_intel import TraderIntelligence

logger = logging.getLogger(__name__)

YES_OUTCOME_INDEX = 0
NO_OUTCOME_INDEX = 1
CONCENTRATION_TOP_N = 5


def concentration(amounts: Sequence[float], top_n: int = CONCENTRATION_TOP_N) -> float:
    """Share (percent) of the side total held by its ``top_n`` largest holders; 0 for an empty side."""
    total = sum(amounts)
    if total <= 0:
        return 0.0
    top = sum(sorted(amounts, reverse=True)[:top_n])
    return top / total * 100


def _to_info(holder: Holder) -> HolderInfo:
    return HolderInfo(address=holder.proxy_wallet, name=holder.display_name, amount=holder.amount)


class SmartMoneyAnalyzer:
    """Combines holder distribution with per-holder lifetime P&L."""

    def __init__(self, data_client: DataApiClient, trader_intel: TraderIntelligence) -> None:
        self._client = data_client
        self._trader_intel = trader_intel

    async def analyze_holder_distribution(self, condition_id: str) -> HolderDistribution:
        """Split the top holders of a market by outcome and measure concentration.

        Raises:
            ApiClientError: If the holders endpoint fails.
        """
        tokens = await self._client.get_market_holders(condition_id, MAX_HOLDERS_LIMIT)
        holders = [h for token in tokens for h in token.holders]

        yes = sorted((h for h in holders if h.outcome_index == YES_OUTCOME_INDEX), key=lambda h: -h.amount)
        no = sorted((h for h in holders if h.outcome_index == NO_OUTCOME_INDEX), key=lambda h: -h.amount)

        return HolderDistribution(
            yes_holders=tuple(_to_info(h) for h in yes),
            no_holders=tuple(_to_info(h) for h in no),
            yes_concentration=concentration([h.amount for h in yes]),
            no_concentration=concentration([h.amount for h in no]),
            total_yes_amount=sum(h.amount for h in yes),
            total_no_amount=sum(h.amount for h in no),
        )

    async def enrich_distribution(self, distribution: HolderDistribution) -> tuple[EnrichedDistribution, int]:
        """Attach lifetime P&L to every holder.

        A failed lookup leaves that holder at zero P&L. Returns the enriched
        distribution and the number of failed lookups.
        """
        failures = 0

        async def enrich(holders: tuple[HolderInfo, ...]) -> tuple[EnrichedHolder, ...]:
            nonlocal failures
            enriched = []
            for holder in holders:
                result = await self._trader_intel.get_trader_lifetime_pnl(holder.address)
                if not result.ok:
                    failures += 1
                enriched.append(EnrichedHolder.from_holder(holder, result))
            return tuple(enriched)

        yes_holders = await enrich(distribution.yes_holders)
        no_holders = await enrich(distribution.no_holders)
        return (
            EnrichedDistribution(
                yes_holders=yes_holders,
                no_holders=no_holders,
                yes_concentration=distribution.yes_concentration,
                no_concentration=distribution.no_concentration,
                total_yes_amount=distribution.total_yes_amount,
                total_no_amount=distribution.total_no_amount,
            ),
            failures,
        )

    async def calculate_side_pnl(
        self,
        condition_id: str,
        distribution: HolderDistribution | None = None,
    ) -> SidePnLAnalysis:
        """Total and average holder P&L per side, plus which side is ahead.

        Ties go to NO.
        """
        if distribution is None:
            distribution = await self.analyze_holder_distribution(condition_id)
        enriched, failures = await self.enrich_distribution(distribution)
        if failures:
            logger.warning(
                "P&L lookup failed for %d holder(s) of %s; counted as zero", failures, condition_id
            )
        return summarize_sides(enriched, failed_lookups=failures)


def summarize_sides(distribution: EnrichedDistribution, *, failed_lookups: int = 0) -> SidePnLAnalysis:
    yes_pnls = [h.pnl for h in distribution.yes_holders]
    no_pnls = [h.pnl for h in distribution.no_holders]

    yes_total = sum(yes_pnls)
    no_total = sum(no_pnls)
    yes_avg = yes_total / len(yes_pnls) if yes_pnls else 0.0
    no_avg = no_total / len(no_pnls) if no_pnls else 0.0

    return SidePnLAnalysis(
        yes_side_pnl=yes_total,
        no_side_pnl=no_total,
        yes_side_avg_pnl=yes_avg,
        no_side_avg_pnl=no_avg,
        smarter_side="YES" if yes_avg > no_avg else "NO",
        distribution=distribution,
        failed_lookups=failed_lookups,
    )
