"""Tests for ingestor data models."""

import pytest

from polymarket_monitor.ingestor.models import (
    Activity,
    GammaEvent,
    GammaMarket,
    Holder,
    LiveVolume,
    MarketTrade,
    to_number,
    truncate_address,
)

CONDITION_ID = "0x" + "ab" * 32


def _market_payload(**overrides):
    payload = {
        "id": "512",
        "conditionId": CONDITION_ID,
        "slug": "will-it-rain-tomorrow",
        "question": "Will it rain tomorrow?",
        "outcomes": '["Yes", "No"]',
        "outcomePrices": '["0.62", "0.38"]',
        "volume": "123456.7",
        "volume24hr": 5000,
        "liquidity": None,
    }
    payload.update(overrides)
    return payload


class TestToNumber:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("1.5", 1.5),
            (2, 2.0),
            (None, 0.0),
            ("abc", 0.0),
            (True, 0.0),
            (float("nan"), 0.0),
            ("inf", 0.0),
        ],
    )
    def test_coercion(self, value, expected) -> None:
        assert to_number(value) == expected


class TestGammaMarket:
    def test_from_dict_decodes_json_string_lists(self) -> None:
        market = GammaMarket.from_dict(_market_payload())

        assert market.id == "512"
        assert market.outcomes == ("Yes", "No")
        assert market.outcome_prices == ("0.62", "0.38")
        assert market.probability == pytest.approx(0.62)
        assert market.outcome_price_values == [0.62, 0.38]
        assert market.volume == pytest.approx(123456.7)
        assert market.liquidity == 0.0

    def test_accepts_native_lists(self) -> None:
        market = GammaMarket.from_dict(_market_payload(outcomePrices=["0.1", "0.9"]))
        assert market.probability == pytest.approx(0.1)

    def test_missing_prices_give_zero_probability(self) -> None:
        market = GammaMarket.from_dict(_market_payload(outcomePrices=None))
        assert market.probability == 0.0

    def test_missing_required_key(self) -> None:
        payload = _market_payload()
        del payload["conditionId"]
        with pytest.raises(KeyError):
            GammaMarket.from_dict(payload)

    def test_event_find_market(self) -> None:
        event = GammaEvent.from_dict(
            {"id": 42, "slug": "rain", "title": "Rain", "markets": [_market_payload()]}
        )
        assert event.find_market(CONDITION_ID) is not None
        assert event.find_market("0xother") is None


class TestActivity:
    def test_from_dict_with_market_and_user(self) -> None:
        activity = Activity.from_dict(
            {
                "proxyWallet": "0xabc",
                "timestamp": "1767225600",
                "conditionId": CONDITION_ID,
                "type": "TRADE",
                "size": "100",
                "usdcSize": "55.5",
                "transactionHash": "0xtx",
                "side": "BUY",
                "outcomeIndex": 0,
                "market": {"conditionId": CONDITION_ID, "slug": "rain", "title": "Rain?"},
                "user": {"pseudonym": "Rainmaker"},
            }
        )

        assert activity.timestamp == 1767225600
        assert activity.usdc_size == 55.5
        assert activity.market is not None
        assert activity.market.slug == "rain"
        assert activity.user_name == "Rainmaker"

    def test_market_is_optional(self) -> None:
        activity = Activity.from_dict(
            {
                "proxyWallet": "0xabc",
                "timestamp": 1,
                "conditionId": CONDITION_ID,
                "type": "TRADE",
                "transactionHash": "0xtx",
            }
        )
        assert activity.market is None
        assert activity.side is None


class TestTradesAndHolders:
    def test_notional(self) -> None:
        trade = MarketTrade.from_dict(
            {"proxyWallet": "0xabc", "side": "SELL", "size": 1000, "price": "0.25", "timestamp": 10}
        )
        assert trade.notional == pytest.approx(250.0)
        assert trade.transaction_hash == ""

    def test_holder_display_name(self) -> None:
        holder = Holder.from_dict({"proxyWallet": "0x1234567890abcdef", "amount": 5, "outcomeIndex": 1})
        assert holder.display_name == "0x1234...cdef"
        named = Holder.from_dict(
            {"proxyWallet": "0x1", "amount": 5, "outcomeIndex": 0, "name": "n", "pseudonym": "p"}
        )
        assert named.display_name == "p"

    def test_truncate_short_address(self) -> None:
        assert truncate_address("0xabc") == "0xabc"

    def test_live_volume_lookup(self) -> None:
        volume = LiveVolume.from_dict(
            {"total": 900, "markets": [{"market": CONDITION_ID, "value": "300"}]}
        )
        assert volume.total == 900
        assert volume.value_for(CONDITION_ID) == 300.0
        assert volume.value_for("0xother") is None
