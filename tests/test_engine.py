"""
Tests for the cash-secured put engine state machine.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from csp_bt.config.schemas import RunConfig, StrategyConfig
from csp_bt.data.models import PricePoint, PriceHistoryWindow
from csp_bt.errors import InvalidConfigError, NumericDomainError
from csp_bt.portfolio.portfolio import OptionContract
from csp_bt.pricing.black_scholes import price_put
from csp_bt.strategy.engine import PutSellingEngine

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _cfg(**overrides) -> StrategyConfig:
    params = {
        "initial_btc": Decimal("0"),
        "initial_usd": Decimal("1000"),
        "put_premium_percent": Decimal("0.02"),
        "strike_discount_percent": Decimal("0.05"),
        "days_to_expiration": 7,
    }
    params.update(overrides)
    return StrategyConfig(**params)


def _pt(offset: timedelta, price) -> PricePoint:
    return PricePoint(timestamp=T0 + offset, price=Decimal(str(price)))


def test_sell_then_assign_inclusive_boundary():
    engine = PutSellingEngine(_cfg(settlement_boundary="inclusive"))

    engine.process(_pt(timedelta(0), 100))
    sell = engine.trades[0]
    assert sell.action == "SELL_PUT"
    assert sell.strike_price == Decimal("95")
    assert sell.premium == Decimal("1.9")
    assert engine.usd_balance == Decimal("1001.9")
    assert engine.active_contract is not None

    engine.process(_pt(timedelta(days=7), 90))
    assigned = engine.trades[1]
    assert assigned.action == "PUT_ASSIGNED"
    assert engine.btc_balance == Decimal("1001.9") / Decimal("95")
    assert float(engine.btc_balance) == pytest.approx(10.546, abs=1e-3)
    assert engine.usd_balance == Decimal("0")
    assert engine.assigned_puts == 1
    assert engine.active_contract is None
    # no cash left, nothing new is sold
    assert len(engine.trades) == 2
    assert engine.contracts[0].was_assigned is True
    assert engine.contracts[0].is_active is False


def test_expiry_exactly_at_tick_is_not_settled_under_strict_boundary():
    engine = PutSellingEngine(_cfg())

    engine.process(_pt(timedelta(0), 100))
    engine.process(_pt(timedelta(days=7), 90))
    assert [t.action for t in engine.trades] == ["SELL_PUT"]
    assert engine.active_contract is not None
    assert engine.usd_balance == Decimal("1001.9")

    engine.process(_pt(timedelta(days=7, seconds=1), 90))
    assert [t.action for t in engine.trades] == ["SELL_PUT", "PUT_ASSIGNED"]
    assert engine.btc_balance == Decimal("1001.9") / Decimal("95")
    assert engine.usd_balance == 0


def test_expiry_keeps_premium_and_rolls_into_new_put():
    engine = PutSellingEngine(_cfg())

    engine.process(_pt(timedelta(0), 100))
    engine.process(_pt(timedelta(days=8), 110))

    actions = [t.action for t in engine.trades]
    assert actions == ["SELL_PUT", "PUT_EXPIRED", "SELL_PUT"]
    expired = engine.trades[1]
    assert expired.usd_balance == Decimal("1001.9")
    assert expired.strike_price == Decimal("95")

    second = engine.trades[2]
    assert second.strike_price == Decimal("104.5")
    assert second.premium == Decimal("2.09")
    assert engine.usd_balance == Decimal("1003.99")
    assert engine.total_premium_collected == Decimal("3.99")
    assert engine.assigned_puts == 0
    assert engine.active_contract.created_at == T0 + timedelta(days=8)
    assert engine.active_contract.expires_at == T0 + timedelta(days=15)


def test_settlement_at_strike_is_expiry():
    engine = PutSellingEngine(_cfg())
    engine.process(_pt(timedelta(0), 100))
    engine.process(_pt(timedelta(days=8), 95))
    assert engine.trades[1].action == "PUT_EXPIRED"
    assert engine.btc_balance == 0


def test_single_open_position():
    engine = PutSellingEngine(_cfg())
    for hour in range(0, 24 * 6, 6):
        engine.process(_pt(timedelta(hours=hour), 100 - hour / 10))
    assert [t.action for t in engine.trades] == ["SELL_PUT"]
    assert len(engine.contracts) == 1


def test_no_sale_without_cash():
    engine = PutSellingEngine(_cfg(initial_usd=Decimal("0"), initial_btc=Decimal("1")))
    engine.process(_pt(timedelta(0), 100))
    assert engine.trades == ()
    assert engine.btc_balance == Decimal("1")


def test_min_history_points_delays_first_sale():
    engine = PutSellingEngine(_cfg(min_history_points=3))
    engine.process(_pt(timedelta(days=0), 100))
    engine.process(_pt(timedelta(days=1), 101))
    assert engine.trades == ()
    engine.process(_pt(timedelta(days=2), 102))
    assert len(engine.trades) == 1
    assert engine.trades[0].btc_price == Decimal("102")


def test_black_scholes_premium_uses_default_vol_before_history():
    engine = PutSellingEngine(_cfg(pricing_mode="black_scholes"))
    engine.process(_pt(timedelta(0), 100))
    expected = price_put(100.0, 95.0, 7 / 365, 0.5, 0.05)
    sell = engine.trades[0]
    assert float(sell.premium) == pytest.approx(expected, rel=1e-12)
    assert engine.usd_balance == Decimal("1000") + sell.premium


def test_black_scholes_and_flat_modes_diverge():
    flat = PutSellingEngine(_cfg())
    bs = PutSellingEngine(_cfg(pricing_mode="black_scholes"))
    point = _pt(timedelta(0), 100)
    flat.process(point)
    bs.process(point)
    assert flat.trades[0].premium != bs.trades[0].premium


def test_duplicate_timestamps_do_not_enter_history():
    engine = PutSellingEngine(_cfg())
    engine.process(_pt(timedelta(0), 100))
    engine.process(_pt(timedelta(0), 105))
    engine.process(_pt(timedelta(hours=-1), 99))
    assert len(engine.price_history) == 1
    assert engine.price_history.last.price == Decimal("100")


def test_history_window_is_bounded():
    window = PriceHistoryWindow(max_size=5)
    for i in range(10):
        assert window.append(_pt(timedelta(days=i), 100 + i))
    assert len(window) == 5
    assert [p.price for p in window] == [Decimal(str(100 + i)) for i in range(5, 10)]
    assert [p.price for p in window.up_to(T0 + timedelta(days=6))] == [Decimal("105"), Decimal("106")]


def test_non_positive_spot_is_a_domain_error():
    engine = PutSellingEngine(_cfg())
    with pytest.raises(NumericDomainError):
        engine.process(_pt(timedelta(0), 0))


def test_invalid_config_rejected_by_engine():
    bad = StrategyConfig.model_construct(
        initial_btc=Decimal("0"),
        initial_usd=Decimal("1000"),
        put_premium_percent=Decimal("1.5"),
        strike_discount_percent=Decimal("0.05"),
        days_to_expiration=7,
        pricing_mode="flat",
        risk_free_rate=0.05,
        volatility_window=30,
        history_size=100,
        min_history_points=0,
        settlement_boundary="strict",
    )
    with pytest.raises(InvalidConfigError):
        PutSellingEngine(bad)


@pytest.mark.parametrize(
    "overrides",
    [
        {"days_to_expiration": 0},
        {"put_premium_percent": Decimal("1")},
        {"strike_discount_percent": Decimal("-0.1")},
        {"initial_usd": Decimal("-5")},
        {"pricing_mode": "binomial"},
    ],
)
def test_invalid_config_rejected_by_schema(overrides):
    with pytest.raises(InvalidConfigError):
        _cfg(**overrides)


def test_invalid_strategy_section_in_run_config_is_validation_error():
    with pytest.raises(ValidationError):
        RunConfig(data={"csv_path": "x.csv"}, strategy={"days_to_expiration": 0})
    # both kinds can be caught as ValueError
    assert issubclass(InvalidConfigError, ValueError)
    assert issubclass(ValidationError, ValueError)


def _constructed(**overrides) -> StrategyConfig:
    params = dict(_cfg().model_dump())
    params.update(overrides)
    return StrategyConfig.model_construct(**params)


def test_min_history_beyond_history_size_rejected():
    with pytest.raises(InvalidConfigError, match="min_history_points"):
        _cfg(min_history_points=150, history_size=100)
    with pytest.raises(InvalidConfigError, match="min_history_points"):
        PutSellingEngine(_constructed(min_history_points=150, history_size=100))
    # equal is reachable once the window fills
    engine = PutSellingEngine(_cfg(min_history_points=5, history_size=5))
    for day in range(5):
        engine.process(_pt(timedelta(days=day), 100))
    assert [t.action for t in engine.trades] == ["SELL_PUT"]


def test_black_scholes_history_must_cover_volatility_window():
    with pytest.raises(InvalidConfigError, match="volatility_window"):
        _cfg(pricing_mode="black_scholes", history_size=10, volatility_window=30)
    with pytest.raises(InvalidConfigError, match="volatility_window"):
        PutSellingEngine(_constructed(pricing_mode="black_scholes", history_size=10, volatility_window=30))
    # smallest accepted history, and flat mode ignores the volatility window
    _cfg(pricing_mode="black_scholes", history_size=31, volatility_window=30)
    _cfg(pricing_mode="flat", history_size=10, volatility_window=30)


def test_black_scholes_premium_uses_realized_volatility_once_window_fills():
    engine = PutSellingEngine(
        _cfg(pricing_mode="black_scholes", history_size=6, volatility_window=5, min_history_points=6)
    )
    prices = [100, 150, 100, 150, 100, 150]
    for day, price in enumerate(prices):
        engine.process(_pt(timedelta(days=day), price))
    sell = engine.trades[0]
    # swings of +-40% log return clamp to the 2.0 ceiling, not the 0.5 default
    expected = price_put(150.0, 142.5, 7 / 365, 2.0, 0.05)
    assert float(sell.premium) == pytest.approx(expected, rel=1e-12)


def test_config_is_immutable():
    cfg = _cfg()
    with pytest.raises(ValidationError):
        cfg.days_to_expiration = 14


def test_contract_settles_once():
    contract = OptionContract(
        strike=Decimal("95"),
        premium=Decimal("1.9"),
        created_at=T0,
        expires_at=T0 + timedelta(days=7),
    )
    contract.settle(assigned=False)
    assert contract.is_active is False
    with pytest.raises(RuntimeError):
        contract.settle(assigned=True)


def test_trade_ledger_is_read_only_copy():
    engine = PutSellingEngine(_cfg())
    engine.process(_pt(timedelta(0), 100))
    ledger = engine.trades
    assert isinstance(ledger, tuple)
    engine.process(_pt(timedelta(days=8), 110))
    assert len(ledger) == 1
    assert len(engine.trades) == 3
