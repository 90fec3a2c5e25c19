from datetime import datetime

import pytest

from db import Position, PositionStateError


class TestOpen:
    def test_defaults(self):
        position = Position.open(symbol=" aapl ", quantity=10, buy_price=150)

        assert position.symbol == "AAPL"
        assert position.is_active
        assert position.status == "Active"
        assert position.current_price == 150
        assert position.sell_price == 0
        assert position.sell_date is None
        assert position.id

    @pytest.mark.parametrize(
        "fields",
        [
            {"symbol": "", "quantity": 1, "buy_price": 10},
            {"symbol": "AAPL", "quantity": 0, "buy_price": 10},
            {"symbol": "AAPL", "quantity": 1, "buy_price": -1},
            {"symbol": "AAPL", "quantity": 1, "buy_price": 10, "stop_loss": -5},
            {"symbol": "AAPL", "quantity": 1, "buy_price": 10, "price_target": -5},
            {"symbol": "AAPL", "quantity": float("nan"), "buy_price": 10},
            {"symbol": "AAPL", "quantity": 1, "buy_price": float("inf")},
            {"symbol": "AAPL", "quantity": None, "buy_price": 10},
            {"symbol": "AAPL", "quantity": 1, "buy_price": 10, "stop_loss": None},
            {"symbol": "AAPL", "quantity": 1, "buy_price": 10, "price_target": float("nan")},
        ],
    )
    def test_rejects_invalid_input(self, fields):
        with pytest.raises(ValueError):
            Position.open(**fields)


class TestLifecycle:
    def test_close_sets_sell_fields_together(self, position_factory):
        position = position_factory()
        when = datetime(2024, 7, 1)

        position.close(120.0, sell_date=when)

        assert not position.is_active
        assert position.is_closed
        assert position.sell_price == 120.0
        assert position.sell_date == when
        assert position.status == "Closed"

    def test_second_close_rejected(self, position_factory):
        position = position_factory(sell_price=120.0)

        with pytest.raises(PositionStateError):
            position.close(130.0)
        assert position.sell_price == 120.0

    def test_close_requires_positive_price(self, position_factory):
        position = position_factory()

        with pytest.raises(ValueError):
            position.close(0)
        assert position.is_active

    @pytest.mark.parametrize("price", [float("nan"), float("inf"), None])
    def test_non_finite_prices_rejected(self, position_factory, price):
        position = position_factory(current_price=110)

        with pytest.raises(ValueError):
            position.update_current_price(price)
        with pytest.raises(ValueError):
            position.close(price)
        assert position.current_price == 110
        assert position.is_active

    def test_price_update_is_floored(self, position_factory):
        position = position_factory()

        position.update_current_price(-3.0)

        assert position.current_price == 0.01

    def test_price_update_ignored_when_closed(self, position_factory):
        position = position_factory(current_price=110.0, sell_price=105.0)

        position.update_current_price(200.0)

        assert position.current_price == 110.0


class TestMetrics:
    def test_active_position(self, position_factory):
        position = position_factory(
            quantity=10, buy_price=100, current_price=110, stop_loss=90, price_target=130
        )

        assert position.total_investment == 1000
        assert position.current_value == 1100
        assert position.unrealized_pnl == pytest.approx(100)
        assert position.unrealized_pnl_percent == pytest.approx(10)
        assert position.realized_pnl == 0
        assert position.pnl == pytest.approx(100)
        assert position.risk_amount == pytest.approx(100)
        assert position.potential_reward == pytest.approx(300)
        assert position.risk_reward_ratio == pytest.approx(3.0)
        assert position.stop_loss_percent == pytest.approx(-10)
        assert position.price_target_percent == pytest.approx(30)
        assert position.progress_to_target == pytest.approx(100 / 3)

    def test_closed_position(self, position_factory):
        position = position_factory(quantity=5, buy_price=50, sell_price=40)

        assert position.unrealized_pnl == 0
        assert position.realized_pnl == pytest.approx(-50)
        assert position.realized_pnl_percent == pytest.approx(-20)
        assert position.pnl_percent == pytest.approx(-20)

    def test_zero_risk_ratios(self, position_factory):
        position = position_factory(stop_loss=100, price_target=0)

        assert position.risk_amount == 0
        assert position.risk_reward_ratio == 0
        assert position.progress_to_target == 0

    def test_tags_list(self):
        position = Position.open(symbol="KO", quantity=1, buy_price=60, tags="Dividend, , Value ")

        assert position.tags_list == ["Dividend", "Value"]
