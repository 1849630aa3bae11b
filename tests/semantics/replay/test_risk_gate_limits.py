"""
Semantic test: pre-execution risk gate.

Invariant:
Only proposals that increase the absolute position are checked, against the
position the ledger would hold after a full fill.
"""

from __future__ import annotations

import pytest

from mm_backtest.core.domain.errors import (
    InsufficientMarginError,
    InvalidTradeParametersError,
    PositionLimitExceededError,
)
from mm_backtest.core.domain.ledger import Ledger
from mm_backtest.core.domain.types import Trade
from mm_backtest.core.risk.risk_config import RiskConfig
from mm_backtest.core.risk.risk_gate import RiskGate


def trade(side: str, quantity: float, price: float = 100.0, status: str = "pending") -> Trade:
    return Trade(time=0, symbol="BTCUSDT", side=side, price=price, quantity=quantity, status=status)


def long_ledger(quantity: float) -> Ledger:
    ledger = Ledger()
    ledger.add(trade("buy", quantity, status="filled"))
    return ledger


def test_position_limit_breach() -> None:
    gate = RiskGate(RiskConfig(max_position=2.0))

    with pytest.raises(PositionLimitExceededError) as exc_info:
        gate.check(trade("buy", 1.5), long_ledger(1.0))

    assert exc_info.value.current == pytest.approx(2.5)
    assert exc_info.value.limit == 2.0


def test_risk_reducing_proposal_always_passes() -> None:
    gate = RiskGate(RiskConfig(max_position=0.5, max_margin=1.0))

    gate.check(trade("sell", 1.0), long_ledger(3.0))


def test_margin_limit_breach() -> None:
    gate = RiskGate(RiskConfig(max_margin=15.0, margin_rate=0.1))

    gate.check(trade("buy", 1.0), Ledger())

    with pytest.raises(InsufficientMarginError) as exc_info:
        gate.check(trade("buy", 1.0), long_ledger(1.0))
    assert exc_info.value.required == pytest.approx(20.0)


def test_gate_without_limits_is_disabled() -> None:
    cfg = RiskConfig()

    assert not cfg.enabled
    RiskGate(cfg).check(trade("buy", 1e9), Ledger())


def test_invalid_risk_config_fails_fast() -> None:
    with pytest.raises(InvalidTradeParametersError):
        RiskConfig.from_json_obj({"mode": "yolo"})

    with pytest.raises(InvalidTradeParametersError):
        RiskConfig.from_json_obj({"max_position": -1})
