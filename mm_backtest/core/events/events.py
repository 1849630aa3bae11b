"""
Domain event models.

These events represent immutable facts observed during a replay. They are
consumed by loggers and recorders; nothing in the core reads them back.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class TradeProposedEvent:
    ts: int
    symbol: str
    trade_id: str

    side: str
    price: float
    quantity: float


@dataclass(slots=True)
class TradeStatusTransitionEvent:
    ts: int
    trade_id: str
    prev_state: str | None
    next_state: str


@dataclass(slots=True)
class TradeExecutedEvent:
    ts: int
    symbol: str
    trade_id: str

    side: str
    status: str

    proposed_price: float
    executed_price: float
    quantity: float


@dataclass(slots=True)
class RiskBreachEvent:
    ts: int
    symbol: str
    trade_id: str

    mode: str
    reason: str


@dataclass(slots=True)
class ReplayCompletedEvent:
    snapshots: int
    proposals: int
    filled: int
    elapsed_seconds: float
