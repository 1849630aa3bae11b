"""Base strategy interface.

This module defines the Strategy protocol driven by the replay loop. Concrete
strategies are triggered by two event sources:
- Snapshots: each order-book snapshot may yield at most one trade proposal.
- Execution feedback: the outcome of every proposal, filled or not.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mm_backtest.core.domain.types import OrderBookSnapshot, Trade


class Strategy(ABC):
    """Strategy protocol implemented by all concrete strategies.

    The strategy must NOT assume a proposal is filled. Inventory must only be
    derived from ``on_execution`` feedback with ``filled=True``.
    """

    @abstractmethod
    def propose(self, snapshot: OrderBookSnapshot) -> Trade | None:
        """Consume a snapshot and return zero or one pending trade proposal."""

    @abstractmethod
    def on_execution(self, trade: Trade, filled: bool) -> None:
        """Receive the executed copy of the last proposal."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable strategy name."""

    @abstractmethod
    def position_of(self, symbol: str) -> float:
        """Net signed inventory the strategy believes it holds in ``symbol``."""

    @abstractmethod
    def reset(self) -> None:
        """Drop all internal state so the instance can replay from scratch."""
