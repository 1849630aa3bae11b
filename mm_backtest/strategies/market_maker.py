"""Inventory-aware market-making strategy.

Per snapshot the strategy:
1. updates rolling mid-price windows (volatility, momentum) and the VWAP window,
2. evaluates the volatility / momentum gate,
3. evaluates exit conditions on open inventory (independent of the gate),
4. otherwise evaluates an imbalance + VWAP entry signal (only if the gate allows).

At most one proposal is returned per snapshot. Inventory only changes through
``on_execution`` feedback for filled trades.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mm_backtest.core.domain.errors import InvalidTradeParametersError
from mm_backtest.core.domain.types import IMBALANCE_LEVELS, OrderBookSnapshot, Trade
from mm_backtest.strategies.base import Strategy
from mm_backtest.strategies.signals import (
    BPS,
    momentum,
    order_book_imbalance,
    pnl_bps,
    returns_volatility,
    vwap,
)

LOGGER = logging.getLogger(__name__)

# Residual quantities below this are treated as fully consumed.
QTY_EPSILON: float = 1e-12


class MarketMakerConfig(BaseModel):
    """Market-maker parameters. Immutable once constructed."""

    fix_order_volume: float = Field(default=0.005, gt=0)
    vwap_window: int = Field(default=100, ge=1)
    obi_threshold: float = Field(default=0.1, ge=0)
    max_inventory: float = Field(default=10.0, gt=0)
    use_limit_orders: bool = True
    limit_order_spread_bps: float = Field(default=5.0, ge=0)

    # Position management
    take_profit_bps: float = Field(default=20.0, ge=0)
    stop_loss_bps: float = Field(default=50.0, ge=0)
    max_position_age_ms: int = Field(default=300_000, ge=0)
    inventory_reduction_threshold: float = Field(default=0.7, ge=0)
    aggressive_close_threshold: float = Field(default=0.9, ge=0)
    min_profit_bps: float = Field(default=5.0, ge=0)

    # Volatility filter
    volatility_window: int = Field(default=30, ge=1)
    max_volatility_threshold: float = Field(default=0.000005, ge=0)
    volatility_cooldown_ms: int = Field(default=5000, ge=0)

    # Momentum filter
    momentum_window: int = Field(default=10, ge=1)
    momentum_threshold: float = Field(default=0.0015, ge=0)
    momentum_cooldown_ms: int = Field(default=3000, ge=0)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> MarketMakerConfig:
        """Validate flat strategy params, failing fast with a domain error."""
        try:
            return cls.model_validate(params)
        except ValidationError as exc:
            raise InvalidTradeParametersError(f"invalid market maker config: {exc}") from exc


@dataclass(slots=True)
class Position:
    """One open inventory lot. Only ``quantity`` changes after creation."""

    quantity: float
    entry_price: float
    entry_time: int
    side: str

    def pnl_bps(self, current_price: float) -> float:
        return pnl_bps(self.side, self.entry_price, current_price)

    def age_ms(self, current_time: int) -> int:
        return current_time - self.entry_time


class MarketMakerStrategy(Strategy):
    """Order-book-imbalance market maker with volatility and momentum gating."""

    # pylint: disable=too-many-instance-attributes

    def __init__(
        self,
        symbol: str,
        config: MarketMakerConfig | None = None,
        **params: Any,
    ) -> None:
        if config is None:
            config = MarketMakerConfig.from_params(params)
        elif params:
            config = MarketMakerConfig.from_params({**config.model_dump(), **params})

        self.symbol = symbol
        self.config = config

        self._price_volumes: deque[float] = deque(maxlen=config.vwap_window)
        self._volumes: deque[float] = deque(maxlen=config.vwap_window)
        self._volatility_prices: deque[float] = deque(maxlen=config.volatility_window)
        self._momentum_prices: deque[float] = deque(maxlen=config.momentum_window)

        self._positions: list[Position] = []
        self._net_inventory = 0.0
        self._avg_entry_price = 0.0

        # None means the filter has never tripped.
        self._last_high_volatility_ts: int | None = None
        self._last_strong_momentum_ts: int | None = None

    # ---------------------------------------------------------------------
    # Strategy interface
    # ---------------------------------------------------------------------

    @property
    def name(self) -> str:
        return "Market Maker"

    @property
    def net_inventory(self) -> float:
        return self._net_inventory

    @property
    def avg_entry_price(self) -> float:
        return self._avg_entry_price

    @property
    def positions(self) -> tuple[Position, ...]:
        return tuple(self._positions)

    def position_of(self, symbol: str) -> float:
        return self._net_inventory if symbol == self.symbol else 0.0

    def reset(self) -> None:
        self._price_volumes.clear()
        self._volumes.clear()
        self._volatility_prices.clear()
        self._momentum_prices.clear()
        self._positions.clear()
        self._net_inventory = 0.0
        self._avg_entry_price = 0.0
        self._last_high_volatility_ts = None
        self._last_strong_momentum_ts = None

    def propose(self, snapshot: OrderBookSnapshot) -> Trade | None:
        if not snapshot.is_two_sided():
            return None

        cfg = self.config
        now = snapshot.ts
        best_bid = snapshot.best_bid
        best_ask = snapshot.best_ask
        mid = snapshot.mid_price()

        self._volatility_prices.append(mid)
        self._momentum_prices.append(mid)

        current_vwap = self._update_vwap(mid, snapshot.top_of_book_volume)
        if current_vwap is None:
            return None

        can_trade, condition = self._check_market_conditions(now)

        should_close, close_reason = self._should_close_position(mid, now)
        if should_close:
            return self._closing_trade(now, best_bid, best_ask, close_reason)

        if not can_trade:
            LOGGER.info("Market maker PAUSED: %s", condition)
            return None

        obi = order_book_imbalance(snapshot, IMBALANCE_LEVELS)
        inventory_ratio = abs(self._net_inventory) / cfg.max_inventory
        threshold = cfg.obi_threshold * (1.0 + inventory_ratio)
        headroom = cfg.max_inventory * cfg.inventory_reduction_threshold

        if obi > threshold and mid < current_vwap and self._net_inventory < headroom:
            if cfg.use_limit_orders:
                price = best_bid * (1.0 - cfg.limit_order_spread_bps / BPS)
            else:
                price = best_ask
            return self._opening_trade(now, "buy", price, obi, current_vwap)

        if obi < -threshold and mid > current_vwap and self._net_inventory > -headroom:
            if cfg.use_limit_orders:
                price = best_ask * (1.0 + cfg.limit_order_spread_bps / BPS)
            else:
                price = best_bid
            return self._opening_trade(now, "sell", price, obi, current_vwap)

        return None

    def on_execution(self, trade: Trade, filled: bool) -> None:
        if not filled:
            return

        closing = (self._net_inventory > 0.0 and trade.side == "sell") or (
            self._net_inventory < 0.0 and trade.side == "buy"
        )

        if closing:
            remaining = trade.quantity
            while remaining > QTY_EPSILON and self._positions:
                lot = self._positions[0]
                if lot.quantity <= remaining + QTY_EPSILON:
                    remaining -= lot.quantity
                    self._positions.pop(0)
                else:
                    lot.quantity -= remaining
                    remaining = 0.0

            # Fill larger than the open inventory flips into a new lot.
            if remaining > QTY_EPSILON:
                self._positions.append(
                    Position(remaining, trade.price, trade.time, trade.side)
                )
        else:
            self._positions.append(
                Position(trade.quantity, trade.price, trade.time, trade.side)
            )

        self._net_inventory += trade.signed_quantity
        if not self._positions:
            self._net_inventory = 0.0
        self._avg_entry_price = self._average_entry_price()

        LOGGER.debug(
            "Market maker inventory updated",
            extra={
                "symbol": self.symbol,
                "net_inventory": self._net_inventory,
                "avg_entry_price": self._avg_entry_price,
                "open_lots": len(self._positions),
            },
        )

    # ---------------------------------------------------------------------
    # Signals
    # ---------------------------------------------------------------------

    def _update_vwap(self, price: float, volume: float) -> float | None:
        self._price_volumes.append(price * volume)
        self._volumes.append(volume)
        return vwap(self._price_volumes, self._volumes, self.config.vwap_window)

    def _check_market_conditions(self, now: int) -> tuple[bool, str]:
        """Evaluate the entry gate. Breaches (re)start the matching cooldown."""
        cfg = self.config

        if self._last_high_volatility_ts is not None:
            elapsed = now - self._last_high_volatility_ts
            if elapsed < cfg.volatility_cooldown_ms:
                left = (cfg.volatility_cooldown_ms - elapsed) / 1000.0
                return False, f"VOLATILITY_COOLDOWN: {left:.1f}s remaining"

        if self._last_strong_momentum_ts is not None:
            elapsed = now - self._last_strong_momentum_ts
            if elapsed < cfg.momentum_cooldown_ms:
                left = (cfg.momentum_cooldown_ms - elapsed) / 1000.0
                return False, f"MOMENTUM_COOLDOWN: {left:.1f}s remaining"

        volatility = returns_volatility(self._volatility_prices)
        if volatility > cfg.max_volatility_threshold:
            self._last_high_volatility_ts = now
            return False, (
                f"HIGH_VOLATILITY: {volatility:.6f} > {cfg.max_volatility_threshold:.6f}"
            )

        move = momentum(self._momentum_prices)
        if abs(move) > cfg.momentum_threshold:
            self._last_strong_momentum_ts = now
            return False, f"STRONG_MOMENTUM: {move:.4f} > {cfg.momentum_threshold:.4f}"

        return True, "OK"

    def _average_entry_price(self) -> float:
        total_qty = sum(p.quantity for p in self._positions)
        if total_qty <= 0.0:
            return 0.0
        return sum(p.entry_price * p.quantity for p in self._positions) / total_qty

    def _should_close_position(self, mid: float, now: int) -> tuple[bool, str]:
        # pylint: disable=too-many-return-statements
        if self._net_inventory == 0.0:
            return False, ""

        cfg = self.config
        net_abs = abs(self._net_inventory)

        total_pnl_bps = 0.0
        oldest_age = 0
        for lot in self._positions:
            total_pnl_bps += lot.pnl_bps(mid) * (lot.quantity / net_abs)
            oldest_age = max(oldest_age, lot.age_ms(now))

        inventory_ratio = net_abs / cfg.max_inventory

        if total_pnl_bps >= cfg.take_profit_bps:
            return True, f"TAKE_PROFIT: {total_pnl_bps:.1f} bps"
        if total_pnl_bps <= -cfg.stop_loss_bps:
            return True, f"STOP_LOSS: {total_pnl_bps:.1f} bps"
        if oldest_age > cfg.max_position_age_ms:
            return True, f"POSITION_AGE: {oldest_age / 1000.0:.1f}s"
        if (
            inventory_ratio >= cfg.inventory_reduction_threshold
            and total_pnl_bps >= cfg.min_profit_bps
        ):
            return True, (
                f"INVENTORY_REDUCTION: {inventory_ratio * 100.0:.1f}% full, "
                f"{total_pnl_bps:.1f} bps profit"
            )
        if (
            inventory_ratio >= cfg.aggressive_close_threshold
            and total_pnl_bps >= -cfg.min_profit_bps
        ):
            return True, (
                f"AGGRESSIVE_CLOSE: {inventory_ratio * 100.0:.1f}% full, "
                f"{total_pnl_bps:.1f} bps"
            )

        return False, ""

    # ---------------------------------------------------------------------
    # Proposals
    # ---------------------------------------------------------------------

    def _closing_trade(self, now: int, best_bid: float, best_ask: float, reason: str) -> Trade:
        cfg = self.config
        min_profit = cfg.min_profit_bps / BPS

        if self._net_inventory > 0.0:
            side = "sell"
            price = best_bid
            if cfg.use_limit_orders:
                price = max(best_bid, self._avg_entry_price * (1.0 + min_profit))
        else:
            side = "buy"
            price = best_ask
            if cfg.use_limit_orders:
                price = min(best_ask, self._avg_entry_price * (1.0 - min_profit))

        quantity = min(cfg.fix_order_volume, abs(self._net_inventory))

        LOGGER.info(
            "Market maker CLOSING: %s %s @ %.4f (reason: %s, inventory: %s)",
            side,
            quantity,
            price,
            reason,
            self._net_inventory,
        )
        return Trade(time=now, symbol=self.symbol, side=side, price=price, quantity=quantity)

    def _opening_trade(self, now: int, side: str, price: float, obi: float, current_vwap: float) -> Trade:
        quantity = self.config.fix_order_volume
        LOGGER.info(
            "Market maker OPENING: %s %s @ %.4f (OBI: %.3f, VWAP: %.4f, inventory: %s)",
            side,
            quantity,
            price,
            obi,
            current_vwap,
            self._net_inventory,
        )
        return Trade(time=now, symbol=self.symbol, side=side, price=price, quantity=quantity)
