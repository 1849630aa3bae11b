"""Stochastic execution simulator for replay backtests."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mm_backtest.core.domain.errors import InvalidTradeParametersError
from mm_backtest.core.domain.types import ExecutionStats

if TYPE_CHECKING:
    from mm_backtest.core.domain.types import Trade

LOGGER = logging.getLogger(__name__)


class ExecutionAdapter(Protocol):
    """Execution boundary.

    The replay loop never decides outcomes itself. Only this adapter turns a
    proposal into a filled / rejected / unfilled trade.
    """

    def execute(self, proposal: Trade | None) -> Trade | None:
        """Return the executed copy of ``proposal`` (None in, None out)."""

    def stats(self) -> ExecutionStats:
        """Running execution statistics."""


class ExecutionConfig(BaseModel):
    """Fill model parameters."""

    fill_rate: float = Field(default=0.95, ge=0.0, le=1.0)
    rejection_rate: float = Field(default=0.02, ge=0.0, le=1.0)
    slippage_bps: float = Field(default=0.5, ge=0.0)
    seed: int = 0

    model_config = ConfigDict(extra="forbid", frozen=True)

    @classmethod
    def from_json_obj(cls, obj: dict[str, Any]) -> ExecutionConfig:
        try:
            return cls.model_validate(obj)
        except ValidationError as exc:
            raise InvalidTradeParametersError(f"invalid execution config: {exc}") from exc


class ExecutionSimulator(ExecutionAdapter):
    """Single-draw fill model.

    One uniform draw ``r`` per proposal: ``r < rejection_rate`` rejects,
    otherwise ``r < fill_rate`` fills with slippage, otherwise the proposal
    stays unfilled. Both thresholds are checked against the same draw, so the
    effective fill probability is ``fill_rate - rejection_rate``.
    """

    def __init__(self, config: ExecutionConfig | None = None, rng: random.Random | None = None) -> None:
        self.config = config if config is not None else ExecutionConfig()
        self._rng = rng if rng is not None else random.Random(self.config.seed)

        self._total = 0
        self._filled = 0
        self._rejected = 0
        self._unfilled = 0
        self._total_slippage = 0.0

    def execute(self, proposal: Trade | None) -> Trade | None:
        if proposal is None:
            return None

        cfg = self.config
        self._total += 1
        r = self._rng.random()

        if r < cfg.rejection_rate:
            self._rejected += 1
            return proposal.model_copy(update={"status": "rejected"})

        if r < cfg.fill_rate:
            factor = 1.0 + cfg.slippage_bps / 10_000.0
            if proposal.side == "buy":
                price = proposal.price * factor
            else:
                price = proposal.price / factor

            self._total_slippage += abs(price - proposal.price)
            self._filled += 1

            trade = proposal.model_copy(update={"status": "filled", "price": price})
            LOGGER.info(
                "Trade executed: %s %s @ %s - Status: %s",
                trade.side,
                trade.quantity,
                trade.price,
                trade.status,
            )
            return trade

        self._unfilled += 1
        return proposal.model_copy(update={"status": "unfilled"})

    def stats(self) -> ExecutionStats:
        return ExecutionStats(
            total_trades=self._total,
            filled_trades=self._filled,
            rejected_trades=self._rejected,
            unfilled_trades=self._unfilled,
            total_slippage=self._total_slippage,
        )
