"""Pre-execution risk gate.

The gate never submits or alters trades. It only answers whether a proposal,
if fully filled, would keep the symbol inside the configured limits.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mm_backtest.core.domain.errors import (
    InsufficientMarginError,
    PositionLimitExceededError,
)

if TYPE_CHECKING:
    from mm_backtest.core.domain.ledger import Ledger
    from mm_backtest.core.domain.types import Trade
    from mm_backtest.core.risk.risk_config import RiskConfig

LOGGER = logging.getLogger(__name__)


class RiskGate:
    """Hard position / margin checks against the ledger's filled position."""

    def __init__(self, risk_cfg: RiskConfig) -> None:
        self.risk_cfg = risk_cfg

    @property
    def strict(self) -> bool:
        return self.risk_cfg.mode == "strict"

    def check(self, proposal: Trade, ledger: Ledger) -> None:
        """Raise when the post-fill position breaches a limit.

        Raises:
            PositionLimitExceededError: |position after fill| > max_position.
            InsufficientMarginError: post-fill margin > max_margin.
        """
        cfg = self.risk_cfg
        if not cfg.enabled:
            return

        current = ledger.position(proposal.symbol)
        after = current + proposal.signed_quantity

        # Risk-reducing proposals are always allowed.
        if abs(after) <= abs(current):
            return

        if cfg.max_position is not None and abs(after) > cfg.max_position:
            raise PositionLimitExceededError(proposal.symbol, after, cfg.max_position)

        if cfg.max_margin is not None:
            required = abs(after) * proposal.price * cfg.margin_rate
            if required > cfg.max_margin:
                raise InsufficientMarginError(required, cfg.max_margin)

        LOGGER.debug(
            "risk_check_passed",
            extra={"symbol": proposal.symbol, "position_after": after},
        )
