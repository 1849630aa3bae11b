"""Accounting configuration model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from mm_backtest.accounting.calculator import PnlMethod


class AccountingConfig(BaseModel):
    method: PnlMethod = PnlMethod.FIFO
    margin_rate: float = Field(default=0.1, ge=0.0, le=1.0)
    fee_rate: float = Field(default=0.0, ge=0.0)

    model_config = ConfigDict(extra="forbid", frozen=True)
