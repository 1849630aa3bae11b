"""Application configuration loaded from JSON.

JSON example:
    {
      "execution": {"fill_rate": 0.9, "rejection_rate": 0.02, "slippage_bps": 0.5, "seed": 7},
      "strategy": {"vwap_window": 50, "obi_threshold": 0.2},
      "accounting": {"method": "position", "margin_rate": 0.1},
      "risk": {"mode": "advisory", "max_position": 1.0},
      "data": {"batch_size": 5000, "show_progress": true}
    }

Every block is optional and falls back to its defaults.
"""

from __future__ import annotations

import json
import uuid
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mm_backtest.accounting.config import AccountingConfig
from mm_backtest.backtest.adapters.execution import ExecutionConfig
from mm_backtest.backtest.engine.replay_engine import ReplayBacktestConfig, ReplayEngineConfig
from mm_backtest.backtest.io.jsonl_source import DEFAULT_BATCH_SIZE
from mm_backtest.core.domain.errors import InvalidTradeParametersError
from mm_backtest.core.risk.risk_config import RiskConfig
from mm_backtest.strategies.strategy_config import StrategyConfig


class DataConfig(BaseModel):
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, gt=0)
    show_progress: bool = True

    model_config = ConfigDict(extra="forbid")


class AppConfig(BaseModel):
    """Top-level configuration. Validated once, then treated as immutable."""

    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    strategy: StrategyConfig = Field(default_factory=StrategyConfig)
    accounting: AccountingConfig = Field(default_factory=AccountingConfig)
    risk: RiskConfig = Field(default_factory=RiskConfig)
    data: DataConfig = Field(default_factory=DataConfig)

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_json_obj(cls, obj: dict[str, Any]) -> AppConfig:
        try:
            return cls.model_validate(obj)
        except ValidationError as exc:
            raise InvalidTradeParametersError(f"Invalid configuration: {exc}") from exc

    @classmethod
    def from_json_file(cls, path: str | Path) -> AppConfig:
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise InvalidTradeParametersError(f"Cannot read config {path}: {exc}") from exc

        if not isinstance(raw, dict):
            raise InvalidTradeParametersError(f"Config {path} must contain a JSON object")
        return cls.from_json_obj(raw)

    def with_overrides(self, **overrides: dict[str, Any]) -> AppConfig:
        """Return a re-validated copy with per-block field overrides.

        ``cfg.with_overrides(execution={"seed": 3})`` replaces only ``seed``.
        Blocks whose override dict is empty are left untouched.
        """
        data = self.model_dump(mode="json")
        for block, values in overrides.items():
            if values:
                data[block] = {**data[block], **values}
        return self.from_json_obj(data)

    def to_backtest_config(
        self,
        *,
        data_path: str | None,
        symbol: str | None = None,
        event_bus_path: str | None = None,
        backtest_id: str | None = None,
    ) -> ReplayBacktestConfig:
        return ReplayBacktestConfig(
            id=backtest_id or str(uuid.uuid4()),
            description=f"replay {data_path}",
            engine_cfg=ReplayEngineConfig(
                data_path=data_path,
                symbol=symbol,
                batch_size=self.data.batch_size,
                show_progress=self.data.show_progress,
                execution=self.execution,
                accounting=self.accounting,
                event_bus_path=event_bus_path,
            ),
            strategy_cfg=self.strategy,
            risk_cfg=self.risk,
        )
