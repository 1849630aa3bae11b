"""Strategy block of the application config.

Strategy parameters may be written flat next to ``class_path`` or nested
under ``params``; both spellings end up in ``params``::

    {"class_path": "pkg.module:Class", "vwap_window": 50, "params": {"obi_threshold": 0.2}}
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from mm_backtest.core.domain.errors import InvalidTradeParametersError

DEFAULT_STRATEGY_CLASS_PATH = "mm_backtest.strategies.market_maker:MarketMakerStrategy"


class StrategyConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    class_path: str = Field(default=DEFAULT_STRATEGY_CLASS_PATH, min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fold_flat_keys(cls, raw: Any) -> Any:
        # Flat keys override the same key under "params".
        if not isinstance(raw, dict):
            return raw

        nested = raw.get("params")
        params = dict(nested) if isinstance(nested, dict) else {}
        params.update({k: v for k, v in raw.items() if k not in ("class_path", "params")})

        folded: dict[str, Any] = {"params": params}
        if "class_path" in raw:
            folded["class_path"] = raw["class_path"]
        return folded

    def to_strategy_params(self) -> dict[str, Any]:
        """Constructor kwargs for the strategy; a copy, so callers may mutate it."""
        return dict(self.params)

    def split_class_path(self) -> tuple[str, str]:
        """``"pkg.module:Class"`` -> ``("pkg.module", "Class")``."""
        module_path, sep, class_name = self.class_path.partition(":")
        if not sep or not module_path or not class_name:
            raise InvalidTradeParametersError(
                f"class_path must look like 'module:Class', got {self.class_path!r}"
            )
        return module_path, class_name
