"""Risk configuration model for the replay loop's pre-execution gate."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mm_backtest.core.domain.errors import InvalidTradeParametersError


class RiskConfig(BaseModel):
    """Position and margin limits checked before a proposal is executed.

    ``mode`` selects what a breach does:
    - ``advisory``: log and emit a ``RiskBreachEvent``; the proposal proceeds.
    - ``strict``: the proposal is rejected without reaching the executor.

    Limits left as None are not checked.
    """

    mode: Literal["advisory", "strict"] = "advisory"
    max_position: float | None = Field(default=None, gt=0)
    max_margin: float | None = Field(default=None, gt=0)
    margin_rate: float = Field(default=0.1, ge=0.0, le=1.0)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @classmethod
    def from_json_obj(cls, risk_obj: dict[str, Any]) -> RiskConfig:
        """Create a RiskConfig instance from a JSON-compatible object."""
        try:
            return cls.model_validate(risk_obj)
        except ValidationError as exc:
            raise InvalidTradeParametersError(f"invalid risk config: {exc}") from exc

    @property
    def enabled(self) -> bool:
        return self.max_position is not None or self.max_margin is not None
