from __future__ import annotations

import logging
import math
import os
from typing import TYPE_CHECKING

import mlflow

if TYPE_CHECKING:
    from mm_backtest.backtest.engine.engine_base import BacktestResult

LOGGER = logging.getLogger(__name__)

DEFAULT_EXPERIMENT = "mm-backtest"


class MlflowRunLogger:
    """Logs one backtest run (params, summary metrics, tags) to MLflow.

    Tracking is configured via environment variables:
    - MLFLOW_TRACKING_URI: HTTP(S) address of the MLflow tracking server.
      Example: http://mlflow.ml.svc.cluster.local:5000

    Without a tracking URI the logger is disabled. Callers should catch
    exceptions and continue.
    """

    def __init__(self, tracking_uri: str | None = None) -> None:
        self._tracking_uri = tracking_uri or os.environ.get("MLFLOW_TRACKING_URI")
        if self._tracking_uri:
            mlflow.set_tracking_uri(self._tracking_uri)

    def is_enabled(self) -> bool:
        return bool(self._tracking_uri)

    def log(self, *, result: BacktestResult, experiment: str = DEFAULT_EXPERIMENT) -> None:
        if not self.is_enabled():
            return

        mlflow.set_experiment(experiment)
        metadata = result.extra_metadata or {}

        with mlflow.start_run(run_name=f"{result.symbol}-{result.id[:8]}"):
            # Parameters
            mlflow.log_param("symbol", result.symbol)
            mlflow.log_param("pnl_method", metadata.get("pnl_method"))
            mlflow.log_param("seed", metadata.get("seed"))
            mlflow.log_param("strategy", metadata.get("strategy_name"))
            for key, value in (metadata.get("strategy_params") or {}).items():
                mlflow.log_param(f"strategy.{key}", value)

            # Metrics (MLflow rejects non-finite values)
            for key, value in result.summary().items():
                if math.isfinite(value):
                    mlflow.log_metric(key, value)

            # Tags
            mlflow.set_tag("backtest_id", result.id)
            mlflow.set_tag("risk_mode", metadata.get("risk_mode", "advisory"))

        LOGGER.info(
            "MLflow run log submitted",
            extra={"backtest_id": result.id, "symbol": result.symbol},
        )
