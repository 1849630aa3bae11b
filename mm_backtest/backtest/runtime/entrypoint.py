from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

from mm_backtest.accounting.calculator import PnlMethod
from mm_backtest.backtest.engine.replay_engine import ReplayBacktestEngine
from mm_backtest.backtest.runtime.app_config import AppConfig
from mm_backtest.backtest.runtime.mlflow_run_logger import MlflowRunLogger
from mm_backtest.backtest.runtime.prometheus_metrics import PrometheusMetricsClient
from mm_backtest.backtest.runtime.summary import print_backtest_summary
from mm_backtest.core.domain.errors import TradeError

LOGGER = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mm-backtest",
        description="Replay recorded order-book snapshots through the market maker",
    )

    parser.add_argument(
        "--data",
        type=Path,
        required=True,
        help="JSONL file with order-book snapshots (symbol taken from the filename prefix).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional JSON config (execution/strategy/accounting/risk/data blocks).",
    )
    parser.add_argument("--symbol", default=None, help="Override the symbol derived from the filename.")
    parser.add_argument(
        "--method",
        choices=[m.value for m in PnlMethod],
        default=None,
        help="P&L method (default: from config, else fifo).",
    )
    parser.add_argument("--seed", type=int, default=None, help="Execution simulator seed.")
    parser.add_argument("--fill-rate", type=float, default=None)
    parser.add_argument("--rejection-rate", type=float, default=None)
    parser.add_argument("--slippage-bps", type=float, default=None)
    parser.add_argument("--margin-rate", type=float, default=None)
    parser.add_argument(
        "--events-path",
        type=Path,
        default=None,
        help="Append domain events as JSON lines to this file.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


def _drop_none(**values: Any) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def _load_config(args: argparse.Namespace) -> AppConfig:
    cfg = AppConfig.from_json_file(args.config) if args.config is not None else AppConfig()

    return cfg.with_overrides(
        execution=_drop_none(
            seed=args.seed,
            fill_rate=args.fill_rate,
            rejection_rate=args.rejection_rate,
            slippage_bps=args.slippage_bps,
        ),
        accounting=_drop_none(method=args.method, margin_rate=args.margin_rate),
    )


def _publish_telemetry(result: Any) -> None:
    # --- MLflow logging (side-effect only) ---
    try:
        MlflowRunLogger().log(result=result)
    except Exception:  # pylint: disable=broad-exception-caught
        LOGGER.exception("MLflow logging failed")

    # --- Prometheus metrics (side-effect only) ---
    metrics = PrometheusMetricsClient()
    if metrics.is_enabled():
        try:
            metrics.record_result(result)
            metrics.push_all(job="mm_backtest")
        except Exception:  # pylint: disable=broad-exception-caught
            LOGGER.exception("Prometheus push failed")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        cfg = _load_config(args)
        backtest_cfg = cfg.to_backtest_config(
            data_path=str(args.data),
            symbol=args.symbol,
            event_bus_path=str(args.events_path) if args.events_path else None,
        )
        result = ReplayBacktestEngine(backtest_cfg).run()
    except TradeError as exc:
        LOGGER.error("Backtest failed: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print_backtest_summary(result, cfg.accounting.method)
    _publish_telemetry(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
