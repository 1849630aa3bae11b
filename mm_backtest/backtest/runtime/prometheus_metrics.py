"""Pushgateway export of backtest summaries.

A backtest is a batch job, so its numbers are pushed once at the end of the
run rather than scraped. Every summary field becomes a gauge named
``mm_backtest_<field>`` labelled with the symbol and the backtest id.

Environment:
    PROMETHEUS_PUSHGATEWAY_URL
        Pushgateway address. Export is disabled when unset.
    PROMETHEUS_PUSHGATEWAY_GROUPING_KEY_JSON
        Optional JSON object of string pairs added to the grouping key.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Gauge, push_to_gateway

if TYPE_CHECKING:
    from mm_backtest.backtest.engine.engine_base import BacktestResult

LOGGER = logging.getLogger(__name__)

METRIC_PREFIX = "mm_backtest_"
RESULT_LABELS = ("symbol", "backtest_id")

URL_ENV = "PROMETHEUS_PUSHGATEWAY_URL"
GROUPING_KEY_ENV = "PROMETHEUS_PUSHGATEWAY_GROUPING_KEY_JSON"


def parse_grouping_key(raw: str | None) -> dict[str, str]:
    """Decode the grouping-key env value; anything malformed yields ``{}``."""
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except ValueError:
        LOGGER.warning("Ignoring malformed grouping key", extra={"env": GROUPING_KEY_ENV})
        return {}
    if not isinstance(decoded, Mapping):
        return {}
    return {str(k): v for k, v in decoded.items() if isinstance(v, str)}


class PrometheusMetricsClient:
    """Collects one gauge per summary field and pushes them as a single job."""

    def __init__(
        self,
        pushgateway_url: str | None = None,
        grouping_key: Mapping[str, str] | None = None,
    ) -> None:
        self.url = pushgateway_url or os.environ.get(URL_ENV)
        self.grouping_key = (
            dict(grouping_key)
            if grouping_key is not None
            else parse_grouping_key(os.environ.get(GROUPING_KEY_ENV))
        )
        self.registry = CollectorRegistry()
        self._gauges: dict[str, Gauge] = {}

    def is_enabled(self) -> bool:
        return bool(self.url)

    def _gauge(self, field_name: str) -> Gauge:
        metric = METRIC_PREFIX + field_name
        if metric not in self._gauges:
            self._gauges[metric] = Gauge(
                metric,
                f"Backtest summary field {field_name}",
                labelnames=RESULT_LABELS,
                registry=self.registry,
            )
        return self._gauges[metric]

    def record_result(self, result: BacktestResult) -> None:
        for field_name, value in result.summary().items():
            self._gauge(field_name).labels(
                symbol=result.symbol, backtest_id=result.id
            ).set(float(value))

    def push_all(self, *, job: str = "mm_backtest") -> None:
        if not self.is_enabled():
            return
        if not self._gauges:
            LOGGER.debug("No backtest gauges recorded; skipping push")
            return

        push_to_gateway(self.url, job=job, registry=self.registry, grouping_key=self.grouping_key)
        LOGGER.info(
            "Pushed backtest gauges",
            extra={"job": job, "gauges": len(self._gauges), "gateway": self.url},
        )
