"""
Semantic test: order-book snapshot derived values.

Invariant:
Derived values are computed from the best levels (or the top levels for
imbalance and depth), and a book with an empty side yields 0.0 for every
two-sided value instead of raising.
"""

from __future__ import annotations

import pytest

from mm_backtest.core.domain.types import OrderBookSnapshot


def two_sided() -> OrderBookSnapshot:
    return OrderBookSnapshot(
        ts=0,
        symbol="BTCUSDT",
        bids=[(100.0, 1.0), (99.0, 3.0), (98.0, 5.0)],
        asks=[(101.0, 1.0), (102.0, 1.0)],
    )


def test_top_of_book_values() -> None:
    snapshot = two_sided()

    assert snapshot.best_bid == 100.0
    assert snapshot.best_ask == 101.0
    assert snapshot.mid_price() == pytest.approx(100.5)
    assert snapshot.spread_abs() == pytest.approx(1.0)
    assert snapshot.spread_pct() == pytest.approx(1.0 / 100.5)
    assert snapshot.top_of_book_volume == pytest.approx(2.0)


def test_imbalance_and_depth_use_top_levels() -> None:
    snapshot = two_sided()

    assert snapshot.order_book_imbalance() == pytest.approx((9.0 - 2.0) / 11.0)
    assert snapshot.order_book_imbalance(levels=1) == pytest.approx(0.0)
    assert snapshot.avg_top_bid_depth() == pytest.approx(3.0)
    assert snapshot.avg_top_bid_depth(levels=2) == pytest.approx(2.0)


@pytest.mark.parametrize(
    ("bids", "asks"),
    [([(100.0, 1.0)], []), ([], [(101.0, 1.0)]), ([], [])],
    ids=["no-asks", "no-bids", "empty"],
)
def test_one_sided_book_yields_zero(bids, asks) -> None:
    snapshot = OrderBookSnapshot(ts=0, bids=bids, asks=asks)

    assert not snapshot.is_two_sided()
    assert snapshot.mid_price() == 0.0
    assert snapshot.spread_abs() == 0.0
    assert snapshot.spread_pct() == 0.0
    assert snapshot.top_of_book_volume == 0.0
    assert snapshot.order_book_imbalance() == 0.0
    assert snapshot.avg_top_bid_depth() == 0.0
