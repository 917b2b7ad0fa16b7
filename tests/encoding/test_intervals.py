from __future__ import annotations

import logging

import pytest

from mobius_tree.encoding.intervals import (
    EncodingExhausted,
    Interval,
    bounds,
    format_bounds,
)


def test_root_bounds_span_one_unit() -> None:
    assert bounds(1, None, 1, None) == Interval(1.0, 2.0)
    assert bounds(5, None, 1, None) == Interval(5.0, 6.0)


def test_child_bounds_are_ordered() -> None:
    john = bounds(3, 1, 2, 1)
    assert john.left == pytest.approx(4 / 3)
    assert john.right == pytest.approx(1.5)
    noone = bounds(7, 3, 5, 2)
    assert noone.left == pytest.approx(1.4)
    assert noone.right == pytest.approx(10 / 7)
    assert john.contains(noone)
    assert not noone.contains(john)


def test_containment_is_strict() -> None:
    outer = Interval(1.0, 2.0)
    assert not outer.contains(Interval(1.0, 1.5))
    assert outer.contains(Interval(1.25, 1.5))
    assert outer.overlaps(Interval(1.5, 2.5))
    assert not outer.overlaps(Interval(2.0, 3.0))


def test_degenerate_bounds_warn(caplog: pytest.LogCaptureFixture) -> None:
    big = 10**20
    with caplog.at_level(logging.WARNING, logger="mobius_tree.encoding.intervals"):
        interval = bounds(big + 1, big, big, big - 1)
    assert interval.degenerate
    assert any("degenerate" in record.getMessage() for record in caplog.records)


def test_degenerate_bounds_raise_when_strict() -> None:
    big = 10**20
    with pytest.raises(EncodingExhausted):
        bounds(big + 1, big, big, big - 1, strict=True)


def test_format_bounds() -> None:
    assert format_bounds(Interval(1.4, 10 / 7)) == "l=1.400, r=1.429"
