from __future__ import annotations

from typing import Iterable

from dflowkit.domain.model.types import Fill, FillTotals


def sum_fills(fills: Iterable[Fill]) -> FillTotals:
    total_in = 0
    total_out = 0
    count = 0
    for fill in fills:
        total_in += fill.qty_in
        total_out += fill.qty_out
        count += 1
    return FillTotals(total_in=total_in, total_out=total_out, count=count)
