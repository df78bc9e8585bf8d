"""
Line-item diffing.

Pure functions, no DB access. Given the item set an aggregate currently
holds and the one it should hold, compute the per-product stock deltas
that move inventory from one state to the other:

    delta = old_quantity - new_quantity

    delta > 0  -> stock goes back to the store
    delta < 0  -> stock is consumed
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol


class LineItemLike(Protocol):
    product_id: int
    quantity: int


@dataclass(frozen=True)
class LineDelta:
    product_id: int
    delta: int


def normalize_line_items(items: Iterable[LineItemLike]) -> dict[int, int]:
    """Sum quantities per product_id, keeping first-seen order."""
    totals: dict[int, int] = {}
    for item in items:
        pid = int(item.product_id)
        totals[pid] = totals.get(pid, 0) + int(item.quantity)
    return totals


def diff_line_items(
    previous: Iterable[LineItemLike],
    new: Iterable[LineItemLike],
) -> list[LineDelta]:
    old_totals = normalize_line_items(previous)
    new_totals = normalize_line_items(new)

    deltas = []
    for pid in sorted(old_totals.keys() | new_totals.keys()):
        delta = old_totals.get(pid, 0) - new_totals.get(pid, 0)
        if delta:
            deltas.append(LineDelta(product_id=pid, delta=delta))
    return deltas
