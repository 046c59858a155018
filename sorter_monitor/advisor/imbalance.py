"""
Imbalance detection and priority scoring.

Priority formula
----------------
    total      = pct1 + pct2
    relative   = difference / (total + 1)          # +1 keeps total == 0 safe
    priority   = difference * (1 + total / 100) * (1 + relative)

Larger absolute gaps, higher combined load, and higher relative skew each
raise the priority, multiplicatively.

Filtering
---------
``difference = |pct1 - pct2|`` with an absent side counted as 0 (the SKU is
not running there).  Only ``difference > threshold`` (strict; default 8.0
percentage points) is actionable.

Ordering
--------
Descending priority; equal priorities fall back to SKU ascending so that
repeated runs on the same state give the same answer.
"""

from __future__ import annotations

from sorter_monitor.models.advice import AdvisorState, Imbalance, SkuLoad
from sorter_monitor.models.snapshot import DataSnapshot

DEFAULT_THRESHOLD_PCT = 8.0


def compute_priority(pct1: float, pct2: float, difference: float) -> float:
    """Priority score for one imbalance; see module docstring."""
    total_load = pct1 + pct2
    relative_imbalance = difference / (total_load + 1)
    return difference * (1 + total_load / 100) * (1 + relative_imbalance)


def detect_imbalances(
    state: AdvisorState,
    threshold: float = DEFAULT_THRESHOLD_PCT,
) -> list[Imbalance]:
    """All SKUs whose sorter shares differ by more than ``threshold``.

    Returns:
        Imbalances sorted by descending priority, then SKU ascending.
    """
    imbalances: list[Imbalance] = []
    for sku in state.sorter_1.keys() | state.sorter_2.keys():
        load1 = state.sorter_1.get(sku)
        load2 = state.sorter_2.get(sku)
        pct1 = load1.percentage if load1 is not None else 0.0
        pct2 = load2.percentage if load2 is not None else 0.0

        difference = abs(pct1 - pct2)
        if difference <= threshold:
            continue

        imbalances.append(
            Imbalance(
                sku=sku,
                pct1=pct1,
                pct2=pct2,
                difference=difference,
                priority=compute_priority(pct1, pct2, difference),
            )
        )

    imbalances.sort(key=lambda imb: (-imb.priority, imb.sku))
    return imbalances


def lines_for_sku(snapshot: DataSnapshot, sorter_id: int, sku: str) -> list[int]:
    """Distinct output lines carrying ``sku`` on ``sorter_id``, in first-seen order.

    SKU matching is case-insensitive.
    """
    wanted = sku.casefold()
    lines: list[int] = []
    for a in snapshot.assignments:
        if a.sorter_id == sorter_id and a.sku.casefold() == wanted and a.output_line not in lines:
            lines.append(a.output_line)
    return lines


def _sorter_loads(snapshot: DataSnapshot, sorter_id: int) -> dict[str, SkuLoad]:
    reading = snapshot.chart_data.get(sorter_id)
    if reading is None:
        return {}
    return {
        sku: SkuLoad(percentage=pct, lines=lines_for_sku(snapshot, sorter_id, sku))
        for sku, pct in reading.ordered_items()
        if pct > 0
    }


def build_advisor_state(snapshot: DataSnapshot) -> AdvisorState:
    """Advisor input from a snapshot's sorter 1 and sorter 2 chart readings.

    Only SKUs with a percentage above zero are included.
    """
    return AdvisorState(
        captured_at=snapshot.captured_at,
        sorter_1=_sorter_loads(snapshot, 1),
        sorter_2=_sorter_loads(snapshot, 2),
    )
