"""
Advisor models — input state, transient imbalances, and the emitted advice.

``AdvisorState`` is the advisor's whole world: for each of the two sorters,
SKU → (percentage, output lines).  Only SKUs with a percentage above zero are
present.  The advisor keeps no other state.

``Imbalance`` is recomputed on every advisory pass and never persisted.
``Advice`` is produced fresh each pass and is immutable.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AdviceAction(str, Enum):
    """What the advisor recommends."""

    HOLD = "hold"
    MOVE = "move"


class SkuLoad(BaseModel):
    """A SKU's share on one sorter plus the output lines carrying it."""

    model_config = ConfigDict(frozen=True)

    percentage: float
    lines: list[int] = Field(default_factory=list)


class AdvisorState(BaseModel):
    """Per-sorter SKU loads for the two balanced sorters."""

    model_config = ConfigDict(frozen=True)

    captured_at: datetime
    sorter_1: dict[str, SkuLoad] = Field(default_factory=dict)
    sorter_2: dict[str, SkuLoad] = Field(default_factory=dict)


@dataclass(frozen=True)
class Imbalance:
    """A SKU whose share differs between sorters by more than the threshold.

    Attributes:
        sku:        SKU string.
        pct1:       Share on sorter 1 (0 when absent there).
        pct2:       Share on sorter 2 (0 when absent there).
        difference: ``|pct1 - pct2|`` in percentage points.
        priority:   Score from ``compute_priority``; higher is more urgent.
    """

    sku:        str
    pct1:       float
    pct2:       float
    difference: float
    priority:   float


class Advice(BaseModel):
    """A hold-or-move recommendation.

    ``sku``, ``from_sorter`` and ``to_sorter`` are only set for ``move``.
    """

    model_config = ConfigDict(frozen=True)

    action: AdviceAction
    sku: Optional[str] = None
    from_sorter: Optional[int] = None
    to_sorter: Optional[int] = None
    reason: str
    issued_at: datetime
