"""
Chart reading model — real SKU percentages scraped from a sorter's page.

``percentage_by_sku`` holds the ground-truth share for each SKU as displayed
on the dashboard (never recomputed from assignment counts).
``ordered_skus`` keeps the order the SKUs appear on the page; reports and the
training CSV iterate this list, not the dict, so output is deterministic.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field

# First SKU segment → calibre display name
CALIBRE_NAMES: dict[str, str] = {
    "J":  "Jumbo",
    "2J": "Doble_Jumbo",
    "3J": "Triple_Jumbo",
    "4J": "Cuadruple_Jumbo",
    "XL": "Extra_Large",
}
DISCARD_SKU = "descarte"


class ChartReading(BaseModel):
    """One sorter's chart, as read at ``captured_at``.

    Attributes:
        sorter_id: Sorter the page belongs to.
        captured_at: When the page was read.
        percentage_by_sku: SKU → displayed percentage.
        ordered_skus: SKUs in page display order (no duplicates).
    """

    model_config = ConfigDict(frozen=True)

    sorter_id: int
    captured_at: datetime
    percentage_by_sku: dict[str, float] = Field(default_factory=dict)
    ordered_skus: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_skus(self) -> int:
        return len(self.ordered_skus)

    def ordered_items(self) -> list[tuple[str, float]]:
        """``(sku, percentage)`` pairs in page display order."""
        return [(sku, self.percentage_by_sku[sku]) for sku in self.ordered_skus]

    def calibre_distribution(self) -> dict[str, float]:
        """Sum percentages per calibre name.

        Only known calibre codes (``CALIBRE_NAMES``) and the discard SKU are
        rolled up; other SKUs are ignored.
        """
        distribution: dict[str, float] = {}
        for sku, pct in self.ordered_items():
            if sku.casefold() == DISCARD_SKU:
                name = "Descarte"
            else:
                name = CALIBRE_NAMES.get(sku.split("-")[0], "")
            if name:
                distribution[name] = distribution.get(name, 0.0) + pct
        return distribution
