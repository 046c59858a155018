"""
Assignment models — what the plant's assignment API says is running where.

``Assignment`` is one (sorter, SKU, output line) triple exactly as returned by
``GET /api/api/assignments_list``.  On the wire the output line is called
``salida``; in Python it is ``output_line``.  Serialise with
``model_dump(by_alias=True)`` to get the wire shape back.

Identity of an assignment across cycles is ``(sorter_id, sku.casefold())``:
the same SKU moved to another output line is a *modification*, not an
add + remove pair.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Assignment(BaseModel):
    """A SKU assigned to an output line on one sorter.

    Attributes:
        output_line: Physical discharge lane (``salida`` on the wire).
        sku: Full SKU string, e.g. ``"4J-D-SANTINA-C5WFTFG"``.
        sorter_id: Sorter number (1-based).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    output_line: int = Field(alias="salida")
    sku: str
    sorter_id: int

    @property
    def key(self) -> tuple[int, str]:
        """Identity key: ``(sorter_id, case-folded sku)``."""
        return (self.sorter_id, self.sku.casefold())


class ModifiedAssignment(BaseModel):
    """The same (sorter, SKU) key seen on a different output line."""

    model_config = ConfigDict(frozen=True)

    old: Assignment
    new: Assignment


class ChangeSet(BaseModel):
    """Keyed difference between two assignment lists."""

    model_config = ConfigDict(frozen=True)

    added: list[Assignment] = Field(default_factory=list)
    removed: list[Assignment] = Field(default_factory=list)
    modified: list[ModifiedAssignment] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.modified)


class ChangeLogEntry(BaseModel):
    """One element of the append-only ``changes_log.json`` array.

    Attributes:
        timestamp: Cycle timestamp, ``YYYY-MM-DD HH:MM:SS``.
        change_type: Always ``"update"`` today.
        added / removed / modified: The keyed change set.
        description: One-line summary (``format_change_summary``).
    """

    model_config = ConfigDict(frozen=True)

    timestamp: str
    change_type: str = "update"
    added: list[Assignment] = Field(default_factory=list)
    removed: list[Assignment] = Field(default_factory=list)
    modified: list[ModifiedAssignment] = Field(default_factory=list)
    description: str = ""
