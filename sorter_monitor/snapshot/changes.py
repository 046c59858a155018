"""
Change detection between consecutive assignment lists.

Two different checks:

``has_changes(old, new)``
    Order-sensitive: different length, or the two lists are not equal
    element by element.  A pure reordering counts as a change.

``detect_changes(old, new)``
    Keyed and order-independent on ``(sorter_id, sku.casefold())``.  A pure
    reordering yields an empty ``ChangeSet``.

So a reordered list triggers a "changed" cycle whose change report is empty.
"""

from __future__ import annotations

from sorter_monitor.models.assignment import Assignment, ChangeSet, ModifiedAssignment


def has_changes(old: list[Assignment], new: list[Assignment]) -> bool:
    """Return True if ``new`` differs from ``old`` in length, content or order."""
    if len(old) != len(new):
        return True
    return list(old) != list(new)


def _index(assignments: list[Assignment]) -> dict[tuple[int, str], Assignment]:
    # Later duplicates of a key win.
    return {a.key: a for a in assignments}


def detect_changes(old: list[Assignment], new: list[Assignment]) -> ChangeSet:
    """Keyed diff of two assignment lists.

    - key only in ``new``                      → added
    - key only in ``old``                      → removed
    - key in both with different output line   → modified
    - identical                                → ignored

    Each list in the result is sorted by key so output is reproducible.
    """
    old_map = _index(old or [])
    new_map = _index(new or [])

    added = [new_map[k] for k in sorted(new_map.keys() - old_map.keys())]
    removed = [old_map[k] for k in sorted(old_map.keys() - new_map.keys())]
    modified = [
        ModifiedAssignment(old=old_map[k], new=new_map[k])
        for k in sorted(old_map.keys() & new_map.keys())
        if old_map[k].output_line != new_map[k].output_line
    ]
    return ChangeSet(added=added, removed=removed, modified=modified)


def format_change_summary(changes: ChangeSet) -> str:
    """One-line summary, e.g. ``"Added: 1, Removed: 0, Modified: 2"``."""
    return (
        f"Added: {len(changes.added)}, "
        f"Removed: {len(changes.removed)}, "
        f"Modified: {len(changes.modified)}"
    )
