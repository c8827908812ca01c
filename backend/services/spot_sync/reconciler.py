"""In-place patching of a rendered spot collection.

A refresh never rebuilds the grid: the fresh list is diffed against what is
on screen by spot name and only changed cards are replaced, so open dropdowns
and drag state survive. Spots that disappear from a refresh are kept on
screen unless pruning is requested.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Sequence

from models.spot import Spot


class PatchKind(str, Enum):
    INSERT = "insert"
    REPLACE = "replace"
    REMOVE = "remove"


@dataclass(frozen=True)
class PatchOp:
    kind: PatchKind
    key: str
    spot: Optional[Spot] = None  # None for REMOVE

    def to_dict(self) -> dict:
        return {
            "op": self.kind.value,
            "key": self.key,
            "spot": self.spot.to_api_dict() if self.spot is not None else None,
        }


def reconcile(
    previous_rendered: Mapping[str, Spot],
    fresh: Sequence[Spot],
    prune_missing: bool = False,
) -> list[PatchOp]:
    """Return the ops that bring ``previous_rendered`` in line with ``fresh``.

    Unchanged spots produce no op, so an identical refresh yields ``[]``.
    """
    ops: list[PatchOp] = []
    seen: set[str] = set()

    for spot in fresh:
        key = spot.key
        if key in seen:
            # Duplicate names upstream: first one wins, as lookup by name would.
            continue
        seen.add(key)

        existing = previous_rendered.get(key)
        if existing is None:
            ops.append(PatchOp(PatchKind.INSERT, key, spot))
        elif existing != spot:
            ops.append(PatchOp(PatchKind.REPLACE, key, spot))

    if prune_missing:
        for key in previous_rendered:
            if key not in seen:
                ops.append(PatchOp(PatchKind.REMOVE, key))

    return ops


def apply_patch(rendered: Mapping[str, Spot], ops: Sequence[PatchOp]) -> dict[str, Spot]:
    """Return a new rendered mapping with ``ops`` applied."""
    result = dict(rendered)
    for op in ops:
        if op.kind == PatchKind.REMOVE:
            result.pop(op.key, None)
        elif op.spot is not None:
            result[op.key] = op.spot
    return result
